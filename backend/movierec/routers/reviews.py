"""Reviews router — star ratings and short reviews per movie.

Reading a movie's reviews is public; writing, liking and deleting need a
logged-in user. One review per (user_id, movie_id): posting again replaces it.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from movierec.core import db
from movierec.routers.auth import get_current_user

router = APIRouter(prefix="/reviews", tags=["reviews"])


# ── Schemas ───────────────────────────────────────────────────────────────────

class ReviewUpsertRequest(BaseModel):
    movie_id: int
    movie_title: str
    rating: int = Field(..., ge=1, le=5)
    review_text: str | None = None


class ReviewOut(BaseModel):
    id: int
    user_id: int
    user_name: str
    movie_id: int
    movie_title: str
    rating: int
    review_text: str | None
    likes: int
    created_at: str

    @classmethod
    def from_row(cls, row: dict) -> "ReviewOut":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            user_name=row["user_name"],
            movie_id=row["movie_id"],
            movie_title=row["movie_title"],
            rating=row["rating"],
            review_text=row.get("review_text"),
            likes=row.get("likes") or 0,
            created_at=str(row["created_at"]),
        )


# ── Endpoints ─────────────────────────────────────────────────────────────────

@router.get("/movie/{movie_id}", response_model=list[ReviewOut])
def get_movie_reviews(movie_id: int):
    """All reviews of a movie, newest first."""
    with db.get_connection() as conn:
        rows = db.list_movie_reviews(conn, movie_id)
    return [ReviewOut.from_row(r) for r in rows]


@router.get("/movie/{movie_id}/mine", response_model=ReviewOut)
def get_my_review(movie_id: int, user: dict = Depends(get_current_user)):
    with db.get_connection() as conn:
        row = db.get_user_review(conn, user["id"], movie_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return ReviewOut.from_row(row)


@router.get("", response_model=list[ReviewOut])
def get_my_reviews(user: dict = Depends(get_current_user)):
    with db.get_connection() as conn:
        rows = db.list_user_reviews(conn, user["id"])
    return [ReviewOut.from_row(r) for r in rows]


@router.post("", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
def upsert_review(body: ReviewUpsertRequest, user: dict = Depends(get_current_user)):
    with db.get_connection() as conn:
        row = db.upsert_review(
            conn,
            user_id=user["id"],
            user_name=user["login"],
            movie_id=body.movie_id,
            movie_title=body.movie_title,
            rating=body.rating,
            review_text=body.review_text,
        )
    return ReviewOut.from_row(row)


@router.post("/{review_id}/like", response_model=ReviewOut)
def like_review(review_id: int, user: dict = Depends(get_current_user)):
    with db.get_connection() as conn:
        row = db.like_review(conn, review_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Review not found")
    return ReviewOut.from_row(row)


@router.delete("/{movie_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(movie_id: int, user: dict = Depends(get_current_user)):
    with db.get_connection() as conn:
        deleted = db.delete_review(conn, user["id"], movie_id)
    if deleted == 0:
        raise HTTPException(status_code=404, detail="Review not found")

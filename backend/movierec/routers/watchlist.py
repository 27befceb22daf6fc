"""Watchlist router — the authenticated user's saved movies.

Entries are keyed by (user_id, movie_id); adding an existing movie updates
it in place. Store failures propagate as 503, since membership has no
meaningful partial answer.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from movierec.core import db
from movierec.routers.auth import get_current_user

router = APIRouter(prefix="/watchlist", tags=["watchlist"])


# ── Schemas ───────────────────────────────────────────────────────────────────

class WatchlistAddRequest(BaseModel):
    movie_id: int
    title: str
    poster: str | None = None
    rating: float | None = None
    year: int | None = None


class WatchlistItem(BaseModel):
    id: int
    user_id: int
    movie_id: int
    title: str
    poster: str | None
    rating: float | None
    year: int | None
    added_at: str

    @classmethod
    def from_row(cls, row: dict) -> "WatchlistItem":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            movie_id=row["movie_id"],
            title=row["title"],
            poster=row.get("poster"),
            rating=row.get("rating"),
            year=row.get("year"),
            added_at=str(row["added_at"]),
        )


class WatchlistMembership(BaseModel):
    movie_id: int
    in_watchlist: bool


# ── Endpoints ─────────────────────────────────────────────────────────────────

@router.get("", response_model=list[WatchlistItem])
def get_watchlist(user: dict = Depends(get_current_user)):
    with db.get_connection() as conn:
        rows = db.list_watchlist(conn, user["id"])
    return [WatchlistItem.from_row(r) for r in rows]


@router.post("", response_model=WatchlistItem, status_code=status.HTTP_201_CREATED)
def add_to_watchlist(body: WatchlistAddRequest, user: dict = Depends(get_current_user)):
    with db.get_connection() as conn:
        row = db.upsert_watchlist_item(
            conn,
            user["id"],
            movie_id=body.movie_id,
            title=body.title,
            poster=body.poster,
            rating=body.rating,
            year=body.year,
        )
    return WatchlistItem.from_row(row)


@router.get("/{movie_id}", response_model=WatchlistMembership)
def watchlist_membership(movie_id: int, user: dict = Depends(get_current_user)):
    """Whether `movie_id` is on the current user's watchlist."""
    with db.get_connection() as conn:
        present = db.is_in_watchlist(conn, user["id"], movie_id)
    return WatchlistMembership(movie_id=movie_id, in_watchlist=present)


@router.delete("/{movie_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_from_watchlist(movie_id: int, user: dict = Depends(get_current_user)):
    with db.get_connection() as conn:
        deleted = db.delete_watchlist_item(conn, user["id"], movie_id)
    if deleted == 0:
        raise HTTPException(status_code=404, detail="Item not found in watchlist")

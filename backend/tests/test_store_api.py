from fastapi.testclient import TestClient

from movierec.core import db
from movierec.main import app
from movierec.routers.auth import get_current_user

from conftest import USER

WATCHLIST_ROW = {
    "id": 1,
    "user_id": 7,
    "movie_id": 27205,
    "title": "Inception",
    "poster": "https://image.tmdb.org/t/p/w500/incep.jpg",
    "rating": 8.4,
    "year": 2010,
    "added_at": "2026-03-01 12:00:00+00:00",
}

REVIEW_ROW = {
    "id": 11,
    "user_id": 7,
    "user_name": "moviefan",
    "movie_id": 27205,
    "movie_title": "Inception",
    "rating": 5,
    "review_text": "Still spinning.",
    "likes": 2,
    "created_at": "2026-03-02 09:30:00+00:00",
}


# ── Watchlist ─────────────────────────────────────────────────────────────────

def test_watchlist_requires_login():
    assert TestClient(app).get("/api/watchlist").status_code == 401


def test_add_to_watchlist(user_client, store):
    calls = []

    def fake_upsert(conn, user_id, **fields):
        calls.append((user_id, fields))
        return WATCHLIST_ROW

    store.setattr(db, "upsert_watchlist_item", fake_upsert)
    resp = user_client.post(
        "/api/watchlist",
        json={"movie_id": 27205, "title": "Inception", "rating": 8.4, "year": 2010},
    )
    assert resp.status_code == 201
    assert resp.json()["movie_id"] == 27205
    assert calls == [(7, {"movie_id": 27205, "title": "Inception", "poster": None, "rating": 8.4, "year": 2010})]


def test_list_watchlist(user_client, store):
    store.setattr(db, "list_watchlist", lambda conn, user_id: [WATCHLIST_ROW] if user_id == 7 else [])
    resp = user_client.get("/api/watchlist")
    assert resp.status_code == 200
    assert [item["title"] for item in resp.json()] == ["Inception"]


def test_watchlist_membership(user_client, store):
    store.setattr(db, "is_in_watchlist", lambda conn, user_id, movie_id: movie_id == 27205)
    assert user_client.get("/api/watchlist/27205").json() == {"movie_id": 27205, "in_watchlist": True}
    assert user_client.get("/api/watchlist/155").json() == {"movie_id": 155, "in_watchlist": False}


def test_remove_from_watchlist(user_client, store):
    store.setattr(db, "delete_watchlist_item", lambda conn, user_id, movie_id: 1 if movie_id == 27205 else 0)
    assert user_client.delete("/api/watchlist/27205").status_code == 204
    assert user_client.delete("/api/watchlist/155").status_code == 404


def test_store_outage_propagates_as_503(broken_store):
    app.dependency_overrides[get_current_user] = lambda: dict(USER)
    try:
        resp = TestClient(app).get("/api/watchlist/27205")
    finally:
        app.dependency_overrides.clear()
    assert resp.status_code == 503
    assert resp.json() == {"error": "Database unavailable: connection refused"}


# ── Reviews ───────────────────────────────────────────────────────────────────

def test_movie_reviews_are_public(store):
    store.setattr(db, "list_movie_reviews", lambda conn, movie_id: [REVIEW_ROW])
    resp = TestClient(app).get("/api/reviews/movie/27205")
    assert resp.status_code == 200
    assert resp.json()[0]["user_name"] == "moviefan"
    assert resp.json()[0]["likes"] == 2


def test_post_review_uses_login_as_author(user_client, store):
    calls = []

    def fake_upsert(conn, **fields):
        calls.append(fields)
        return REVIEW_ROW

    store.setattr(db, "upsert_review", fake_upsert)
    resp = user_client.post(
        "/api/reviews",
        json={"movie_id": 27205, "movie_title": "Inception", "rating": 5, "review_text": "Still spinning."},
    )
    assert resp.status_code == 201
    assert calls[0]["user_id"] == 7
    assert calls[0]["user_name"] == "moviefan"


def test_review_rating_out_of_range_is_400(user_client):
    resp = user_client.post(
        "/api/reviews", json={"movie_id": 27205, "movie_title": "Inception", "rating": 6}
    )
    assert resp.status_code == 400


def test_my_review(user_client, store):
    store.setattr(db, "get_user_review", lambda conn, user_id, movie_id: REVIEW_ROW if movie_id == 27205 else None)
    assert user_client.get("/api/reviews/movie/27205/mine").json()["rating"] == 5
    assert user_client.get("/api/reviews/movie/155/mine").status_code == 404


def test_my_reviews(user_client, store):
    store.setattr(db, "list_user_reviews", lambda conn, user_id: [REVIEW_ROW])
    assert [r["id"] for r in user_client.get("/api/reviews").json()] == [11]


def test_like_review(user_client, store):
    store.setattr(
        db, "like_review", lambda conn, review_id: {**REVIEW_ROW, "likes": 3} if review_id == 11 else None
    )
    assert user_client.post("/api/reviews/11/like").json()["likes"] == 3
    assert user_client.post("/api/reviews/99/like").status_code == 404


def test_delete_review(user_client, store):
    store.setattr(db, "delete_review", lambda conn, user_id, movie_id: 1 if movie_id == 27205 else 0)
    assert user_client.delete("/api/reviews/27205").status_code == 204
    assert user_client.delete("/api/reviews/155").status_code == 404

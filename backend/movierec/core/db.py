"""Sync psycopg2 helpers for the document store: users, watchlist, reviews.

Every helper takes an open connection from `get_connection()`. Driver
errors leave this module as CollaboratorUnavailable with the original
message, so route handlers never see raw psycopg2 exceptions.
"""

from contextlib import contextmanager
from typing import Generator

import psycopg2
import psycopg2.extras

from movierec.core import config
from movierec.core.errors import CollaboratorUnavailable


@contextmanager
def get_connection() -> Generator:
    """Context manager that yields a psycopg2 connection; commits on success."""
    try:
        conn = psycopg2.connect(config.DATABASE_URL, connect_timeout=10)
    except psycopg2.Error as exc:
        raise CollaboratorUnavailable(f"Database unavailable: {exc}") from exc
    try:
        yield conn
        conn.commit()
    except psycopg2.Error as exc:
        conn.rollback()
        raise CollaboratorUnavailable(f"Database error: {exc}") from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


# ── Users ─────────────────────────────────────────────────────────────────────
def get_user_by_login(conn, login: str) -> dict | None:
    with _dict_cursor(conn) as cur:
        cur.execute("SELECT * FROM users WHERE login = %s", (login,))
        return cur.fetchone()


def get_user_by_email(conn, email: str) -> dict | None:
    with _dict_cursor(conn) as cur:
        cur.execute("SELECT * FROM users WHERE email = %s", (email,))
        return cur.fetchone()


def get_user_by_id(conn, user_id: int) -> dict | None:
    with _dict_cursor(conn) as cur:
        cur.execute("SELECT * FROM users WHERE id = %s", (user_id,))
        return cur.fetchone()


def create_user(conn, login: str, email: str, password_hash: str) -> dict:
    with _dict_cursor(conn) as cur:
        cur.execute(
            """
            INSERT INTO users (login, email, password_hash, role)
            VALUES (%s, %s, %s, 'user')
            RETURNING id, login, email, role, created_at
            """,
            (login, email, password_hash),
        )
        return dict(cur.fetchone())


# ── Watchlist ─────────────────────────────────────────────────────────────────
def list_watchlist(conn, user_id: int) -> list[dict]:
    with _dict_cursor(conn) as cur:
        cur.execute(
            "SELECT * FROM watchlist WHERE user_id = %s ORDER BY added_at DESC",
            (user_id,),
        )
        return [dict(r) for r in cur.fetchall()]


def upsert_watchlist_item(
    conn,
    user_id: int,
    movie_id: int,
    title: str,
    poster: str | None,
    rating: float | None,
    year: int | None,
) -> dict:
    with _dict_cursor(conn) as cur:
        cur.execute(
            """
            INSERT INTO watchlist (user_id, movie_id, title, poster, rating, year)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, movie_id) DO UPDATE
                SET title  = EXCLUDED.title,
                    poster = EXCLUDED.poster,
                    rating = EXCLUDED.rating,
                    year   = EXCLUDED.year
            RETURNING *
            """,
            (user_id, movie_id, title, poster, rating, year),
        )
        return dict(cur.fetchone())


def delete_watchlist_item(conn, user_id: int, movie_id: int) -> int:
    """Return the number of deleted rows (0 or 1)."""
    with conn.cursor() as cur:
        cur.execute(
            "DELETE FROM watchlist WHERE user_id = %s AND movie_id = %s",
            (user_id, movie_id),
        )
        return cur.rowcount


def is_in_watchlist(conn, user_id: int, movie_id: int) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT 1 FROM watchlist WHERE user_id = %s AND movie_id = %s",
            (user_id, movie_id),
        )
        return cur.fetchone() is not None


# ── Reviews ───────────────────────────────────────────────────────────────────
def list_movie_reviews(conn, movie_id: int) -> list[dict]:
    with _dict_cursor(conn) as cur:
        cur.execute(
            "SELECT * FROM reviews WHERE movie_id = %s ORDER BY created_at DESC",
            (movie_id,),
        )
        return [dict(r) for r in cur.fetchall()]


def list_user_reviews(conn, user_id: int) -> list[dict]:
    with _dict_cursor(conn) as cur:
        cur.execute(
            "SELECT * FROM reviews WHERE user_id = %s ORDER BY created_at DESC",
            (user_id,),
        )
        return [dict(r) for r in cur.fetchall()]


def get_user_review(conn, user_id: int, movie_id: int) -> dict | None:
    with _dict_cursor(conn) as cur:
        cur.execute(
            "SELECT * FROM reviews WHERE user_id = %s AND movie_id = %s",
            (user_id, movie_id),
        )
        row = cur.fetchone()
    return dict(row) if row else None


def upsert_review(
    conn,
    user_id: int,
    user_name: str,
    movie_id: int,
    movie_title: str,
    rating: int,
    review_text: str | None,
) -> dict:
    with _dict_cursor(conn) as cur:
        cur.execute(
            """
            INSERT INTO reviews (user_id, user_name, movie_id, movie_title, rating, review_text)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, movie_id) DO UPDATE
                SET movie_title = EXCLUDED.movie_title,
                    rating      = EXCLUDED.rating,
                    review_text = EXCLUDED.review_text,
                    created_at  = now()
            RETURNING *
            """,
            (user_id, user_name, movie_id, movie_title, rating, review_text),
        )
        return dict(cur.fetchone())


def like_review(conn, review_id: int) -> dict | None:
    with _dict_cursor(conn) as cur:
        cur.execute(
            "UPDATE reviews SET likes = likes + 1 WHERE id = %s RETURNING *",
            (review_id,),
        )
        row = cur.fetchone()
    return dict(row) if row else None


def delete_review(conn, user_id: int, movie_id: int) -> int:
    with conn.cursor() as cur:
        cur.execute(
            "DELETE FROM reviews WHERE user_id = %s AND movie_id = %s",
            (user_id, movie_id),
        )
        return cur.rowcount

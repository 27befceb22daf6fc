import copy
import json
from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from movierec.core import db
from movierec.core.errors import CollaboratorUnavailable
from movierec.main import app
from movierec.routers.auth import get_current_user
from movierec.services.similarity_service import SimilarityService, get_similarity_service
from movierec.services.tmdb_service import get_tmdb_service

ABC_ARTIFACT = {
    "titles": ["A", "B", "C"],
    "ids": [1, 2, 3],
    "indices": {"A": 0, "B": 1, "C": 2},
    "top_indices": [[1, 2], [0, 2], [0, 1]],
    "top_scores": [[0.9, 0.5], [0.9, 0.4], [0.5, 0.4]],
}

MOVIE_ARTIFACT = {
    "titles": [
        "The Inception Files",
        "Inception",
        "Interstellar",
        "The Dark Knight",
        "Batman Begins",
        "The Prestige",
        "Memento",
    ],
    "ids": [1001, 27205, 157336, 155, 272, 1124, "tt0209144"],
    "indices": {
        "The Inception Files": 0,
        "Inception": 1,
        "Interstellar": 2,
        "The Dark Knight": 3,
        "Batman Begins": 4,
        "The Prestige": 5,
        "Memento": 6,
    },
    "top_indices": [
        [1, 2],
        [2, 5, 3, 6, 0],
        [1, 5, 3],
        [4, 5, 1],
        [3, 5],
        [1, 3, 6],
        [5, 1],
    ],
    "top_scores": [
        [0.31, 0.22],
        [0.82, 0.74, 0.61, 0.55, 0.31],
        [0.82, 0.58, 0.44],
        [0.91, 0.66, 0.61],
        [0.91, 0.52],
        [0.74, 0.66, 0.63],
        [0.63, 0.55],
    ],
    "metadata_movies": {
        "years": [2019, 2010, 2014, 2008, 2005, 2006, 2000],
        "ratings": [None, 8.4, 8.6, 9.0, 8.2, 8.5, 8.4],
        "vote_counts": [None, 35000, 32000, 30000, 19000, 14000, 13000],
        "genres": [
            [],
            ["Action", "Science Fiction"],
            ["Adventure", "Drama", "Science Fiction"],
            ["Action", "Crime", "Drama"],
            ["Action", "Crime"],
            ["Drama", "Mystery"],
            ["Mystery", "Thriller"],
        ],
        "primary_genres": [None, "Action", "Adventure", "Action", "Action", "Drama", "Mystery"],
        "runtimes": [None, 148, 169, 152, 140, 130, 113],
        "languages": ["en", "en", "en", "en", "en", "en", "en"],
        "popularity": [0.4, 83.2, 140.1, 97.5, 51.0, 30.2, 22.9],
    },
    "metadata": {
        "version": "2.1.0",
        "trained_at": "2025-11-02T10:15:00Z",
        "total_movies": 7,
        "tfidf_features": 5000,
        "similarity": "cosine",
    },
}


class FakeTMDB:
    """Stand-in for TMDBService with canned answers."""

    def __init__(self, summaries=None, failing=(), details=None, trending=None, trending_error=None):
        self.summaries = summaries or {}
        self.failing = set(failing)
        self.details = details or {}
        self.trending = trending or []
        self.trending_error = trending_error
        self.title_calls = []

    async def fetch_by_title(self, title):
        self.title_calls.append(title)
        if title in self.failing:
            raise RuntimeError(f"TMDB exploded on {title}")
        return self.summaries.get(title)

    async def fetch_by_id(self, tmdb_id):
        return self.details.get(tmdb_id)

    async def get_trending(self, time_window="day"):
        if self.trending_error is not None:
            raise self.trending_error
        return list(self.trending)


@pytest.fixture
def abc_artifact():
    return copy.deepcopy(ABC_ARTIFACT)


@pytest.fixture
def movie_artifact():
    return copy.deepcopy(MOVIE_ARTIFACT)


@pytest.fixture
def write_artifact(tmp_path):
    def _write(doc, name="recommendation_model.json"):
        path = tmp_path / name
        path.write_text(json.dumps(doc), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def service(write_artifact, movie_artifact):
    return SimilarityService(write_artifact(movie_artifact))


@pytest.fixture
def abc_service(write_artifact, abc_artifact):
    return SimilarityService(write_artifact(abc_artifact, name="abc.json"))


@pytest.fixture
def fake_tmdb():
    return FakeTMDB()


@pytest.fixture
def make_client():
    def _make(service, tmdb=None):
        app.dependency_overrides[get_similarity_service] = lambda: service
        app.dependency_overrides[get_tmdb_service] = lambda: tmdb or FakeTMDB()
        return TestClient(app)
    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client, service, fake_tmdb):
    return make_client(service, fake_tmdb)


# ── Document store ────────────────────────────────────────────────────────────
USER = {"id": 7, "login": "moviefan", "email": "fan@example.com", "role": "user",
        "created_at": "2026-01-01 00:00:00+00:00"}


@contextmanager
def _fake_connection():
    yield object()


@pytest.fixture
def store(monkeypatch):
    """Route every db helper call through an in-test connection stub."""
    monkeypatch.setattr(db, "get_connection", _fake_connection)
    return monkeypatch


@pytest.fixture
def broken_store(monkeypatch):
    @contextmanager
    def _down():
        raise CollaboratorUnavailable("Database unavailable: connection refused")
        yield  # pragma: no cover

    monkeypatch.setattr(db, "get_connection", _down)
    return monkeypatch


@pytest.fixture
def user_client(store):
    app.dependency_overrides[get_current_user] = lambda: dict(USER)
    yield TestClient(app)
    app.dependency_overrides.clear()

"""
SimilarityService — serves pre-computed item-item similarity from disk.

Reads the recommendation artifact (data/models/recommendation_model.json)
produced by the offline TF-IDF pipeline and answers title search and
"movies like X" queries with dictionary lookups and list slicing.

The artifact is loaded lazily on first use and kept for the process
lifetime. A failed load is remembered as well: every later lookup fails
with the same ArtifactUnavailable until the process is restarted.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from movierec.core import config
from movierec.core.errors import ArtifactUnavailable, InvalidInput, MovieNotFound
from movierec.services.artifact import MovieId, MovieMetadata, SimilarityArtifact, load_artifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Neighbor:
    index: int
    title: str
    id: MovieId
    score: float
    metadata: MovieMetadata

    def as_dict(self) -> dict:
        meta = self.metadata
        return {
            "title": self.title,
            "id": self.id,
            "score": self.score,
            "year": meta.year,
            "rating": meta.rating,
            "voteCount": meta.vote_count,
            "genres": list(meta.genres) if meta.genres is not None else None,
            "primaryGenre": meta.primary_genre,
            "runtime": meta.runtime,
            "language": meta.language,
            "popularity": meta.popularity,
        }


@dataclass(frozen=True)
class Recommendation:
    query: str
    resolved_title: str
    index: int
    neighbors: tuple[Neighbor, ...]


class SimilarityService:
    def __init__(self, artifact_path: Optional[Path] = None) -> None:
        self._path = Path(artifact_path or config.ARTIFACT_PATH)
        self._artifact: Optional[SimilarityArtifact] = None
        self._error: Optional[ArtifactUnavailable] = None

    # ── Loading ───────────────────────────────────────────────────────────

    def _ensure_loaded(self) -> SimilarityArtifact:
        if self._artifact is not None:
            return self._artifact
        if self._error is not None:
            raise self._error
        try:
            self._artifact = load_artifact(self._path)
        except ArtifactUnavailable as exc:
            logger.error("Similarity artifact unavailable: %s", exc)
            self._error = exc
            raise
        return self._artifact

    @property
    def artifact(self) -> SimilarityArtifact:
        return self._ensure_loaded()

    @property
    def available(self) -> bool:
        return self._artifact is not None

    @property
    def path(self) -> Path:
        return self._path

    # ── Search ────────────────────────────────────────────────────────────

    def search(self, query: Optional[str], limit: int = config.DEFAULT_SEARCH_LIMIT) -> list[str]:
        """
        Autocomplete over artifact titles.

        Titles starting with `query` come first, then titles that only
        contain it; both groups keep artifact order. Case-insensitive.

        Raises:
            InvalidInput: `query` is missing or shorter than two characters.
        """
        if not query or len(query) < config.MIN_QUERY_LENGTH:
            raise InvalidInput(f"Query must be at least {config.MIN_QUERY_LENGTH} characters")
        artifact = self._ensure_loaded()
        if limit <= 0:
            return []

        needle = query.lower()
        starts_with, contains = [], []
        for title in artifact.titles:
            lowered = title.lower()
            if lowered.startswith(needle):
                starts_with.append(title)
            elif needle in lowered:
                contains.append(title)
        return (starts_with + contains)[:limit]

    def suggest(self, query: str, n: int = config.SUGGESTION_LIMIT) -> list[str]:
        """Up to `n` distinct titles containing `query`, in artifact order."""
        artifact = self._ensure_loaded()
        needle = query.lower()
        suggestions = []
        for title in artifact.title_index:
            if len(suggestions) >= n:
                break
            if needle in title.lower():
                suggestions.append(title)
        return suggestions

    # ── Recommendations ───────────────────────────────────────────────────

    def resolve(self, title: Optional[str]) -> int:
        """
        Map a free-text title onto an artifact index.

        Exact match first, then a case-insensitive exact match. No fuzzy
        matching.

        Raises:
            InvalidInput:  `title` is empty or missing.
            MovieNotFound: neither lookup matched; carries suggestions.
        """
        if not title:
            raise InvalidInput("Movie title is required")
        artifact = self._ensure_loaded()

        index = artifact.title_index.get(title)
        if index is None:
            index = artifact.lowercase_index.get(title.lower())
        if index is None:
            raise MovieNotFound(title, self.suggest(title), artifact.total_movies)
        return index

    def recommend(self, title: Optional[str], top_n: int = config.DEFAULT_TOP_N) -> Recommendation:
        """Return up to `top_n` precomputed neighbours of `title`, best first."""
        index = self.resolve(title)
        artifact = self._ensure_loaded()

        count = max(top_n, 0)
        pairs = zip(artifact.neighbor_indices[index][:count], artifact.neighbor_scores[index][:count])
        neighbors = tuple(
            Neighbor(
                index=j,
                title=artifact.titles[j],
                id=artifact.ids[j],
                score=score,
                metadata=artifact.metadata[j],
            )
            for j, score in pairs
        )
        return Recommendation(
            query=title,
            resolved_title=artifact.titles[index],
            index=index,
            neighbors=neighbors,
        )


@lru_cache(maxsize=1)
def get_similarity_service() -> SimilarityService:
    """FastAPI dependency — returns the shared SimilarityService instance."""
    return SimilarityService()

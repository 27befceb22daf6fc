"""
Similarity artifact — the precomputed recommendation bundle produced by the
offline TF-IDF pipeline and shipped as one JSON file.

Storage format:
    titles           [str]                 canonical title per movie index
    ids              [str | number]        external (TMDB) id per index
    indices          {title: index}        producer's title → index map
    top_indices      [[int]]               nearest neighbours, best first
    top_scores       [[float]]             similarity per neighbour (0..1)
    metadata_movies  {years, ratings, …}   parallel per-movie columns
    metadata         {version, trained_at, total_movies, tfidf_features, …}

The file is validated once in `parse_artifact`; lookup code downstream
never re-checks shape. Any violation raises ArtifactUnavailable.
"""
import json
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

import pandas as pd

from movierec.core.errors import ArtifactUnavailable

logger = logging.getLogger(__name__)

MovieId = Union[str, int, float]

# metadata_movies column → MovieMetadata field
_METADATA_COLUMNS = {
    "years": "year",
    "ratings": "rating",
    "vote_counts": "vote_count",
    "genres": "genres",
    "primary_genres": "primary_genre",
    "runtimes": "runtime",
    "languages": "language",
    "popularity": "popularity",
}

_BUILD_INFO_KEYS = ("version", "trained_at", "total_movies", "tfidf_features")


@dataclass(frozen=True)
class MovieMetadata:
    """Structural metadata for one movie. `None` means the value is absent."""
    year: Optional[int] = None
    rating: Optional[float] = None
    vote_count: Optional[int] = None
    genres: Optional[tuple[str, ...]] = None
    primary_genre: Optional[str] = None
    runtime: Optional[int] = None
    language: Optional[str] = None
    popularity: Optional[float] = None


@dataclass(frozen=True)
class BuildInfo:
    """Descriptive information about the offline build. Never used for lookups."""
    version: Optional[str] = None
    trained_at: Optional[str] = None
    total_movies: Optional[int] = None
    feature_count: Optional[int] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            **dict(self.extra),
            "version": self.version,
            "trained_at": self.trained_at,
            "total_movies": self.total_movies,
            "tfidf_features": self.feature_count,
        }


@dataclass(frozen=True)
class SimilarityArtifact:
    titles: tuple[str, ...]
    ids: tuple[MovieId, ...]
    title_index: Mapping[str, int]
    lowercase_index: Mapping[str, int]
    neighbor_indices: tuple[tuple[int, ...], ...]
    neighbor_scores: tuple[tuple[float, ...], ...]
    metadata: tuple[MovieMetadata, ...]
    build_info: BuildInfo = field(default_factory=BuildInfo)
    source_path: Optional[Path] = None
    file_size: Optional[int] = None
    last_modified: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self.titles)

    @property
    def total_movies(self) -> int:
        return len(self.titles)


# ── Field coercion ────────────────────────────────────────────────────────────
def _scalar(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        raise TypeError(f"expected a scalar, got {type(value).__name__}")
    return value if pd.notna(value) else None


def _as_int(value: Any) -> Optional[int]:
    value = _scalar(value)
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"expected an integer, got {value!r}")
    return int(value) if value is not None else None


def _as_float(value: Any) -> Optional[float]:
    value = _scalar(value)
    return float(value) if value is not None else None


def _as_str(value: Any) -> Optional[str]:
    value = _scalar(value)
    return str(value) if value is not None else None


def _as_genres(value: Any) -> Optional[tuple[str, ...]]:
    if isinstance(value, list):
        return tuple(str(g) for g in value if g is not None)
    value = _scalar(value)
    if value is None:
        return None
    # MovieLens style "Action|Drama"
    return tuple(part for part in str(value).split("|") if part)


def _as_movie_id(value: Any) -> MovieId:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise TypeError(f"expected a string or number, got {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise TypeError(f"expected a finite number, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _as_index(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("booleans are not indices")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise TypeError(f"expected an integer index, got {value!r}")
    return value


# ── Section parsers ───────────────────────────────────────────────────────────
def _require_list(raw: dict, key: str, n: Optional[int] = None) -> list:
    values = raw.get(key)
    if not isinstance(values, list):
        raise ArtifactUnavailable(f"Malformed artifact: '{key}' must be a list")
    if n is not None and len(values) != n:
        raise ArtifactUnavailable(
            f"Malformed artifact: '{key}' has {len(values)} entries, expected {n}"
        )
    return values


def _parse_titles(titles: list) -> tuple[dict[str, int], dict[str, int], int]:
    """Build exact and lowercase title indexes. First-seen title wins."""
    title_index: dict[str, int] = {}
    lowercase_index: dict[str, int] = {}
    duplicates = 0
    for i, title in enumerate(titles):
        if not isinstance(title, str):
            raise ArtifactUnavailable(f"Malformed artifact: titles[{i}] is not a string")
        if title in title_index:
            duplicates += 1
        else:
            title_index[title] = i
        lowercase_index.setdefault(title.lower(), i)
    return title_index, lowercase_index, duplicates


def _check_indices(indices: Any, titles: list) -> None:
    if not isinstance(indices, dict):
        raise ArtifactUnavailable("Malformed artifact: 'indices' must be an object")
    n = len(titles)
    for title, idx in indices.items():
        try:
            idx = _as_index(idx)
        except TypeError as exc:
            raise ArtifactUnavailable(f"Malformed artifact: indices[{title!r}]: {exc}") from exc
        if not 0 <= idx < n or titles[idx] != title:
            raise ArtifactUnavailable(
                f"Malformed artifact: indices[{title!r}] = {idx} does not point at that title"
            )


def _parse_neighbors(
    top_indices: list, top_scores: list
) -> tuple[tuple[tuple[int, ...], ...], tuple[tuple[float, ...], ...], int]:
    """Validate neighbour rows and drop self references."""
    n = len(top_indices)
    all_indices, all_scores = [], []
    self_refs = 0
    for i, (row_idx, row_scores) in enumerate(zip(top_indices, top_scores)):
        if not isinstance(row_idx, list) or not isinstance(row_scores, list):
            raise ArtifactUnavailable(f"Malformed artifact: neighbour row {i} is not a list")
        if len(row_idx) != len(row_scores):
            raise ArtifactUnavailable(
                f"Malformed artifact: top_indices[{i}] has {len(row_idx)} entries "
                f"but top_scores[{i}] has {len(row_scores)}"
            )
        kept_idx, kept_scores = [], []
        for j, score in zip(row_idx, row_scores):
            try:
                j = _as_index(j)
                score = float(score)
            except (TypeError, ValueError) as exc:
                raise ArtifactUnavailable(f"Malformed artifact: neighbour row {i}: {exc}") from exc
            if not 0 <= j < n:
                raise ArtifactUnavailable(
                    f"Malformed artifact: top_indices[{i}] holds out-of-range index {j}"
                )
            if j == i:
                self_refs += 1
                continue
            kept_idx.append(j)
            kept_scores.append(score)
        all_indices.append(tuple(kept_idx))
        all_scores.append(tuple(kept_scores))
    return tuple(all_indices), tuple(all_scores), self_refs


def _parse_metadata(raw_meta: Any, n: int) -> tuple[MovieMetadata, ...]:
    if raw_meta is None:
        return tuple(MovieMetadata() for _ in range(n))
    if not isinstance(raw_meta, dict):
        raise ArtifactUnavailable("Malformed artifact: 'metadata_movies' must be an object")

    columns = {}
    for key in _METADATA_COLUMNS:
        values = raw_meta.get(key)
        if values is None:
            columns[key] = [None] * n
            continue
        if not isinstance(values, list) or len(values) != n:
            raise ArtifactUnavailable(
                f"Malformed artifact: metadata_movies.{key} must be a list of {n} values"
            )
        columns[key] = values
    frame = pd.DataFrame(columns, dtype=object)

    records = []
    try:
        for i, row in enumerate(frame.itertuples(index=False)):
            records.append(
                MovieMetadata(
                    year=_as_int(row.years),
                    rating=_as_float(row.ratings),
                    vote_count=_as_int(row.vote_counts),
                    genres=_as_genres(row.genres),
                    primary_genre=_as_str(row.primary_genres),
                    runtime=_as_int(row.runtimes),
                    language=_as_str(row.languages),
                    popularity=_as_float(row.popularity),
                )
            )
    except (TypeError, ValueError) as exc:
        raise ArtifactUnavailable(f"Malformed artifact: metadata_movies row {i}: {exc}") from exc
    return tuple(records)


def _parse_build_info(raw_info: Any) -> BuildInfo:
    if raw_info is None:
        return BuildInfo()
    if not isinstance(raw_info, dict):
        raise ArtifactUnavailable("Malformed artifact: 'metadata' must be an object")
    try:
        return BuildInfo(
            version=_as_str(raw_info.get("version")),
            trained_at=_as_str(raw_info.get("trained_at")),
            total_movies=_as_int(raw_info.get("total_movies")),
            feature_count=_as_int(raw_info.get("tfidf_features")),
            extra=MappingProxyType(
                {k: v for k, v in raw_info.items() if k not in _BUILD_INFO_KEYS}
            ),
        )
    except (TypeError, ValueError) as exc:
        raise ArtifactUnavailable(f"Malformed artifact: metadata: {exc}") from exc


# ── Public interface ──────────────────────────────────────────────────────────
def parse_artifact(
    raw: Any,
    source_path: Optional[Path] = None,
    file_size: Optional[int] = None,
    last_modified: Optional[datetime] = None,
) -> SimilarityArtifact:
    """Validate a decoded artifact document and build the immutable artifact."""
    if not isinstance(raw, dict):
        raise ArtifactUnavailable("Malformed artifact: top level must be an object")

    titles = _require_list(raw, "titles")
    n = len(titles)
    ids = []
    for i, movie_id in enumerate(_require_list(raw, "ids", n)):
        try:
            ids.append(_as_movie_id(movie_id))
        except TypeError as exc:
            raise ArtifactUnavailable(f"Malformed artifact: ids[{i}]: {exc}") from exc
    top_indices = _require_list(raw, "top_indices", n)
    top_scores = _require_list(raw, "top_scores", n)

    title_index, lowercase_index, duplicates = _parse_titles(titles)
    if "indices" in raw:
        _check_indices(raw["indices"], titles)
    neighbor_indices, neighbor_scores, self_refs = _parse_neighbors(top_indices, top_scores)
    metadata = _parse_metadata(raw.get("metadata_movies"), n)
    build_info = _parse_build_info(raw.get("metadata"))

    if duplicates:
        logger.warning("Artifact has %d duplicate titles — first occurrence wins", duplicates)
    if self_refs:
        logger.warning("Dropped %d self references from neighbour lists", self_refs)

    return SimilarityArtifact(
        titles=tuple(titles),
        ids=tuple(ids),
        title_index=MappingProxyType(title_index),
        lowercase_index=MappingProxyType(lowercase_index),
        neighbor_indices=neighbor_indices,
        neighbor_scores=neighbor_scores,
        metadata=metadata,
        build_info=build_info,
        source_path=source_path,
        file_size=file_size,
        last_modified=last_modified,
    )


def load_artifact(path: Path) -> SimilarityArtifact:
    """Read and validate the artifact file at `path`."""
    path = Path(path)
    if not path.exists():
        raise ArtifactUnavailable(f"Model file not found at {path}", missing=True)

    logger.info("Loading similarity artifact from %s …", path)
    started = time.perf_counter()
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
        stat = path.stat()
    except (OSError, ValueError) as exc:
        raise ArtifactUnavailable(f"Cannot read artifact {path}: {exc}") from exc

    artifact = parse_artifact(
        raw,
        source_path=path,
        file_size=stat.st_size,
        last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
    )
    logger.info(
        "Similarity artifact ready — %d movies, version=%s (%.0f ms, %d KB)",
        len(artifact),
        artifact.build_info.version,
        (time.perf_counter() - started) * 1000,
        stat.st_size // 1024,
    )
    return artifact

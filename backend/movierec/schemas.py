from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict

from movierec.core import config


class SearchResponse(BaseModel):
    query: str
    count: int
    results: List[str]


class RecommendRequest(BaseModel):
    # Optional so a missing title surfaces as 400 "Movie title is required"
    movieTitle: Optional[str] = None
    topN: int = config.DEFAULT_TOP_N
    enrich: bool = False


class MovieRecommendation(BaseModel):
    """A single precomputed neighbour, optionally enriched from TMDB."""
    title: str
    id: Union[int, float, str]
    score: float
    year: Optional[int] = None
    rating: Optional[float] = None
    voteCount: Optional[int] = None
    genres: Optional[List[str]] = None
    primaryGenre: Optional[str] = None
    runtime: Optional[int] = None
    language: Optional[str] = None
    popularity: Optional[float] = None
    # enrichment fields, only present when requested
    tmdbId: Optional[int] = None
    poster: Optional[str] = None
    overview: Optional[str] = None
    tmdbRating: Optional[str] = None
    releaseYear: Optional[str] = None


class ModelInfo(BaseModel):
    version: Optional[str] = None
    total_movies: int
    trained_at: Optional[str] = None
    tfidf_features: Optional[int] = None
    response_time_ms: float


class RecommendResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    query: str
    recommendations: List[MovieRecommendation]
    source: str = "ml_model"
    model_info: ModelInfo


class ModelInfoResponse(BaseModel):
    metadata: dict
    fileSize: Optional[str] = None
    totalMovies: int
    lastModified: Optional[str] = None
    modelLoaded: bool


class TrendingResponse(BaseModel):
    results: List[dict]


class CastMember(BaseModel):
    name: Optional[str] = None
    character: Optional[str] = None
    profile_url: Optional[str] = None


class MovieDetails(BaseModel):
    """TMDB details for a single movie."""
    tmdb_id: int
    title: Optional[str] = None
    overview: Optional[str] = None
    tagline: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    runtime: Optional[int] = None
    tmdb_rating: Optional[float] = None
    tmdb_votes: Optional[int] = None
    release_date: Optional[str] = None
    genres: List[str] = []
    cast: List[CastMember] = []
    trailer_key: Optional[str] = None

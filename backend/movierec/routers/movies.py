import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from movierec.core import config
from movierec.core.errors import ArtifactUnavailable
from movierec.schemas import (
    ModelInfo,
    ModelInfoResponse,
    MovieDetails,
    RecommendRequest,
    RecommendResponse,
    SearchResponse,
    TrendingResponse,
)
from movierec.services.enrichment import enrich_neighbors
from movierec.services.similarity_service import SimilarityService, get_similarity_service
from movierec.services.tmdb_service import TMDBService, get_tmdb_service
from movierec.services.trending import filter_trending

router = APIRouter(tags=["movies"])


@router.get("/search", response_model=SearchResponse)
def search_titles(
    query: Optional[str] = Query(None, description="At least 2 characters"),
    limit: int = Query(config.DEFAULT_SEARCH_LIMIT, description="Maximum number of titles"),
    service: SimilarityService = Depends(get_similarity_service),
):
    """
    Title autocomplete. Titles starting with the query come first, then
    titles merely containing it, each group in artifact order.
    """
    results = service.search(query, limit=limit)
    return SearchResponse(query=query, count=len(results), results=results)


@router.post("/recommend", response_model=RecommendResponse, response_model_exclude_unset=True)
async def recommend(
    body: RecommendRequest,
    service: SimilarityService = Depends(get_similarity_service),
    tmdb: TMDBService = Depends(get_tmdb_service),
):
    """
    Returns the `topN` precomputed neighbours of `movieTitle`.

    - Exact title match first, then a case-insensitive one.
    - Unknown title: 404 with up to 5 substring suggestions.
    - `enrich: true` adds TMDB poster / overview per item; TMDB failures
      degrade to placeholders, never to an error.
    """
    started = time.perf_counter()
    # the first call may read and parse the artifact file
    result = await run_in_threadpool(service.recommend, body.movieTitle, top_n=body.topN)

    if body.enrich:
        recommendations = await enrich_neighbors(result.neighbors, tmdb)
    else:
        recommendations = [n.as_dict() for n in result.neighbors]

    artifact = service.artifact
    return RecommendResponse(
        query=result.query,
        recommendations=recommendations,
        source="ml_model",
        model_info=ModelInfo(
            version=artifact.build_info.version,
            total_movies=artifact.total_movies,
            trained_at=artifact.build_info.trained_at,
            tfidf_features=artifact.build_info.feature_count,
            response_time_ms=round((time.perf_counter() - started) * 1000, 2),
        ),
    )


@router.get("/model-info", response_model=ModelInfoResponse)
def model_info(service: SimilarityService = Depends(get_similarity_service)):
    """Descriptive information about the loaded recommendation artifact."""
    try:
        artifact = service.artifact
    except ArtifactUnavailable as exc:
        if not exc.missing:
            raise
        return JSONResponse(
            status_code=404,
            content={"error": "Model file not found", "metadata": None, "fileSize": None},
        )

    size_mb = (artifact.file_size or 0) / (1024 * 1024)
    return ModelInfoResponse(
        metadata=artifact.build_info.as_dict(),
        fileSize=f"{size_mb:.2f} MB",
        totalMovies=artifact.total_movies,
        lastModified=artifact.last_modified.isoformat() if artifact.last_modified else None,
        modelLoaded=True,
    )


@router.get("/trending", response_model=TrendingResponse)
async def trending(
    genre: Optional[str] = Query(None, description="Genre name, e.g. Drama; 'All' disables"),
    min_rating: Optional[float] = Query(None, alias="minRating"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="rating | recent | title"),
    time_window: str = Query("day", alias="timeWindow", description="day | week"),
    tmdb: TMDBService = Depends(get_tmdb_service),
):
    """TMDB trending movies with optional genre / rating filters and ordering."""
    movies = await tmdb.get_trending(time_window)
    return TrendingResponse(
        results=filter_trending(movies, genre=genre, min_rating=min_rating, sort_by=sort_by)
    )


@router.get("/movies/{tmdb_id}", response_model=MovieDetails)
async def movie_details(
    tmdb_id: int,
    tmdb: TMDBService = Depends(get_tmdb_service),
):
    """
    Returns TMDB details for a single movie: poster, overview, cast,
    trailer. 404 when TMDB has nothing (or is unreachable).
    """
    details = await tmdb.fetch_by_id(tmdb_id)
    if details is None:
        raise HTTPException(status_code=404, detail=f"Movie {tmdb_id} not found")
    return MovieDetails(**details)

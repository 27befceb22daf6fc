"""
Error taxonomy of the lookup core and its mapping onto HTTP responses.

    InvalidInput            -> 400 {error}
    MovieNotFound           -> 404 {error, query, suggestions, totalMovies}
    ArtifactUnavailable     -> 500 {error, details}
    CollaboratorUnavailable -> 503 {error}
    405 Method Not Allowed  -> 405 {error}

Request validation failures raised by FastAPI itself are reported as 400 as
well, so callers never see a 422.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class InvalidInput(ValueError):
    """Malformed or missing request field."""


class MovieNotFound(LookupError):
    """The requested title does not resolve to any movie in the artifact."""

    def __init__(self, query: str, suggestions: list[str], total_movies: int) -> None:
        super().__init__(f"Movie not found: {query!r}")
        self.query = query
        self.suggestions = suggestions
        self.total_movies = total_movies


class ArtifactUnavailable(RuntimeError):
    """The similarity artifact is missing or malformed."""

    def __init__(self, message: str, missing: bool = False) -> None:
        super().__init__(message)
        self.missing = missing


class CollaboratorUnavailable(RuntimeError):
    """An external collaborator (TMDB, Postgres) failed with no usable result."""


# ── Handlers ──────────────────────────────────────────────────────────────────
def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


async def _invalid_input_handler(request: Request, exc: InvalidInput) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": _first_validation_message(exc)},
    )


async def _movie_not_found_handler(request: Request, exc: MovieNotFound) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "Movie not found",
            "query": exc.query,
            "suggestions": exc.suggestions,
            "totalMovies": exc.total_movies,
        },
    )


async def _artifact_unavailable_handler(request: Request, exc: ArtifactUnavailable) -> JSONResponse:
    logger.error("Lookup failed on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Recommendation model unavailable", "details": str(exc)},
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    # 405s share the {error} body; route-raised HTTPExceptions keep {detail}
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "Method not allowed"},
            headers=getattr(exc, "headers", None),
        )
    return await http_exception_handler(request, exc)


async def _collaborator_handler(request: Request, exc: CollaboratorUnavailable) -> JSONResponse:
    logger.error("Collaborator failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"error": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error taxonomy handlers to `app`."""
    app.add_exception_handler(InvalidInput, _invalid_input_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(MovieNotFound, _movie_not_found_handler)
    app.add_exception_handler(ArtifactUnavailable, _artifact_unavailable_handler)
    app.add_exception_handler(CollaboratorUnavailable, _collaborator_handler)

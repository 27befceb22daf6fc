"""
TMDBService — thin async client for The Movie Database API.

Fetches movie summaries (search by title), full details (credits, trailer)
and the trending feed, and caches results in-process for TMDB_CACHE_TTL
seconds so the external API is hit once per unique request.

Requires:
    TMDB_API_KEY env var  (free key at https://www.themoviedb.org/settings/api)

If the key is missing or a lookup fails, `fetch_*` return None gracefully —
callers fall back to placeholder posters and descriptions. The trending
feed has no partial result, so its failures raise CollaboratorUnavailable.
"""
import logging
import time
from typing import Any, Optional

import httpx

from movierec.core import config
from movierec.core.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)

_TMDB_BASE = "https://api.themoviedb.org/3"
_IMAGE_BASE = "https://image.tmdb.org/t/p"

PLACEHOLDER_POSTER = "/placeholder-movie.png"
PLACEHOLDER_BACKDROP = "/placeholder-backdrop.png"

_TIME_WINDOWS = ("day", "week")
_MAX_CAST = 10


def image_url(path: Optional[str], size: str = "w500") -> str:
    if not path:
        return PLACEHOLDER_POSTER
    return f"{_IMAGE_BASE}/{size}{path}"


def backdrop_url(path: Optional[str]) -> str:
    if not path:
        return PLACEHOLDER_BACKDROP
    return f"{_IMAGE_BASE}/original{path}"


def _trailer_key(videos: dict) -> Optional[str]:
    for video in videos.get("results") or []:
        if video.get("site") == "YouTube" and video.get("type") == "Trailer":
            return video.get("key")
    return None


class TMDBService:
    """Async TMDB client with in-memory TTL cache."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        cache_ttl: float = config.TMDB_CACHE_TTL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key: str = config.TMDB_API_KEY if api_key is None else api_key
        self._cache_ttl = cache_ttl
        self._transport = transport
        self._cache: dict[str, tuple[float, Any]] = {}

    @property
    def _available(self) -> bool:
        return bool(self._api_key)

    # ── Private helpers ───────────────────────────────────────────────────

    def _cached(self, key: str) -> tuple[bool, Any]:
        entry = self._cache.get(key)
        if entry is None:
            return False, None
        stored_at, value = entry
        if time.monotonic() - stored_at >= self._cache_ttl:
            del self._cache[key]
            return False, None
        return True, value

    async def _get(self, path: str, cache_key: str, **params: Any) -> Any:
        """GET `path` from TMDB, serving from cache when fresh. Raises on failure."""
        hit, value = self._cached(cache_key)
        if hit:
            return value

        params = {"api_key": self._api_key, "language": "en-US", **params}
        async with httpx.AsyncClient(timeout=config.TMDB_TIMEOUT, transport=self._transport) as client:
            resp = await client.get(f"{_TMDB_BASE}{path}", params=params)
            resp.raise_for_status()
            data = resp.json()

        self._cache[cache_key] = (time.monotonic(), data)
        return data

    # ── Public interface ──────────────────────────────────────────────────

    async def fetch_by_title(self, title: str) -> Optional[dict]:
        """
        Search TMDB for `title` and return a summary of the first hit.

        Returns a dict with keys:
            tmdb_id, title, overview, poster_url, vote_average, release_date

        Returns None if the API key is not set, nothing matches or the
        request fails.
        """
        if not self._available:
            logger.warning("TMDB_API_KEY not set — poster/overview unavailable")
            return None

        try:
            data = await self._get("/search/movie", f"search:{title}", query=title)
        except Exception as exc:
            logger.error(f"TMDB search failed for title={title!r}: {exc}")
            return None

        results = data.get("results") or []
        if not results:
            return None
        hit = results[0]
        return {
            "tmdb_id": hit.get("id"),
            "title": hit.get("title"),
            "overview": hit.get("overview") or None,
            "poster_url": image_url(hit.get("poster_path")) if hit.get("poster_path") else None,
            "vote_average": hit.get("vote_average"),
            "release_date": hit.get("release_date") or None,
        }

    async def fetch_by_id(self, tmdb_id: int) -> Optional[dict]:
        """
        Fetch full movie details (credits and videos appended) from TMDB.

        Returns None if the API key is not set or the request fails.
        """
        if not self._available:
            logger.warning("TMDB_API_KEY not set — movie details unavailable")
            return None

        try:
            data = await self._get(
                f"/movie/{tmdb_id}",
                f"movie:{tmdb_id}",
                append_to_response="credits,videos",
            )
        except Exception as exc:
            logger.error(f"TMDB request failed for tmdb_id={tmdb_id}: {exc}")
            return None

        cast = (data.get("credits") or {}).get("cast") or []
        return {
            "tmdb_id": data.get("id", tmdb_id),
            "title": data.get("title"),
            "overview": data.get("overview") or None,
            "tagline": data.get("tagline") or None,
            "poster_url": image_url(data.get("poster_path")),
            "backdrop_url": backdrop_url(data.get("backdrop_path")),
            "runtime": data.get("runtime") or None,
            "tmdb_rating": data.get("vote_average") or None,
            "tmdb_votes": data.get("vote_count") or None,
            "release_date": data.get("release_date") or None,
            "genres": [g.get("name") for g in data.get("genres") or [] if g.get("name")],
            "cast": [
                {
                    "name": member.get("name"),
                    "character": member.get("character") or None,
                    "profile_url": image_url(member.get("profile_path"), size="w185")
                    if member.get("profile_path") else None,
                }
                for member in cast[:_MAX_CAST]
            ],
            "trailer_key": _trailer_key(data.get("videos") or {}),
        }

    async def get_trending(self, time_window: str = "day") -> list[dict]:
        """
        Return TMDB's trending movies for `time_window` ("day" or "week").

        Raises:
            CollaboratorUnavailable: key missing or TMDB request failed.
        """
        if time_window not in _TIME_WINDOWS:
            time_window = "day"
        if not self._available:
            raise CollaboratorUnavailable("TMDB_API_KEY not set — trending unavailable")

        try:
            data = await self._get(f"/trending/movie/{time_window}", f"trending:{time_window}")
        except Exception as exc:
            logger.error(f"TMDB trending request failed: {exc}")
            raise CollaboratorUnavailable(f"TMDB trending request failed: {exc}") from exc
        return list(data.get("results") or [])


# ── Module-level singleton ──────────────────────────────────────────────────
_tmdb_service: Optional[TMDBService] = None


def get_tmdb_service() -> TMDBService:
    """FastAPI dependency — returns the shared TMDBService instance."""
    global _tmdb_service
    if _tmdb_service is None:
        _tmdb_service = TMDBService()
    return _tmdb_service

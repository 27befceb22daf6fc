"""
Enrichment — merges a recommendation's structural metadata with the TMDB
summary (poster, overview, rating, release year).

Best effort per item: a missing or failed TMDB lookup never fails the
recommendation, the externally sourced fields fall back to sentinels.
"""
import asyncio
import logging
from typing import Iterable, Optional

from movierec.services.similarity_service import Neighbor
from movierec.services.tmdb_service import PLACEHOLDER_POSTER, TMDBService

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "No description available."
NOT_AVAILABLE = "N/A"


def enrich(neighbor: Neighbor, summary: Optional[dict]) -> dict:
    """Return the display record for `neighbor`."""
    record = neighbor.as_dict()
    summary = summary or {}

    vote_average = summary.get("vote_average")
    release_date = summary.get("release_date") or ""

    record.update(
        {
            "tmdbId": summary.get("tmdb_id"),
            "poster": summary.get("poster_url") or PLACEHOLDER_POSTER,
            "overview": summary.get("overview") or NO_DESCRIPTION,
            "tmdbRating": f"{vote_average:.1f}" if vote_average is not None else NOT_AVAILABLE,
            "releaseYear": release_date.split("-")[0] or NOT_AVAILABLE,
        }
    )
    return record


async def enrich_neighbors(neighbors: Iterable[Neighbor], tmdb: TMDBService) -> list[dict]:
    """Enrich every neighbour, fetching TMDB summaries concurrently."""
    neighbors = list(neighbors)
    summaries = await asyncio.gather(
        *(tmdb.fetch_by_title(n.title) for n in neighbors),
        return_exceptions=True,
    )

    records = []
    for neighbor, summary in zip(neighbors, summaries):
        if isinstance(summary, Exception):
            logger.warning("Enrichment failed for %r: %s", neighbor.title, summary)
            summary = None
        records.append(enrich(neighbor, summary))
    return records

"""Filtering and ordering of the TMDB trending feed."""
from typing import Optional

# TMDB genre ids for the genre names offered by the filter bar
GENRE_IDS = {
    "Action": 28,
    "Adventure": 12,
    "Animation": 16,
    "Comedy": 35,
    "Crime": 80,
    "Documentary": 99,
    "Drama": 18,
    "Family": 10751,
    "Fantasy": 14,
    "Horror": 27,
    "Mystery": 9648,
    "Romance": 10749,
    "Sci-Fi": 878,
    "Thriller": 53,
    "War": 10752,
}

SORT_KEYS = ("rating", "recent", "title")


def filter_trending(
    movies: list[dict],
    genre: Optional[str] = None,
    min_rating: Optional[float] = None,
    sort_by: Optional[str] = None,
) -> list[dict]:
    """
    Apply the trending page filters to raw TMDB results.

    Args:
        movies:     TMDB result dicts (genre_ids, vote_average, release_date, title).
        genre:      Genre name from GENRE_IDS; "All" or None disables the filter.
                    Unknown names match nothing.
        min_rating: Keep movies with vote_average >= min_rating.
        sort_by:    "rating" (desc), "recent" (release date desc) or "title" (asc);
                    anything else keeps TMDB's order.
    """
    result = list(movies)

    if genre and genre != "All":
        genre_id = GENRE_IDS.get(genre)
        result = [m for m in result if genre_id in (m.get("genre_ids") or [])]

    if min_rating is not None:
        result = [m for m in result if (m.get("vote_average") or 0) >= min_rating]

    if sort_by == "rating":
        result.sort(key=lambda m: m.get("vote_average") or 0, reverse=True)
    elif sort_by == "recent":
        # ISO dates order lexicographically; missing dates sink to the end
        result.sort(key=lambda m: m.get("release_date") or "", reverse=True)
    elif sort_by == "title":
        result.sort(key=lambda m: (m.get("title") or "").casefold())

    return result

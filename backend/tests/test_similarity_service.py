import pytest

from movierec.core.errors import ArtifactUnavailable, InvalidInput, MovieNotFound
from movierec.services import similarity_service
from movierec.services.similarity_service import SimilarityService


# ── Recommendations ───────────────────────────────────────────────────────────

def test_recommend_truncates_to_top_n(abc_service):
    result = abc_service.recommend("A", 1)
    assert [(n.title, n.score) for n in result.neighbors] == [("B", 0.9)]


def test_recommend_returns_only_available_neighbors(abc_service):
    result = abc_service.recommend("A", 5)
    assert [(n.title, n.score) for n in result.neighbors] == [("B", 0.9), ("C", 0.5)]
    assert [n.id for n in result.neighbors] == [2, 3]


def test_unknown_title_raises_with_suggestions(abc_service):
    with pytest.raises(MovieNotFound) as excinfo:
        abc_service.recommend("Zzzznotfound", 5)
    assert excinfo.value.query == "Zzzznotfound"
    assert excinfo.value.suggestions == []
    assert excinfo.value.total_movies == 3


def test_unknown_title_suggests_substring_matches(service):
    with pytest.raises(MovieNotFound) as excinfo:
        service.recommend("the", 5)
    assert excinfo.value.suggestions == ["The Inception Files", "The Dark Knight", "The Prestige"]


def test_suggestions_are_capped_at_five(write_artifact):
    titles = [f"Star Trek {i}" for i in range(8)]
    path = write_artifact(
        {
            "titles": titles,
            "ids": list(range(8)),
            "top_indices": [[] for _ in titles],
            "top_scores": [[] for _ in titles],
        }
    )
    with pytest.raises(MovieNotFound) as excinfo:
        SimilarityService(path).recommend("trek", 3)
    assert excinfo.value.suggestions == titles[:5]


def test_case_insensitive_fallback_resolves_canonical_title(service):
    result = service.recommend("iNcEpTiOn", 2)
    assert result.resolved_title == "Inception"
    assert result.query == "iNcEpTiOn"
    assert [n.title for n in result.neighbors] == ["Interstellar", "The Prestige"]


def test_fallback_is_exact_not_fuzzy(service):
    with pytest.raises(MovieNotFound):
        service.recommend("Incepton", 2)


def test_recommend_never_includes_self_and_respects_limit(service):
    artifact = service.artifact
    for title, index in artifact.title_index.items():
        for n in (0, 1, 3, 10):
            neighbors = service.recommend(title, n).neighbors
            assert len(neighbors) <= n
            assert index not in [nb.index for nb in neighbors]


def test_recommend_is_deterministic(service):
    first = service.recommend("Inception", 12)
    second = service.recommend("Inception", 12)
    assert first == second
    assert len(first.neighbors) == 5


def test_recommend_joins_metadata(service):
    dark_knight = service.recommend("Batman Begins", 1).neighbors[0]
    assert dark_knight.title == "The Dark Knight"
    assert dark_knight.as_dict() == {
        "title": "The Dark Knight",
        "id": 155,
        "score": 0.91,
        "year": 2008,
        "rating": 9.0,
        "voteCount": 30000,
        "genres": ["Action", "Crime", "Drama"],
        "primaryGenre": "Action",
        "runtime": 152,
        "language": "en",
        "popularity": 97.5,
    }


@pytest.mark.parametrize("top_n", [0, -3])
def test_non_positive_top_n_gives_empty_list(abc_service, top_n):
    assert abc_service.recommend("A", top_n).neighbors == ()


@pytest.mark.parametrize("title", [None, ""])
def test_missing_title_is_invalid(abc_service, title):
    with pytest.raises(InvalidInput):
        abc_service.recommend(title, 3)


# ── Search ────────────────────────────────────────────────────────────────────

def test_search_puts_prefix_matches_first(service):
    assert service.search("incep", 5) == ["Inception", "The Inception Files"]


def test_search_keeps_artifact_order_within_groups(service):
    assert service.search("the", 10) == ["The Inception Files", "The Dark Knight", "The Prestige"]
    assert service.search("in", 10) == [
        "Inception",
        "Interstellar",
        "The Inception Files",
        "Batman Begins",
    ]


def test_search_results_satisfy_matching_rules(service):
    query = "In"
    results = service.search(query, 3)
    assert len(results) <= 3
    for title in results:
        assert title in service.artifact.titles
        assert query.lower() in title.lower()
    prefix_flags = [t.lower().startswith(query.lower()) for t in results]
    assert prefix_flags == sorted(prefix_flags, reverse=True)


def test_search_limit_truncates(service):
    assert service.search("in", 2) == ["Inception", "Interstellar"]


@pytest.mark.parametrize("limit", [0, -1])
def test_search_non_positive_limit_is_empty(service, limit):
    assert service.search("in", limit) == []


@pytest.mark.parametrize("query", [None, "", "i"])
def test_search_short_query_is_invalid(service, query):
    with pytest.raises(InvalidInput):
        service.search(query, 5)


def test_search_without_matches_is_empty(service):
    assert service.search("zzz", 10) == []


# ── Loading lifecycle ─────────────────────────────────────────────────────────

def test_artifact_is_loaded_once(monkeypatch, write_artifact, abc_artifact):
    calls = []
    real_load = similarity_service.load_artifact

    def counting_load(path):
        calls.append(path)
        return real_load(path)

    monkeypatch.setattr(similarity_service, "load_artifact", counting_load)
    service = SimilarityService(write_artifact(abc_artifact))
    assert not service.available

    service.search("ab", 5)
    service.recommend("A", 2)
    service.recommend("B", 2)

    assert len(calls) == 1
    assert service.available


def test_load_failure_is_remembered(tmp_path, write_artifact, abc_artifact):
    path = tmp_path / "recommendation_model.json"
    service = SimilarityService(path)

    with pytest.raises(ArtifactUnavailable):
        service.recommend("A", 1)

    # a valid file appearing later is not picked up without a restart
    write_artifact(abc_artifact)
    with pytest.raises(ArtifactUnavailable):
        service.search("ab", 5)
    assert not service.available


def test_short_query_is_rejected_before_loading(tmp_path):
    service = SimilarityService(tmp_path / "missing.json")
    with pytest.raises(InvalidInput):
        service.search("i", 5)

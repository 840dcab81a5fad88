"""
Tests for request normalization.
"""

from __future__ import annotations

from datetime import date

import pytest

from .filters import build_search_spec, clamp_limit, normalize_filters
from .models import MAX_LIMIT, MAX_TIME_MINUTES, CookedFilter, Filters, Scope, SearchMode


# --- clamp_limit ---


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (0, 1),
        (-5, 1),
        (10000, MAX_LIMIT),
        (7.9, 7),
        ("12", 12),
        (None, 20),
        ("abc", 20),
        (float("nan"), 20),
        (10**400, 20),
        ("1" * 400, 20),
    ],
)
def test_clamp_limit(raw: object, expected: int) -> None:
    """Test limit is clamped to [1, MAX_LIMIT] with a default."""
    assert clamp_limit(raw) == expected


# --- normalize_filters ---


def test_normalize_filters_empty() -> None:
    """Test missing input yields fully populated defaults."""
    filters = normalize_filters(None)
    assert filters == Filters()
    assert filters.tags == ()
    assert filters.cooked == CookedFilter.ANY


def test_normalize_filters_lists_are_sorted_and_deduped() -> None:
    """Test list filters are trimmed, deduplicated and sorted."""
    filters = normalize_filters({"tags": ["b", " a ", "b", ""], "cuisine": "thai, italian,thai"})
    assert filters.tags == ("a", "b")
    assert filters.cuisine == ("italian", "thai")


def test_normalize_filters_ingredients_lowercased() -> None:
    """Test ingredient tokens are lower-cased."""
    filters = normalize_filters({"includeIngredients": ["Garlic", "garlic", "LEMON"]})
    assert filters.include_ingredients == ("garlic", "lemon")


def test_normalize_filters_accepts_snake_case() -> None:
    """Test snake_case keys are accepted as well as camelCase."""
    filters = normalize_filters({"subject_id": "s1", "topicId": "t1"})
    assert filters.subject_id == "s1"
    assert filters.topic_id == "t1"


def test_normalize_filters_min_semantic_score_clamped() -> None:
    """Test minSemanticScore is clamped to [0, 1]."""
    assert normalize_filters({"minSemanticScore": 3}).min_semantic_score == 1.0
    assert normalize_filters({"minSemanticScore": -1}).min_semantic_score == 0.0
    assert normalize_filters({"minSemanticScore": "inf"}).min_semantic_score is None


def test_normalize_filters_time_bounds() -> None:
    """Test time filters are floored and clamped."""
    filters = normalize_filters({"prepTimeMax": 0, "cookTimeMax": 10.7, "totalTimeMax": 10**9})
    assert filters.prep_time_max == 1
    assert filters.cook_time_max == 10
    assert filters.total_time_max == MAX_TIME_MINUTES


def test_normalize_filters_dates() -> None:
    """Test date filters accept ISO dates and timestamps."""
    filters = normalize_filters(
        {"updatedFrom": "2024-01-02", "updatedTo": "2024-03-04T10:00:00Z"}
    )
    assert filters.updated_from == date(2024, 1, 2)
    assert filters.updated_to == date(2024, 3, 4)
    assert normalize_filters({"updatedFrom": "not a date"}).updated_from is None


def test_normalize_filters_cooked() -> None:
    """Test cooked filter values and fallbacks."""
    assert normalize_filters({"cooked": "NEVER"}).cooked == CookedFilter.NEVER
    assert normalize_filters({"cooked": "sometimes"}).cooked == CookedFilter.ANY
    assert normalize_filters({"cookedWithinDays": 0}).cooked_within_days is None
    assert normalize_filters({"cookedWithinDays": "30"}).cooked_within_days == 30


def test_normalize_filters_ignores_garbage() -> None:
    """Test unparseable values mean 'not set' rather than an error."""
    filters = normalize_filters({"status": {"nested": True}, "minAvgCookedRating": True})
    assert filters.status is None
    assert filters.min_avg_cooked_rating is None


def test_normalize_filters_ignores_huge_numbers() -> None:
    """Test integers too large for a float are dropped, not raised."""
    huge = 10**400
    filters = normalize_filters(
        {
            "prepTimeMax": huge,
            "cookTimeMax": huge,
            "totalTimeMax": huge,
            "minSemanticScore": huge,
            "cookedWithinDays": huge,
            "minAvgCookedRating": huge,
        }
    )
    assert filters == Filters()


def test_build_search_spec_huge_limit_uses_default() -> None:
    spec = build_search_spec(
        {"query": "pasta", "limit": 10**400, "filters": {"prepTimeMax": 10**400}}
    )
    assert spec.limit == 20
    assert spec.filters.prep_time_max is None


def test_normalize_filters_is_idempotent() -> None:
    """Test normalizing a normalized value changes nothing."""
    once = normalize_filters({"tags": "x,y", "updatedFrom": "2024-01-01", "cooked": "ever"})
    assert normalize_filters(once) == once


# --- build_search_spec ---


def test_build_search_spec_defaults() -> None:
    """Test an empty request normalizes to defaults."""
    spec = build_search_spec({})
    assert spec.query == ""
    assert spec.mode == SearchMode.AUTO
    assert spec.scope == Scope.ALL
    assert spec.limit == 20
    assert spec.explain is False
    assert spec.is_wildcard


def test_build_search_spec_trims_and_parses() -> None:
    """Test query trimming, enum parsing and limit clamping."""
    spec = build_search_spec(
        {"q": "  lemon pasta ", "mode": "HYBRID", "scope": "recipes", "limit": 0, "explain": "true"}
    )
    assert spec.query == "lemon pasta"
    assert spec.mode == SearchMode.HYBRID
    assert spec.scope == Scope.RECIPES
    assert spec.limit == 1
    assert spec.explain is True


def test_build_search_spec_unknown_mode_falls_back_to_auto() -> None:
    """Test an unknown mode is treated as auto."""
    assert build_search_spec({"query": "x", "mode": "fuzzy"}).mode == SearchMode.AUTO


def test_build_search_spec_nested_filters_win() -> None:
    """Test nested filters override flat query-string filters."""
    spec = build_search_spec(
        {"query": "x", "subjectId": "flat", "tags": "a", "filters": {"subjectId": "nested"}}
    )
    assert spec.filters.subject_id == "nested"
    assert spec.filters.tags == ("a",)


def test_build_search_spec_last_used_scope_for_browse() -> None:
    """Test an empty query with no scope reuses the last used scope."""
    spec = build_search_spec({"query": "", "lastUsedScope": "recipes"})
    assert spec.scope == Scope.RECIPES

    spec = build_search_spec({"query": "soup", "lastUsedScope": "recipes"})
    assert spec.scope == Scope.ALL


def test_build_search_spec_round_trips_spec() -> None:
    """Test a SearchSpec normalizes to itself."""
    spec = build_search_spec(
        {"query": "soup", "mode": "semantic", "filters": {"tags": ["b", "a"], "cooked": "ever"}}
    )
    assert build_search_spec(spec) == spec
    assert build_search_spec(spec.model_dump(by_alias=True, mode="json")) == spec


def test_search_spec_is_immutable() -> None:
    """Test SearchSpec is frozen."""
    spec = build_search_spec({"query": "x"})
    with pytest.raises(Exception):
        spec.query = "changed"  # type: ignore

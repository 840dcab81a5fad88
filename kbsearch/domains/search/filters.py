"""
Filter Normalizer - Canonicalize raw search requests into SearchSpec.

Search-as-you-type callers send partial, sloppy input. Nothing here raises:
values that cannot be parsed are treated as "filter not set".
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

from .models import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    MAX_TIME_MINUTES,
    WILDCARD_QUERIES,
    CookedFilter,
    Filters,
    Scope,
    SearchMode,
    SearchSpec,
)

logger = logging.getLogger(__name__)

__all__ = [
    "FILTER_KEYS",
    "build_search_spec",
    "clamp_limit",
    "normalize_filters",
]

# Wire name -> field name
FILTER_KEYS: dict[str, str] = {
    "subjectId": "subject_id",
    "topicId": "topic_id",
    "status": "status",
    "tags": "tags",
    "updatedFrom": "updated_from",
    "updatedTo": "updated_to",
    "minSemanticScore": "min_semantic_score",
    "cuisine": "cuisine",
    "category": "category",
    "keywords": "keywords",
    "prepTimeMax": "prep_time_max",
    "cookTimeMax": "cook_time_max",
    "totalTimeMax": "total_time_max",
    "includeIngredients": "include_ingredients",
    "excludeIngredients": "exclude_ingredients",
    "cooked": "cooked",
    "cookedWithinDays": "cooked_within_days",
    "minAvgCookedRating": "min_avg_cooked_rating",
}

_TRUTHY = {"1", "true", "yes", "on"}


def _text(value: Any) -> str | None:
    if isinstance(value, Enum):
        value = value.value
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return None
    try:
        s = str(value).strip()
    except ValueError:
        # int too large to render as a string
        return None
    return s or None


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return n if math.isfinite(n) else None


def _string_list(value: Any, lower: bool = False) -> tuple[str, ...]:
    """Split, trim, dedupe and sort a list-valued filter."""
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        items = [value]

    out: set[str] = set()
    for item in items:
        s = _text(item)
        if s is None:
            continue
        out.add(s.lower() if lower else s)
    return tuple(sorted(out))


def _minutes(value: Any) -> int | None:
    n = _number(value)
    if n is None:
        return None
    return max(1, min(MAX_TIME_MINUTES, math.floor(n)))


def _positive_int(value: Any) -> int | None:
    n = _number(value)
    if n is None:
        return None
    n = math.floor(n)
    return n if n > 0 else None


def _date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = _text(value)
    if s is None:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _cooked(value: Any) -> CookedFilter:
    s = (_text(value) or "").lower()
    try:
        return CookedFilter(s)
    except ValueError:
        return CookedFilter.ANY


def _lookup(raw: Mapping[str, Any], wire: str) -> Any:
    """Read a filter by wire (camelCase) or field (snake_case) name."""
    if wire in raw:
        return raw[wire]
    return raw.get(FILTER_KEYS[wire])


def normalize_filters(raw: Mapping[str, Any] | Filters | None) -> Filters:
    """
    Canonicalize a raw filter mapping.

    Args:
        raw: Partially populated filters (camelCase or snake_case keys)

    Returns:
        Fully populated Filters with sorted list fields and finite numbers
    """
    if isinstance(raw, Filters):
        raw = raw.model_dump(mode="json")
    if not isinstance(raw, Mapping):
        return Filters()

    min_semantic = _number(_lookup(raw, "minSemanticScore"))
    if min_semantic is not None:
        min_semantic = max(0.0, min(1.0, min_semantic))

    return Filters(
        subject_id=_text(_lookup(raw, "subjectId")),
        topic_id=_text(_lookup(raw, "topicId")),
        status=_text(_lookup(raw, "status")),
        tags=_string_list(_lookup(raw, "tags")),
        updated_from=_date(_lookup(raw, "updatedFrom")),
        updated_to=_date(_lookup(raw, "updatedTo")),
        min_semantic_score=min_semantic,
        cuisine=_string_list(_lookup(raw, "cuisine")),
        category=_string_list(_lookup(raw, "category")),
        keywords=_string_list(_lookup(raw, "keywords")),
        prep_time_max=_minutes(_lookup(raw, "prepTimeMax")),
        cook_time_max=_minutes(_lookup(raw, "cookTimeMax")),
        total_time_max=_minutes(_lookup(raw, "totalTimeMax")),
        include_ingredients=_string_list(_lookup(raw, "includeIngredients"), lower=True),
        exclude_ingredients=_string_list(_lookup(raw, "excludeIngredients"), lower=True),
        cooked=_cooked(_lookup(raw, "cooked")),
        cooked_within_days=_positive_int(_lookup(raw, "cookedWithinDays")),
        min_avg_cooked_rating=_number(_lookup(raw, "minAvgCookedRating")),
    )


def clamp_limit(value: Any, default: int = DEFAULT_LIMIT) -> int:
    """Clamp a requested limit to [1, MAX_LIMIT]."""
    n = _number(value)
    if n is None:
        return default
    return max(1, min(MAX_LIMIT, math.floor(n)))


def _enum(enum_cls: type, value: Any, default: Any) -> Any:
    s = (_text(value) or "").lower()
    try:
        return enum_cls(s)
    except ValueError:
        return default


def build_search_spec(raw: Mapping[str, Any] | SearchSpec | None) -> SearchSpec:
    """
    Build a canonical SearchSpec from a raw request.

    Filters may arrive flat (query-string style) or nested under "filters";
    nested values win.
    """
    if isinstance(raw, SearchSpec):
        raw = raw.model_dump(by_alias=True, mode="json")
    if not isinstance(raw, Mapping):
        raw = {}

    query_raw = raw.get("query")
    if query_raw is None:
        query_raw = raw.get("q", raw.get("text"))
    query = _text(query_raw) or ""

    scope = _enum(Scope, raw.get("scope"), None)
    if scope is None:
        scope = Scope.ALL
        if query in WILDCARD_QUERIES:
            scope = _enum(Scope, raw.get("lastUsedScope"), Scope.ALL)

    merged: dict[str, Any] = {}
    for wire, field in FILTER_KEYS.items():
        for key in (wire, field):
            if key in raw:
                merged[wire] = raw[key]
    nested = raw.get("filters")
    if isinstance(nested, Mapping):
        for wire, field in FILTER_KEYS.items():
            for key in (wire, field):
                if key in nested:
                    merged[wire] = nested[key]

    explain_raw = raw.get("explain")
    if isinstance(explain_raw, bool):
        explain = explain_raw
    else:
        explain = (_text(explain_raw) or "").lower() in _TRUTHY

    spec = SearchSpec(
        query=query,
        mode=_enum(SearchMode, raw.get("mode"), SearchMode.AUTO),
        scope=scope,
        limit=clamp_limit(raw.get("limit")),
        filters=normalize_filters(merged),
        explain=explain,
    )
    logger.debug("Normalized search spec: %s", spec.model_dump_json())
    return spec

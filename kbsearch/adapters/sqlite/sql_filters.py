"""
SQL Filters - Translate search Filters and Scope into WHERE predicates.

All predicates reference the notes table through an alias and use
positional parameters only.
"""

from __future__ import annotations

from typing import Any

from kbsearch.domains.search.models import CookedFilter, Scope, SearchSpec

__all__ = ["build_filter_clauses", "like_pattern"]


def _placeholders(values: tuple[Any, ...] | list[Any]) -> str:
    return ", ".join("?" for _ in values)


def like_pattern(token: str) -> str:
    """Substring LIKE pattern with %, _ and \\ escaped."""
    escaped = token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_filter_clauses(spec: SearchSpec, alias: str = "n") -> tuple[list[str], list[Any]]:
    """
    Build WHERE predicates for a spec's scope and filters.

    Args:
        spec: Normalized search spec
        alias: Table alias of the notes table in the calling query

    Returns:
        (clauses to AND together, positional parameters)
    """
    f = spec.filters
    clauses: list[str] = []
    params: list[Any] = []

    if spec.scope == Scope.RECIPES:
        clauses.append(f"{alias}.doc_kind = 'recipe'")
    elif spec.scope == Scope.NOTES:
        clauses.append(f"{alias}.doc_kind = 'note'")

    for column in ("subject_id", "topic_id", "status"):
        value = getattr(f, column)
        if value is not None:
            clauses.append(f"{alias}.{column} = ?")
            params.append(value)

    if f.tags:
        clauses.append(
            f"EXISTS (SELECT 1 FROM json_each({alias}.tags) AS t "
            f"WHERE t.value IN ({_placeholders(f.tags)}))"
        )
        params.extend(f.tags)

    if f.updated_from is not None:
        clauses.append(f"substr({alias}.updated_at, 1, 10) >= ?")
        params.append(f.updated_from.isoformat())
    if f.updated_to is not None:
        clauses.append(f"substr({alias}.updated_at, 1, 10) <= ?")
        params.append(f.updated_to.isoformat())

    # Recipe facets
    if f.cuisine:
        clauses.append(f"lower({alias}.cuisine) IN ({_placeholders(f.cuisine)})")
        params.extend(v.lower() for v in f.cuisine)

    for column, values in (("category", f.category), ("keywords", f.keywords)):
        if values:
            clauses.append(
                f"EXISTS (SELECT 1 FROM json_each({alias}.{column}) AS j "
                f"WHERE lower(j.value) IN ({_placeholders(values)}))"
            )
            params.extend(v.lower() for v in values)

    for column, limit in (
        ("prep_time_minutes", f.prep_time_max),
        ("cook_time_minutes", f.cook_time_max),
        ("total_time_minutes", f.total_time_max),
    ):
        if limit is not None:
            clauses.append(f"{alias}.{column} IS NOT NULL AND {alias}.{column} <= ?")
            params.append(limit)

    # Ingredients are stored lower-cased
    for token in f.include_ingredients:
        clauses.append(
            f"EXISTS (SELECT 1 FROM json_each({alias}.ingredients) AS i "
            f"WHERE i.value LIKE ? ESCAPE '\\')"
        )
        params.append(like_pattern(token))
    for token in f.exclude_ingredients:
        clauses.append(
            f"NOT EXISTS (SELECT 1 FROM json_each({alias}.ingredients) AS i "
            f"WHERE i.value LIKE ? ESCAPE '\\')"
        )
        params.append(like_pattern(token))

    if f.cooked == CookedFilter.EVER:
        clauses.append(f"{alias}.cooked_count > 0")
    elif f.cooked == CookedFilter.NEVER:
        clauses.append(f"COALESCE({alias}.cooked_count, 0) = 0")

    if f.cooked_within_days is not None:
        clauses.append(f"julianday({alias}.last_cooked_at) >= julianday('now', ?)")
        params.append(f"-{f.cooked_within_days} days")

    if f.min_avg_cooked_rating is not None:
        clauses.append(f"{alias}.avg_cooked_rating >= ?")
        params.append(f.min_avg_cooked_rating)

    return clauses, params

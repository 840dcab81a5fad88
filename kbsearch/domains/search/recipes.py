"""
Recipe search fields derived from cooking history.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timezone

from pydantic import BaseModel

__all__ = ["CookedEvent", "CookedSearchFields", "compute_cooked_search_fields"]


class CookedEvent(BaseModel):
    """One logged cooking of a recipe."""

    cooked_at: str
    rating: float | None = None
    notes: str | None = None


class CookedSearchFields(BaseModel):
    """Denormalized fields the cooked-history facets filter on."""

    cooked_count: int = 0
    last_cooked_at: datetime | None = None
    avg_cooked_rating: float | None = None
    cooked_notes_text: str | None = None


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def compute_cooked_search_fields(events: Iterable[CookedEvent]) -> CookedSearchFields:
    """
    Summarize cooking history for filtering.

    Unparseable timestamps and non-finite ratings are ignored; the
    average rating is rounded to one decimal.
    """
    events = list(events)

    last_cooked_at = None
    for event in events:
        ts = _parse_timestamp(event.cooked_at)
        if ts is not None and (last_cooked_at is None or ts > last_cooked_at):
            last_cooked_at = ts

    ratings = [
        e.rating for e in events if e.rating is not None and math.isfinite(e.rating)
    ]
    avg = round(sum(ratings) / len(ratings), 1) if ratings else None

    notes = "\n".join(n for n in ((e.notes or "").strip() for e in events) if n)

    return CookedSearchFields(
        cooked_count=len(events),
        last_cooked_at=last_cooked_at,
        avg_cooked_rating=avg,
        cooked_notes_text=notes or None,
    )

"""
Document Models - Notes and recipes as the search indexes see them.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .recipes import CookedEvent

__all__ = ["NoteDocument", "RecipeDetails"]


class RecipeDetails(BaseModel):
    """Recipe facets attached to a note."""

    description: str | None = None
    cuisine: str | None = None
    category: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    yield_: str | None = Field(default=None, alias="yield")
    prep_time_minutes: int | None = None
    cook_time_minutes: int | None = None
    total_time_minutes: int | None = None
    ingredients: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    cooked_history: list[CookedEvent] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class NoteDocument(BaseModel):
    """A note (or recipe note) to be indexed."""

    id: str
    title: str = ""
    summary: str | None = None
    markdown: str = ""
    subject_id: str | None = None
    topic_id: str | None = None
    status: str | None = None
    tags: list[str] = Field(default_factory=list)
    recipe: RecipeDetails | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def doc_kind(self) -> str:
        return "recipe" if self.recipe is not None else "note"

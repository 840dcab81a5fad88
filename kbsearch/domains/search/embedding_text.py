"""
Embedding Text - Stable text renderings of notes for the vector index.

The hash of the rendered text tells the index builder whether a note's
embedding is stale.
"""

from __future__ import annotations

import hashlib
import re

from .documents import NoteDocument

__all__ = ["build_embedding_text", "build_recipe_semantic_text", "hash_embedding_text"]

MAX_MARKDOWN_CHARS = 8000
MAX_RECIPE_INGREDIENTS = 120
MAX_RECIPE_STEPS = 8
MAX_STEPS_CHARS = 1200
MAX_RECIPE_CHARS = 4000


def _normalize(text: str | None) -> str:
    s = (text or "").replace("\r\n", "\n")
    s = re.sub(r"[ \t]+\n", "\n", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


def _one_line(text: str | None) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


def build_embedding_text(note: NoteDocument) -> str:
    """Render a note as Title/Summary/Tags/Recipe/Body blocks."""
    if note.recipe is not None:
        return build_recipe_semantic_text(note)

    parts: list[str] = []

    title = _normalize(note.title)
    if title:
        parts.append(f"Title: {title}")

    summary = _normalize(note.summary)
    if summary:
        parts.append(f"Summary: {summary}")

    tags = [t for t in (_normalize(t) for t in note.tags) if t]
    if tags:
        parts.append(f"Tags: {', '.join(tags)}")

    body = _normalize(note.markdown)
    if body:
        parts.append(f"Body:\n{body[:MAX_MARKDOWN_CHARS]}")

    return "\n\n".join(parts).strip()


def build_recipe_semantic_text(note: NoteDocument) -> str:
    """Render a recipe note with its facets, ingredients and first steps."""
    recipe = note.recipe
    title = _one_line(note.title)
    if recipe is None:
        return f"Title: {title}" if title else ""

    lines: list[str] = []
    if title:
        lines.append(f"Title: {title}")

    def push(label: str, value: str | list[str] | None) -> None:
        if isinstance(value, list):
            cleaned = [v for v in (_one_line(x) for x in value) if v]
            if cleaned:
                lines.append(f"{label}: {', '.join(cleaned)}")
            return
        cleaned_value = _one_line(value)
        if cleaned_value:
            lines.append(f"{label}: {cleaned_value}")

    push("Description", recipe.description)
    push("Cuisine", recipe.cuisine)
    push("Category", recipe.category)
    push("Keywords", recipe.keywords)
    push("Yield", recipe.yield_)

    time_parts = []
    if recipe.prep_time_minutes is not None:
        time_parts.append(f"prep {recipe.prep_time_minutes}m")
    if recipe.cook_time_minutes is not None:
        time_parts.append(f"cook {recipe.cook_time_minutes}m")
    if recipe.total_time_minutes is not None:
        time_parts.append(f"total {recipe.total_time_minutes}m")
    if time_parts:
        lines.append(f"Time: {', '.join(time_parts)}")

    ingredients = _dedupe([_one_line(i) for i in recipe.ingredients])
    if ingredients:
        lines.append(f"Ingredients: {', '.join(ingredients[:MAX_RECIPE_INGREDIENTS])}")

    steps = [s for s in (_one_line(x) for x in recipe.steps) if s]
    if steps:
        picked = [f"{i}. {s}" for i, s in enumerate(steps[:MAX_RECIPE_STEPS], 1)]
        block = "\n".join(picked)[:MAX_STEPS_CHARS].strip()
        lines.append(f"Steps:\n{block}")

    return "\n".join(lines).strip()[:MAX_RECIPE_CHARS].strip()


def hash_embedding_text(text: str) -> str:
    """SHA-256 of the normalized embedding text."""
    return hashlib.sha256(_normalize(text).encode("utf-8")).hexdigest()

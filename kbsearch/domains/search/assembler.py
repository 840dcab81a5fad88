"""
Result Assembler - Join fused ids to document summaries.

Ids the store can no longer resolve (deleted between retrieval and
assembly) are dropped; a partial page beats a failed response.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from .contracts import DocumentStore
from .models import FusedResult, SearchResultItem, SourceName

logger = logging.getLogger(__name__)

__all__ = ["ResultAssembler", "build_snippet", "extract_query_terms", "strip_markdown"]

SNIPPET_WINDOW = 260
MAX_QUERY_TERMS = 8

_MARKDOWN_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"```[\s\S]*?```"), " "),
    (re.compile(r"`[^`]*`"), " "),
    (re.compile(r"!\[[^\]]*\]\([^)]*\)"), " "),
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),
    (re.compile(r"^[>#]+\s+", re.MULTILINE), ""),
    (re.compile(r"[*_~]+"), ""),
    (re.compile(r"\s+"), " "),
]


def strip_markdown(markdown: str | None) -> str:
    """Very small markdown-to-text pass for snippets."""
    text = markdown or ""
    for pattern, repl in _MARKDOWN_PATTERNS:
        text = pattern.sub(repl, text)
    return text.strip()


def extract_query_terms(query: str) -> list[str]:
    """Whitespace terms of length >= 2, deduped case-insensitively."""
    terms: list[str] = []
    seen: set[str] = set()
    for term in query.split():
        norm = term.lower()
        if len(norm) < 2 or norm in seen:
            continue
        seen.add(norm)
        terms.append(term)
        if len(terms) >= MAX_QUERY_TERMS:
            break
    return terms


def build_snippet(markdown: str | None, terms: Sequence[str], window: int = SNIPPET_WINDOW) -> str:
    """
    Build a snippet centred on the first matching query term.

    Falls back to the leading `window` characters when nothing matches.
    """
    text = strip_markdown(markdown)
    if not text:
        return ""

    lower = text.lower()
    best = -1
    for term in terms:
        idx = lower.find(term.lower())
        if idx != -1:
            best = idx
            break

    if best == -1:
        return f"{text[: window - 1]}…" if len(text) > window else text

    start = max(0, best - int(window * 0.35))
    end = min(len(text), start + window)
    prefix = "…" if start > 0 else ""
    suffix = "…" if end < len(text) else ""
    return prefix + text[start:end].strip() + suffix


class ResultAssembler:
    """
    Turn fused rankings into response items.

    Example:
        >>> assembler = ResultAssembler(sqlite_repo)
        >>> items = await assembler.assemble(fused, limit=20, query="pasta")
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def assemble(
        self,
        fused: Sequence[FusedResult],
        limit: int,
        query: str = "",
        score_source: SourceName | None = None,
    ) -> tuple[list[SearchResultItem], int]:
        """
        Look up summaries, preserve fused order, truncate to limit.

        Args:
            fused: Results in final rank order
            limit: Maximum items to return
            query: Query text for snippets (empty for browse)
            score_source: Report this source's raw score instead of the
                combined RRF score (single-source modes)

        Returns:
            (items, number of fused ids that could not be resolved)
        """
        if not fused:
            return [], 0

        summaries = await self._store.get_summaries([r.id for r in fused])
        terms = extract_query_terms(query)

        items: list[SearchResultItem] = []
        dropped = 0
        for result in fused:
            summary = summaries.get(result.id)
            if summary is None:
                dropped += 1
                continue
            if len(items) >= limit:
                continue

            if score_source is None:
                score = result.combined_score
            else:
                score = result.scores.get(score_source, 0.0)

            snippet = build_snippet(summary.body, terms) if query else ""

            items.append(
                SearchResultItem(
                    id=result.id,
                    title=summary.title or "Untitled",
                    summary=summary.summary,
                    snippet=snippet or None,
                    subject_id=summary.subject_id,
                    topic_id=summary.topic_id,
                    updated_at=summary.updated_at,
                    doc_kind=summary.doc_kind,
                    score=score,
                    sources=list(result.sources),
                    explain=result.explain,
                )
            )

        if dropped:
            logger.info("Dropped %d stale ids during assembly", dropped)
        return items, dropped

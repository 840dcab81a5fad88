"""
Power Query Parser - Split free text into terms, phrases, OR groups and negations.

Syntax:
    word            required term
    "some phrase"   required phrase
    -word           excluded term
    a OR b / a | b  terms after the first OR form an any-of group
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

__all__ = ["ParsedQuery", "parse_power_query"]

_TOKEN_RE = re.compile(r'"([^"\\]*(?:\\.[^"\\]*)*)"|(\S+)')
_WORD_RE = re.compile(r"\w")
_OR_TOKENS = {"OR", "or", "|"}


@dataclass(frozen=True)
class ParsedQuery:
    """Parsed free-text query. All lists are lower-cased and deduplicated."""

    raw: str
    terms: list[str] = field(default_factory=list)
    phrases: list[str] = field(default_factory=list)
    must_terms: list[str] = field(default_factory=list)
    any_terms: list[str] = field(default_factory=list)
    not_terms: list[str] = field(default_factory=list)

    @property
    def has_explicit_or(self) -> bool:
        return bool(self.any_terms)

    @property
    def has_positive(self) -> bool:
        return bool(self.must_terms or self.any_terms or self.phrases)


def _tokenize(text: str) -> list[str]:
    out = []
    for match in _TOKEN_RE.finditer(text):
        phrase, word = match.group(1), match.group(2)
        if phrase is not None:
            out.append(f'"{phrase}"')
        elif word is not None:
            out.append(word)
    return out


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for v in values:
        key = v.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(v)
    return out


def parse_power_query(text: str) -> ParsedQuery:
    """
    Parse a free-text query.

    Args:
        text: Raw query string

    Returns:
        ParsedQuery with terms, phrases, any-of terms and negations
    """
    raw = (text or "").strip()

    terms: list[str] = []
    phrases: list[str] = []
    must_terms: list[str] = []
    any_terms: list[str] = []
    not_terms: list[str] = []
    in_any_group = False

    for token in _tokenize(raw):
        if token in _OR_TOKENS:
            in_any_group = True
            continue

        negated = token.startswith("-") and len(token) > 1
        if negated:
            token = token[1:]

        quoted = len(token) >= 2 and token.startswith('"') and token.endswith('"')
        inner = token[1:-1].strip() if quoted else token.strip()
        # Punctuation-only tokens carry nothing the FTS tokenizer would index
        if not _WORD_RE.search(inner):
            continue
        normalized = inner.lower()

        if negated:
            not_terms.append(normalized)
        elif quoted:
            phrases.append(normalized)
        else:
            terms.append(normalized)
            if in_any_group:
                any_terms.append(normalized)
            else:
                must_terms.append(normalized)

    return ParsedQuery(
        raw=raw,
        terms=_dedupe(terms),
        phrases=_dedupe(phrases),
        must_terms=_dedupe(must_terms),
        any_terms=_dedupe(any_terms),
        not_terms=_dedupe(not_terms),
    )

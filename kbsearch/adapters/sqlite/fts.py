"""
FTS5 query compilation for parsed power queries.
"""

from __future__ import annotations

from kbsearch.domains.search.query_parser import ParsedQuery, parse_power_query

__all__ = ["compile_fts_query", "quote_fts"]


def quote_fts(token: str) -> str:
    """Quote a token as an FTS5 string; embedded quotes are doubled."""
    return '"' + token.replace('"', '""') + '"'


def compile_fts_query(query: str | ParsedQuery) -> str | None:
    """
    Compile a query into an FTS5 MATCH expression.

    Required terms and phrases are ANDed. With an explicit OR, the term
    before the first OR joins the any-of group. Negations become NOT.

    Returns:
        MATCH expression, or None when nothing positive remains
    """
    parsed = query if isinstance(query, ParsedQuery) else parse_power_query(query)

    must = list(parsed.must_terms)
    any_terms = list(parsed.any_terms)
    if any_terms and must:
        any_terms.insert(0, must.pop())

    parts = [quote_fts(t) for t in must]
    parts.extend(quote_fts(p) for p in parsed.phrases)
    if len(any_terms) == 1:
        parts.append(quote_fts(any_terms[0]))
    elif any_terms:
        parts.append("(" + " OR ".join(quote_fts(t) for t in any_terms) + ")")

    if not parts:
        return None

    expression = " AND ".join(parts)
    for term in parsed.not_terms:
        expression += f" NOT {quote_fts(term)}"
    return expression

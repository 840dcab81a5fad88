"""
Search Models - Data types for search domain.

Wire shapes use camelCase aliases; Python code uses snake_case field names.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

MAX_LIMIT = 50
DEFAULT_LIMIT = 20
DEFAULT_RRF_K = 60
MAX_TIME_MINUTES = 72460
WILDCARD_QUERIES = ("", "*")


class SearchMode(str, Enum):
    """Requested retrieval mode."""

    AUTO = "auto"
    HYBRID = "hybrid"
    SEMANTIC = "semantic"
    KEYWORD = "keyword"


class ResolvedMode(str, Enum):
    """Retrieval mode actually executed."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class Scope(str, Enum):
    ALL = "all"
    NOTES = "notes"
    RECIPES = "recipes"


class CookedFilter(str, Enum):
    ANY = "any"
    EVER = "ever"
    NEVER = "never"


class SourceName(str, Enum):
    """Retrieval source that produced a hit."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"


class WireModel(BaseModel):
    """Base for models exchanged over the API."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "frozen": True,
    }


class Filters(WireModel):
    """Facet constraints. Fully populated; build via normalize_filters()."""

    subject_id: str | None = None
    topic_id: str | None = None
    status: str | None = None
    tags: tuple[str, ...] = ()
    updated_from: date | None = None
    updated_to: date | None = None
    min_semantic_score: float | None = Field(default=None, ge=0.0, le=1.0)

    # Recipe facets
    cuisine: tuple[str, ...] = ()
    category: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    prep_time_max: int | None = Field(default=None, ge=1, le=MAX_TIME_MINUTES)
    cook_time_max: int | None = Field(default=None, ge=1, le=MAX_TIME_MINUTES)
    total_time_max: int | None = Field(default=None, ge=1, le=MAX_TIME_MINUTES)
    include_ingredients: tuple[str, ...] = ()
    exclude_ingredients: tuple[str, ...] = ()
    cooked: CookedFilter = CookedFilter.ANY
    cooked_within_days: int | None = Field(default=None, ge=1)
    min_avg_cooked_rating: float | None = None


class SearchSpec(WireModel):
    """Canonical, immutable search request."""

    query: str = ""
    mode: SearchMode = SearchMode.AUTO
    scope: Scope = Scope.ALL
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    filters: Filters = Field(default_factory=Filters)
    explain: bool = False

    @property
    def is_wildcard(self) -> bool:
        """Empty and '*' queries mean match-all, newest first."""
        return self.query in WILDCARD_QUERIES


class ModeResolution(BaseModel):
    """Outcome of mode resolution for one request."""

    requested: SearchMode
    mode: ResolvedMode
    browse: bool = False
    semantic_degraded: bool = False

    model_config = {"frozen": True}

    @property
    def runs_keyword(self) -> bool:
        return self.mode in (ResolvedMode.KEYWORD, ResolvedMode.HYBRID)

    @property
    def runs_semantic(self) -> bool:
        return self.mode in (ResolvedMode.SEMANTIC, ResolvedMode.HYBRID)


class RetrievalHit(BaseModel):
    """Single hit from one retriever. Rank is source-local and 1-based."""

    id: str
    rank: int = Field(..., ge=1)
    score: float = 0.0

    model_config = {"frozen": True}


# --- Explain ---


class SourceRank(WireModel):
    rank: int
    score: float | None = None


class ExplainSources(WireModel):
    keyword: SourceRank | None = None
    semantic: SourceRank | None = None


class SourceContributions(WireModel):
    keyword: float | None = None
    semantic: float | None = None


class FusionExplain(WireModel):
    method: Literal["rrf"] = "rrf"
    k: int
    contributions: SourceContributions
    combined_score: float


class ExplainMetadata(WireModel):
    """How a result's fused score was derived."""

    fusion: FusionExplain
    sources: ExplainSources


class FusedResult(WireModel):
    """One deduplicated entry in the fused ranking."""

    id: str
    combined_score: float
    sources: tuple[SourceName, ...]
    ranks: dict[SourceName, int] = Field(default_factory=dict)
    scores: dict[SourceName, float] = Field(default_factory=dict)
    explain: ExplainMetadata | None = None


# --- Assembly ---


class DocumentSummary(BaseModel):
    """Lightweight document view returned by the store batch lookup."""

    id: str
    title: str = ""
    summary: str | None = None
    body: str | None = None
    subject_id: str | None = None
    topic_id: str | None = None
    updated_at: datetime | None = None
    doc_kind: str = "note"


class SearchResultItem(WireModel):
    """Single search result as returned to callers."""

    id: str
    title: str
    summary: str | None = None
    snippet: str | None = None
    subject_id: str | None = None
    topic_id: str | None = None
    updated_at: datetime | None = None
    doc_kind: str = "note"
    score: float = 0.0
    sources: list[SourceName] = Field(default_factory=list)
    explain: ExplainMetadata | None = None


# --- Debug ---


class SourceStatus(WireModel):
    """Per-source outcome, reported in the debug channel only."""

    attempted: bool = False
    ok: bool = False
    reason: str | None = None
    error_message: str | None = None
    raw_count: int | None = None
    post_filter_count: int | None = None

    model_config = {"frozen": False}


class SearchTimings(WireModel):
    keyword: float = 0.0
    semantic: float = 0.0
    fuse: float = 0.0
    assemble: float = 0.0
    total: float = 0.0

    model_config = {"frozen": False}


class SearchDebug(WireModel):
    fusion: Literal["rrf"] = "rrf"
    k: int
    requested_mode: SearchMode
    resolved_mode: ResolvedMode
    browse: bool
    min_semantic_score: float | None = None
    keyword_count: int = 0
    semantic_count: int = 0
    overlap_count: int = 0
    fused_count: int = 0
    returned_count: int = 0
    dropped_count: int = 0
    timings_ms: SearchTimings = Field(default_factory=SearchTimings)
    keyword: SourceStatus = Field(default_factory=SourceStatus)
    semantic: SourceStatus = Field(default_factory=SourceStatus)


class SearchResponse(WireModel):
    """Search response. Order of results is the authoritative rank order."""

    query: str
    mode: str  # "keyword", "semantic", "hybrid" or "browse"
    limit: int
    spec: SearchSpec
    results: list[SearchResultItem]
    debug: SearchDebug | None = None

"""Tests for SQLite Repository."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from kbsearch.domains.search.documents import NoteDocument, RecipeDetails
from kbsearch.domains.search.filters import build_search_spec
from kbsearch.domains.search.recipes import CookedEvent

from .repository import SQLiteRepository


def _ts(day: int) -> datetime:
    return datetime(2024, 1, day, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def repo(tmp_path: Path):
    """Create a test repository with temporary database."""
    db_path = tmp_path / "test.db"
    repo = SQLiteRepository(db_path)
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
async def seeded(repo: SQLiteRepository):
    """Two notes and two recipes."""
    recent = datetime.now(timezone.utc) - timedelta(days=2)
    await repo.upsert_note(
        NoteDocument(
            id="n1",
            title="Sourdough starter",
            markdown="Feed the starter with flour and water daily.",
            subject_id="baking",
            tags=["bread", "fermentation"],
            updated_at=_ts(1),
        )
    )
    await repo.upsert_note(
        NoteDocument(
            id="n2",
            title="Garden plan",
            markdown="Plant tomatoes and basil in spring.",
            subject_id="garden",
            tags=["plants"],
            status="draft",
            updated_at=_ts(5),
        )
    )
    await repo.upsert_note(
        NoteDocument(
            id="r1",
            title="Lemon pasta",
            markdown="Quick weeknight pasta.",
            tags=["bread"],
            recipe=RecipeDetails(
                cuisine="Italian",
                category=["Main"],
                keywords=["Quick"],
                prep_time_minutes=10,
                cook_time_minutes=15,
                ingredients=["Spaghetti", "Lemon zest", "Parmesan"],
                steps=["Boil pasta", "Toss with lemon"],
                cooked_history=[
                    CookedEvent(cooked_at=recent.isoformat(), rating=5, notes="kids loved it")
                ],
            ),
            updated_at=_ts(3),
        )
    )
    await repo.upsert_note(
        NoteDocument(
            id="r2",
            title="Tomato soup",
            markdown="Slow roasted tomato soup.",
            recipe=RecipeDetails(
                cuisine="American",
                category=["Soup"],
                cook_time_minutes=90,
                ingredients=["Tomatoes", "Garlic", "Cream"],
            ),
            updated_at=_ts(4),
        )
    )
    return repo


async def _keyword_ids(repo: SQLiteRepository, request: dict) -> list[str]:
    hits = await repo.search_keyword(build_search_spec(request), 20)
    return [h.id for h in hits]


async def test_initialize_creates_tables(repo: SQLiteRepository):
    """Test that initialize creates all required tables."""
    conn = await repo.get_connection()
    cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row[0] for row in await cursor.fetchall()}

    assert "notes" in tables
    assert "notes_fts" in tables
    assert "saved_searches" in tables


async def test_upsert_and_get_note(seeded: SQLiteRepository):
    """Test notes round-trip through storage, including recipe details."""
    note = await seeded.get_note("r1")

    assert note is not None
    assert note.title == "Lemon pasta"
    assert note.doc_kind == "recipe"
    assert note.recipe.cuisine == "Italian"
    assert note.recipe.cooked_history[0].rating == 5
    assert note.updated_at == _ts(3)
    assert await seeded.get_note("missing") is None


async def test_upsert_replaces_and_reindexes(seeded: SQLiteRepository):
    """Test updating a note replaces its FTS entry."""
    await seeded.upsert_note(NoteDocument(id="n2", title="Orchard plan", markdown="Apple trees."))

    assert await _keyword_ids(seeded, {"query": "tomatoes", "scope": "notes"}) == []
    assert await _keyword_ids(seeded, {"query": "apple"}) == ["n2"]
    assert await seeded.get_note_count() == 4


async def test_delete_note(seeded: SQLiteRepository):
    assert await seeded.delete_note("n1") is True
    assert await seeded.delete_note("n1") is False
    assert await _keyword_ids(seeded, {"query": "starter"}) == []


async def test_list_notes(seeded: SQLiteRepository):
    notes = await seeded.list_notes()
    assert [n.id for n in notes] == ["n1", "n2", "r1", "r2"]


# --- Keyword search ---


async def test_search_keyword_ranks_with_bm25(seeded: SQLiteRepository):
    """Test FTS hits are 1-ranked with positive scores."""
    hits = await seeded.search_keyword(build_search_spec({"query": "pasta"}), 20)

    assert [h.id for h in hits] == ["r1"]
    assert hits[0].rank == 1
    assert hits[0].score > 0


async def test_search_keyword_stemming(seeded: SQLiteRepository):
    assert await _keyword_ids(seeded, {"query": "planting"}) == ["n2"]


async def test_search_keyword_searches_recipe_fields(seeded: SQLiteRepository):
    """Test ingredients and cooked notes are indexed."""
    assert await _keyword_ids(seeded, {"query": "parmesan"}) == ["r1"]
    assert await _keyword_ids(seeded, {"query": "kids"}) == ["r1"]


async def test_search_keyword_power_query(seeded: SQLiteRepository):
    """Test OR groups, negations and phrases."""
    ids = await _keyword_ids(seeded, {"query": "starter OR soup"})
    assert sorted(ids) == ["n1", "r2"]

    assert await _keyword_ids(seeded, {"query": "tomatoes -soup"}) == ["n2"]
    assert await _keyword_ids(seeded, {"query": '"lemon zest"'}) == ["r1"]
    assert await _keyword_ids(seeded, {"query": "-soup"}) == []


async def test_search_keyword_tolerates_fts_syntax(seeded: SQLiteRepository):
    """Test FTS operators in user input are treated as text."""
    assert await _keyword_ids(seeded, {"query": 'pasta AND "NEAR('}) == []
    assert await _keyword_ids(seeded, {"query": "pasta*"}) == ["r1"]


async def test_browse_orders_by_recency(seeded: SQLiteRepository):
    """Test wildcard queries return newest first with zero scores."""
    hits = await seeded.search_keyword(build_search_spec({"query": "*"}), 3)

    assert [h.id for h in hits] == ["n2", "r2", "r1"]
    assert all(h.score == 0.0 for h in hits)


# --- Facets ---


@pytest.mark.parametrize(
    ("request_", "expected"),
    [
        ({"scope": "recipes"}, ["r2", "r1"]),
        ({"scope": "notes"}, ["n2", "n1"]),
        ({"subjectId": "baking"}, ["n1"]),
        ({"status": "draft"}, ["n2"]),
        ({"tags": ["bread", "plants"]}, ["n2", "r1", "n1"]),
        ({"updatedFrom": "2024-01-03", "updatedTo": "2024-01-04"}, ["r2", "r1"]),
        ({"cuisine": "italian"}, ["r1"]),
        ({"category": ["SOUP"]}, ["r2"]),
        ({"keywords": "quick"}, ["r1"]),
        ({"cookTimeMax": 30}, ["r1"]),
        ({"includeIngredients": "TOMATO"}, ["r2"]),
        ({"excludeIngredients": "garlic", "scope": "recipes"}, ["r1"]),
        ({"cooked": "ever"}, ["r1"]),
        ({"cooked": "never", "scope": "recipes"}, ["r2"]),
        ({"cookedWithinDays": 7}, ["r1"]),
        ({"minAvgCookedRating": 4.5}, ["r1"]),
    ],
)
async def test_browse_filters(seeded: SQLiteRepository, request_: dict, expected: list[str]):
    """Test every facet narrows a recency browse."""
    assert await _keyword_ids(seeded, {"query": "", **request_}) == expected


async def test_keyword_search_applies_filters(seeded: SQLiteRepository):
    assert await _keyword_ids(seeded, {"query": "tomato", "scope": "recipes"}) == ["r2"]


async def test_ingredient_like_is_escaped(seeded: SQLiteRepository):
    assert await _keyword_ids(seeded, {"query": "", "includeIngredients": "%"}) == []


# --- Summaries ---


async def test_get_summaries(seeded: SQLiteRepository):
    """Test batch lookup omits unknown ids."""
    summaries = await seeded.get_summaries(["r1", "gone", "n1"])

    assert set(summaries) == {"r1", "n1"}
    assert summaries["r1"].doc_kind == "recipe"
    assert summaries["r1"].body == "Quick weeknight pasta."
    assert summaries["n1"].updated_at == _ts(1)
    assert await seeded.get_summaries([]) == {}


async def test_filter_ids(seeded: SQLiteRepository):
    spec = build_search_spec({"query": "x", "scope": "recipes"})
    assert await seeded.filter_ids(["n1", "r1", "r2", "gone"], spec) == {"r1", "r2"}
    assert await seeded.filter_ids([], spec) == set()

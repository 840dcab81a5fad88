"""Tests for the SQLite saved-search store."""

from pathlib import Path

import pytest

from kbsearch.config.errors import SavedSearchConflictError
from kbsearch.domains.saved_searches.service import SavedSearchService
from kbsearch.domains.search.filters import build_search_spec
from kbsearch.domains.search.models import Scope

from .repository import SQLiteRepository
from .saved_searches import SQLiteSavedSearchStore


@pytest.fixture
async def store(tmp_path: Path):
    repo = SQLiteRepository(tmp_path / "saved.db")
    await repo.initialize()
    yield SQLiteSavedSearchStore(repo)
    await repo.close()


async def test_create_and_list(store: SQLiteSavedSearchStore):
    spec = build_search_spec({"query": "pasta", "scope": "recipes", "tags": "quick"})
    saved = await store.create("Weeknight", spec)

    assert len(saved.id) == 32
    items = await store.list()
    assert [s.name for s in items] == ["Weeknight"]
    assert items[0].query == spec
    assert items[0].query.scope == Scope.RECIPES
    assert items[0].created_at is not None


async def test_duplicate_name_conflicts(store: SQLiteSavedSearchStore):
    """Test the first save succeeds and the second with the same name conflicts."""
    spec = build_search_spec({"query": "soup"})
    await store.create("Soups", spec)

    with pytest.raises(SavedSearchConflictError) as exc_info:
        await store.create("Soups", build_search_spec({"query": "stew"}))

    assert exc_info.value.details == {"name": "Soups"}
    assert len(await store.list()) == 1


async def test_list_most_recent_first(store: SQLiteSavedSearchStore):
    await store.create("first", build_search_spec({"query": "a"}))
    await store.create("second", build_search_spec({"query": "b"}))

    assert [s.name for s in await store.list()] == ["second", "first"]


async def test_delete(store: SQLiteSavedSearchStore):
    saved = await store.create("temp", build_search_spec({}))

    assert await store.delete(saved.id) is True
    assert await store.delete(saved.id) is False
    assert await store.list() == []


async def test_service_round_trip(store: SQLiteSavedSearchStore):
    """Test the service canonicalizes queries before they are stored."""
    service = SavedSearchService(store)
    await service.create("  Quick  ", {"q": "pasta", "limit": "500"})

    items = await service.list()
    assert items[0].name == "Quick"
    assert items[0].query.limit == 50

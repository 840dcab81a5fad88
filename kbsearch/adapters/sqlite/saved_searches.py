"""
SQLite Saved Search Store - Named SearchSpec persistence.

Name uniqueness is enforced by the table's UNIQUE constraint.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone

import aiosqlite

from kbsearch.config.errors import SavedSearchConflictError
from kbsearch.domains.saved_searches.models import SavedSearch
from kbsearch.domains.search.filters import build_search_spec
from kbsearch.domains.search.models import SearchSpec

from .repository import SQLiteRepository

logger = logging.getLogger(__name__)

__all__ = ["SQLiteSavedSearchStore"]


def _row_to_saved_search(row: aiosqlite.Row) -> SavedSearch:
    return SavedSearch(
        id=row["id"],
        name=row["name"],
        # Stored specs are re-normalized so older rows pick up current defaults
        query=build_search_spec(json.loads(row["query"])),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SQLiteSavedSearchStore:
    """
    Saved-search storage sharing the repository's connection.

    Example:
        >>> store = SQLiteSavedSearchStore(repo)
        >>> saved = await store.create("weeknight", spec)
    """

    def __init__(self, repository: SQLiteRepository) -> None:
        self._repo = repository

    async def create(self, name: str, spec: SearchSpec) -> SavedSearch:
        """Insert a saved search; duplicate names raise SavedSearchConflictError."""
        conn = await self._repo.get_connection()
        now = datetime.now(timezone.utc).isoformat()
        saved_id = uuid.uuid4().hex

        try:
            await conn.execute(
                """
                INSERT INTO saved_searches (id, name, query, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (saved_id, name, spec.model_dump_json(by_alias=True), now, now),
            )
            await conn.commit()
        except sqlite3.IntegrityError as e:
            await conn.rollback()
            raise SavedSearchConflictError(name) from e

        logger.debug("Inserted saved search %s", saved_id)
        return SavedSearch(id=saved_id, name=name, query=spec, created_at=now, updated_at=now)

    async def list(self) -> list[SavedSearch]:
        """All saved searches, most recently updated first."""
        conn = await self._repo.get_connection()
        cursor = await conn.execute(
            "SELECT * FROM saved_searches ORDER BY updated_at DESC, created_at DESC"
        )
        rows = await cursor.fetchall()
        return [_row_to_saved_search(row) for row in rows]

    async def delete(self, saved_search_id: str) -> bool:
        """Delete by id. Returns False if it did not exist."""
        conn = await self._repo.get_connection()
        cursor = await conn.execute("DELETE FROM saved_searches WHERE id = ?", (saved_search_id,))
        await conn.commit()
        return cursor.rowcount > 0

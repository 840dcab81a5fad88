"""
SQLite Repository - Note storage with FTS5 keyword search.

Features:
- Async operations via aiosqlite
- Full-text search with FTS5 (BM25 ranking, porter stemming)
- Facet filtering for notes and recipes
- Batch summary lookup for result assembly
- Saved-search side table
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from kbsearch.config.errors import SearchError, StorageError
from kbsearch.domains.search.documents import NoteDocument, RecipeDetails
from kbsearch.domains.search.models import DocumentSummary, RetrievalHit, SearchSpec
from kbsearch.domains.search.recipes import compute_cooked_search_fields

from .fts import compile_fts_query
from .sql_filters import build_filter_clauses

logger = logging.getLogger(__name__)

__all__ = ["SQLiteRepository"]

_SCHEMA = """
    -- Notes table (recipe facets denormalized for filtering)
    CREATE TABLE IF NOT EXISTS notes (
        pk INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        title TEXT NOT NULL DEFAULT '',
        summary TEXT,
        markdown TEXT NOT NULL DEFAULT '',
        subject_id TEXT,
        topic_id TEXT,
        status TEXT,
        tags TEXT NOT NULL DEFAULT '[]',
        tags_text TEXT NOT NULL DEFAULT '',
        doc_kind TEXT NOT NULL DEFAULT 'note',
        recipe_json TEXT,
        recipe_text TEXT NOT NULL DEFAULT '',
        cuisine TEXT,
        category TEXT NOT NULL DEFAULT '[]',
        keywords TEXT NOT NULL DEFAULT '[]',
        prep_time_minutes INTEGER,
        cook_time_minutes INTEGER,
        total_time_minutes INTEGER,
        ingredients TEXT NOT NULL DEFAULT '[]',
        cooked_count INTEGER NOT NULL DEFAULT 0,
        last_cooked_at TEXT,
        avg_cooked_rating REAL,
        embedding_hash TEXT,
        created_at TEXT,
        updated_at TEXT
    );

    -- FTS5 virtual table for full-text search
    CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
        title,
        summary,
        markdown,
        tags_text,
        recipe_text,
        content='notes',
        content_rowid='pk',
        tokenize='porter unicode61'
    );

    -- Triggers to keep FTS in sync
    CREATE TRIGGER IF NOT EXISTS notes_ai AFTER INSERT ON notes BEGIN
        INSERT INTO notes_fts(rowid, title, summary, markdown, tags_text, recipe_text)
        VALUES (new.pk, new.title, new.summary, new.markdown, new.tags_text, new.recipe_text);
    END;

    CREATE TRIGGER IF NOT EXISTS notes_ad AFTER DELETE ON notes BEGIN
        INSERT INTO notes_fts(notes_fts, rowid, title, summary, markdown, tags_text, recipe_text)
        VALUES ('delete', old.pk, old.title, old.summary, old.markdown, old.tags_text, old.recipe_text);
    END;

    CREATE TRIGGER IF NOT EXISTS notes_au AFTER UPDATE ON notes BEGIN
        INSERT INTO notes_fts(notes_fts, rowid, title, summary, markdown, tags_text, recipe_text)
        VALUES ('delete', old.pk, old.title, old.summary, old.markdown, old.tags_text, old.recipe_text);
        INSERT INTO notes_fts(rowid, title, summary, markdown, tags_text, recipe_text)
        VALUES (new.pk, new.title, new.summary, new.markdown, new.tags_text, new.recipe_text);
    END;

    -- Saved searches
    CREATE TABLE IF NOT EXISTS saved_searches (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        query TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );

    -- Indexes
    CREATE INDEX IF NOT EXISTS idx_notes_updated ON notes(updated_at);
    CREATE INDEX IF NOT EXISTS idx_notes_subject ON notes(subject_id);
    CREATE INDEX IF NOT EXISTS idx_notes_topic ON notes(topic_id);
    CREATE INDEX IF NOT EXISTS idx_notes_kind ON notes(doc_kind);
    CREATE INDEX IF NOT EXISTS idx_saved_searches_updated ON saved_searches(updated_at);
"""

_NOTE_COLUMNS = (
    "id",
    "title",
    "summary",
    "markdown",
    "subject_id",
    "topic_id",
    "status",
    "tags",
    "tags_text",
    "doc_kind",
    "recipe_json",
    "recipe_text",
    "cuisine",
    "category",
    "keywords",
    "prep_time_minutes",
    "cook_time_minutes",
    "total_time_minutes",
    "ingredients",
    "cooked_count",
    "last_cooked_at",
    "avg_cooked_rating",
    "embedding_hash",
    "created_at",
    "updated_at",
)


def utc_iso(value: datetime | None) -> str | None:
    """Serialize a timestamp as ISO-8601 UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _recipe_text(recipe: RecipeDetails, cooked_notes: str | None) -> str:
    """Recipe fields searchable through FTS."""
    parts: list[str] = [
        recipe.description or "",
        recipe.cuisine or "",
        " ".join(recipe.category),
        " ".join(recipe.keywords),
        "\n".join(recipe.ingredients),
        "\n".join(recipe.steps),
        cooked_notes or "",
    ]
    return "\n".join(p for p in parts if p)


def _note_row(note: NoteDocument, embedding_hash: str | None) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    row: dict[str, Any] = {
        "id": note.id,
        "title": note.title,
        "summary": note.summary,
        "markdown": note.markdown,
        "subject_id": note.subject_id,
        "topic_id": note.topic_id,
        "status": note.status,
        "tags": json.dumps(note.tags),
        "tags_text": " ".join(note.tags),
        "doc_kind": note.doc_kind,
        "recipe_json": None,
        "recipe_text": "",
        "cuisine": None,
        "category": "[]",
        "keywords": "[]",
        "prep_time_minutes": None,
        "cook_time_minutes": None,
        "total_time_minutes": None,
        "ingredients": "[]",
        "cooked_count": 0,
        "last_cooked_at": None,
        "avg_cooked_rating": None,
        "embedding_hash": embedding_hash,
        "created_at": utc_iso(note.created_at or note.updated_at or now),
        "updated_at": utc_iso(note.updated_at or now),
    }

    recipe = note.recipe
    if recipe is not None:
        cooked = compute_cooked_search_fields(recipe.cooked_history)
        row.update(
            recipe_json=recipe.model_dump_json(by_alias=True),
            recipe_text=_recipe_text(recipe, cooked.cooked_notes_text),
            cuisine=recipe.cuisine,
            category=json.dumps(recipe.category),
            keywords=json.dumps(recipe.keywords),
            prep_time_minutes=recipe.prep_time_minutes,
            cook_time_minutes=recipe.cook_time_minutes,
            total_time_minutes=recipe.total_time_minutes,
            ingredients=json.dumps([i.lower() for i in recipe.ingredients]),
            cooked_count=cooked.cooked_count,
            last_cooked_at=utc_iso(cooked.last_cooked_at),
            avg_cooked_rating=cooked.avg_cooked_rating,
        )
    return row


def _row_to_note(row: aiosqlite.Row) -> NoteDocument:
    recipe = None
    if row["recipe_json"]:
        recipe = RecipeDetails.model_validate(json.loads(row["recipe_json"]))
    return NoteDocument(
        id=row["id"],
        title=row["title"],
        summary=row["summary"],
        markdown=row["markdown"],
        subject_id=row["subject_id"],
        topic_id=row["topic_id"],
        status=row["status"],
        tags=json.loads(row["tags"] or "[]"),
        recipe=recipe,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SQLiteRepository:
    """
    SQLite repository for notes, keyword search and saved searches.

    Implements the KeywordRetriever and DocumentStore contracts.

    Example:
        >>> repo = SQLiteRepository("data/kbsearch.db")
        >>> await repo.initialize()
        >>> await repo.upsert_note(NoteDocument(id="n1", title="Lemon pasta"))
        >>> hits = await repo.search_keyword(build_search_spec({"query": "lemon"}), 20)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None

    async def get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = await aiosqlite.connect(str(self.db_path))
            except sqlite3.Error as e:
                raise StorageError(
                    f"cannot open database: {e}",
                    {"db_path": str(self.db_path)},
                ) from e
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self.get_connection()
        await conn.executescript(_SCHEMA)
        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    # --- Notes ---

    async def upsert_note(self, note: NoteDocument, embedding_hash: str | None = None) -> None:
        """Insert or replace a note; FTS is kept in sync by triggers."""
        conn = await self.get_connection()
        row = _note_row(note, embedding_hash)

        columns = ", ".join(_NOTE_COLUMNS)
        placeholders = ", ".join(f":{c}" for c in _NOTE_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _NOTE_COLUMNS if c != "id")

        await conn.execute(
            f"INSERT INTO notes ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}",
            row,
        )
        await conn.commit()

    async def get_note(self, note_id: str) -> NoteDocument | None:
        """Get note by ID."""
        conn = await self.get_connection()
        cursor = await conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,))
        row = await cursor.fetchone()

        if row:
            return _row_to_note(row)
        return None

    async def list_notes(self) -> list[NoteDocument]:
        """All notes in insertion order."""
        conn = await self.get_connection()
        cursor = await conn.execute("SELECT * FROM notes ORDER BY pk")
        rows = await cursor.fetchall()
        return [_row_to_note(row) for row in rows]

    async def delete_note(self, note_id: str) -> bool:
        """Delete a note. Returns False if it did not exist."""
        conn = await self.get_connection()
        cursor = await conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        await conn.commit()
        return cursor.rowcount > 0

    async def set_embedding_hash(self, note_id: str, embedding_hash: str) -> None:
        conn = await self.get_connection()
        await conn.execute(
            "UPDATE notes SET embedding_hash = ? WHERE id = ?",
            (embedding_hash, note_id),
        )
        await conn.commit()

    async def get_note_count(self) -> int:
        """Get total note count."""
        conn = await self.get_connection()
        cursor = await conn.execute("SELECT COUNT(*) FROM notes")
        row = await cursor.fetchone()
        return row[0] if row else 0

    # --- Search ---

    async def search_keyword(self, spec: SearchSpec, limit: int) -> list[RetrievalHit]:
        """
        Keyword search using FTS5, or a recency browse for wildcard queries.

        Args:
            spec: Normalized search spec
            limit: Maximum hits

        Returns:
            Hits in rank order; score is -bm25 (higher is better), 0 for browse
        """
        conn = await self.get_connection()
        clauses, params = build_filter_clauses(spec)

        if spec.is_wildcard:
            where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
            sql = f"""
                SELECT n.id, 0.0 AS score
                FROM notes n
                {where}
                ORDER BY n.updated_at DESC, n.id ASC
                LIMIT ?
            """
            cursor = await conn.execute(sql, (*params, limit))
        else:
            expression = compile_fts_query(spec.query)
            if expression is None:
                return []
            where = " AND ".join(["notes_fts MATCH ?", *clauses])
            sql = f"""
                SELECT n.id, -bm25(notes_fts) AS score
                FROM notes_fts
                JOIN notes n ON notes_fts.rowid = n.pk
                WHERE {where}
                ORDER BY bm25(notes_fts), n.updated_at DESC, n.id ASC
                LIMIT ?
            """
            try:
                cursor = await conn.execute(sql, (expression, *params, limit))
            except sqlite3.OperationalError as e:
                raise SearchError(
                    f"keyword query failed: {e}",
                    {"expression": expression},
                ) from e

        rows = await cursor.fetchall()
        return [
            RetrievalHit(id=row["id"], rank=i, score=float(row["score"]))
            for i, row in enumerate(rows, 1)
        ]

    async def filter_ids(self, ids: list[str], spec: SearchSpec) -> set[str]:
        """Subset of ids that pass the spec's scope and filters."""
        if not ids:
            return set()
        conn = await self.get_connection()
        clauses, params = build_filter_clauses(spec)
        placeholders = ", ".join("?" for _ in ids)
        where = " AND ".join([f"n.id IN ({placeholders})", *clauses])
        cursor = await conn.execute(f"SELECT n.id FROM notes n WHERE {where}", (*ids, *params))
        rows = await cursor.fetchall()
        return {row["id"] for row in rows}

    async def get_summaries(self, ids: list[str]) -> dict[str, DocumentSummary]:
        """Batch lookup of document summaries; unknown ids are omitted."""
        if not ids:
            return {}
        conn = await self.get_connection()
        placeholders = ", ".join("?" for _ in ids)
        cursor = await conn.execute(
            f"""
            SELECT id, title, summary, markdown, subject_id, topic_id, updated_at, doc_kind
            FROM notes
            WHERE id IN ({placeholders})
            """,
            tuple(ids),
        )
        rows = await cursor.fetchall()
        return {
            row["id"]: DocumentSummary(
                id=row["id"],
                title=row["title"],
                summary=row["summary"],
                body=row["markdown"],
                subject_id=row["subject_id"],
                topic_id=row["topic_id"],
                updated_at=row["updated_at"],
                doc_kind=row["doc_kind"],
            )
            for row in rows
        }

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

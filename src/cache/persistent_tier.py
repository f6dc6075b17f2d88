# src/cache/persistent_tier.py — v2
"""SQLite-backed persistent tier shared across sessions and processes.

Uses stdlib sqlite3 — no external dependency. Rows are keyed by a unique
exact digest (INSERT OR REPLACE keeps one row per digest) and carry a
non-unique, indexed subject name used for semantic lookup.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterator

from pydantic import ValidationError

from bitecache.cache.base_tier import BaseTier
from bitecache.cache.models import CacheStats, PersistedEntry
from bitecache.cache.stats import build_stats
from bitecache.core.errors import StorageError
from bitecache.core.models import AnalysisRecord

logger = logging.getLogger(__name__)

UNKNOWN_SUBJECT = "unknown"
SUBJECT_CANDIDATE_LIMIT = 50

# Base table as first shipped; subject_name arrives through _migrate().
_SCHEMA = """
CREATE TABLE IF NOT EXISTS analyses (
    id TEXT PRIMARY KEY,
    exact_digest TEXT UNIQUE NOT NULL,
    record TEXT NOT NULL,
    created_at TEXT NOT NULL
);
"""

_SUBJECT_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_analyses_subject_name ON analyses(subject_name)"
)

_COLUMNS = "id, exact_digest, subject_name, record, created_at"


def normalize_subject(name: str | None) -> str:
    """Lowercase, trim and collapse whitespace in a subject name."""
    if not name:
        return ""
    return re.sub(r"\s+", " ", name).strip().lower()


def _subject_from_payload(payload: str) -> str:
    """Extract a subject name from a serialized record, or the sentinel."""
    try:
        data = json.loads(payload)
    except (TypeError, ValueError):
        return UNKNOWN_SUBJECT
    if not isinstance(data, dict):
        return UNKNOWN_SUBJECT
    name = data.get("subject_name") or data.get("dishName")
    if not isinstance(name, str):
        return UNKNOWN_SUBJECT
    return normalize_subject(name) or UNKNOWN_SUBJECT


def _to_db_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistentTier(BaseTier):
    """Durable store addressable by exact digest and by subject name."""

    name = "persistent"

    def __init__(
        self,
        db_path: Path | str = ":memory:",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or _utcnow
        if str(db_path) == ":memory:":
            self._db_path: Path | None = None
            target = ":memory:"
        else:
            self._db_path = Path(db_path).expanduser()
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self._db_path)

        with self._guard("open"):
            self._conn = sqlite3.connect(target)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
            self._migrate()

    # --- Lookups ---

    async def lookup_exact(self, digest: str) -> PersistedEntry | None:
        """Retrieve the row stored for an exact digest."""
        with self._guard("lookup_exact"):
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM analyses WHERE exact_digest = ?",
                (digest,),
            ).fetchone()
        return self._row_to_entry(row) if row else None

    async def lookup_by_subject(self, name: str) -> PersistedEntry | None:
        """Semantic lookup by subject name, most recent row wins.

        Case-insensitive exact match first; otherwise a stored name that
        starts with the query or contains it as a whole word.
        """
        query = normalize_subject(name)
        if not query or query == UNKNOWN_SUBJECT:
            return None

        with self._guard("lookup_by_subject"):
            row = self._conn.execute(
                f"""SELECT {_COLUMNS} FROM analyses
                    WHERE subject_name = ?
                    ORDER BY created_at DESC, rowid DESC LIMIT 1""",
                (query,),
            ).fetchone()
            if row:
                return self._row_to_entry(row)

            pattern = "%" + re.sub(r"([%_\\])", r"\\\1", query) + "%"
            candidates = self._conn.execute(
                f"""SELECT {_COLUMNS} FROM analyses
                    WHERE subject_name LIKE ? ESCAPE '\\'
                    ORDER BY created_at DESC, rowid DESC LIMIT ?""",
                (pattern, SUBJECT_CANDIDATE_LIMIT),
            ).fetchall()

        whole_word = re.compile(rf"\b{re.escape(query)}\b")
        for candidate in candidates:
            stored = candidate[2] or ""
            if stored.startswith(query) or whole_word.search(stored):
                entry = self._row_to_entry(candidate)
                if entry is not None:
                    return entry
        return None

    async def list_entries(self) -> list[PersistedEntry]:
        with self._guard("list_entries"):
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM analyses ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        entries = [self._row_to_entry(row) for row in rows]
        return [e for e in entries if e is not None]

    async def count(self, digest: str | None = None) -> int:
        """Number of rows, optionally restricted to one digest."""
        with self._guard("count"):
            if digest is None:
                row = self._conn.execute("SELECT COUNT(*) FROM analyses").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM analyses WHERE exact_digest = ?", (digest,)
                ).fetchone()
        return int(row[0])

    # --- Writes ---

    async def put(
        self, digest: str, subject_name: str, record: AnalysisRecord
    ) -> PersistedEntry:
        """Insert or replace the row for *digest*."""
        entry = PersistedEntry(
            id=uuid.uuid4().hex,
            exact_digest=digest,
            subject_name=normalize_subject(subject_name) or UNKNOWN_SUBJECT,
            record=record,
            created_at=self._clock(),
        )
        with self._guard("put"), self._conn:
            self._conn.execute(
                f"""INSERT OR REPLACE INTO analyses ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?)""",
                (
                    entry.id,
                    entry.exact_digest,
                    entry.subject_name,
                    record.model_dump_json(),
                    _to_db_time(entry.created_at),
                ),
            )
        return entry

    async def delete_all(self) -> int:
        return self._delete("DELETE FROM analyses", ())

    async def delete_older_than(self, days: float) -> int:
        cutoff = self._clock() - timedelta(days=days)
        return self._delete(
            "DELETE FROM analyses WHERE created_at < ?", (_to_db_time(cutoff),)
        )

    async def delete_by_category(self, category: str) -> int:
        return self._delete(
            "DELETE FROM analyses WHERE lower(json_extract(record, '$.category')) = ?",
            (category.strip().lower(),),
        )

    async def delete_by_calories_above(self, threshold: float) -> int:
        return self._delete(
            """DELETE FROM analyses
               WHERE CAST(json_extract(record, '$.nutrition.calories') AS REAL) > ?""",
            (threshold,),
        )

    async def stats(self) -> CacheStats:
        entries = await self.list_entries()
        with self._guard("stats"):
            row = self._conn.execute(
                "SELECT COALESCE(SUM(length(record)), 0) FROM analyses"
            ).fetchone()
        return build_stats(
            ((e.record, e.created_at) for e in entries), size_bytes=int(row[0])
        )

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- Internal helpers ---

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            raise StorageError(f"Persistent tier {operation} failed: {e}") from e

    def _delete(self, sql: str, params: tuple) -> int:
        with self._guard("delete"), self._conn:
            cursor = self._conn.execute(sql, params)
        removed = cursor.rowcount
        logger.info("Removed %d persistent cache rows", removed)
        return removed

    def _migrate(self) -> None:
        """Additive migration: add and backfill the subject_name column."""
        columns = {row[1] for row in self._conn.execute("PRAGMA table_info(analyses)")}
        if "subject_name" not in columns:
            logger.info("Migrating persistent tier: adding subject_name column")
            with self._conn:
                self._conn.execute("ALTER TABLE analyses ADD COLUMN subject_name TEXT")
                rows = self._conn.execute("SELECT id, record FROM analyses").fetchall()
                for row_id, payload in rows:
                    self._conn.execute(
                        "UPDATE analyses SET subject_name = ? WHERE id = ?",
                        (_subject_from_payload(payload), row_id),
                    )
            if rows:
                logger.info("Backfilled subject_name for %d rows", len(rows))
        self._conn.execute(_SUBJECT_INDEX)

    @staticmethod
    def _row_to_entry(row: tuple) -> PersistedEntry | None:
        row_id, digest, subject, payload, created_at = row
        try:
            record = AnalysisRecord.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Skipping unreadable persisted record %s: %s", row_id, e)
            return None
        return PersistedEntry(
            id=row_id,
            exact_digest=digest,
            subject_name=subject or UNKNOWN_SUBJECT,
            record=record,
            created_at=datetime.fromisoformat(created_at),
        )

"""Persistent snapshot of the last sync run's status.

The orchestrator owns a frozen :class:`SyncStatus` value and hands every
new version to :meth:`StatusStore.save`, which replaces the single stored
row in one statement.  Readers (API, CLI, a second process) therefore see
either the previous snapshot or the new one, never a half-written mix.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog
from pydantic import ValidationError

from rostersync.models.sync import SyncStatus
from rostersync.utils.logging import get_logger

_DEFAULT_DB_PATH = Path("data/sync_status.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS sync_status (
    id          INTEGER PRIMARY KEY CHECK (id = 1),
    payload     TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL
);
"""

_REPLACE_SQL = """\
INSERT INTO sync_status (id, payload, updated_at) VALUES (1, ?, ?)
ON CONFLICT(id) DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at;
"""


class StatusStore:
    """Single-row SQLite store for the current :class:`SyncStatus`."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            yield db

    async def initialize(self) -> None:
        """Create the status table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.commit()

    async def save(self, status: SyncStatus) -> None:
        """Replace the stored snapshot with *status*."""
        async with self._connect() as db:
            await db.execute(
                _REPLACE_SQL,
                (status.model_dump_json(), datetime.now(tz=timezone.utc).isoformat()),  # noqa: UP017
            )
            await db.commit()
        self._logger.debug("sync_status_saved", status=status.status.value)

    async def load(self) -> SyncStatus:
        """Return the stored snapshot, or a ``never_run`` status when empty."""
        async with self._connect() as db:
            cursor = await db.execute("SELECT payload FROM sync_status WHERE id = 1")
            row = await cursor.fetchone()
        if row is None:
            return SyncStatus()
        try:
            return SyncStatus.model_validate_json(row[0])
        except ValidationError as exc:
            self._logger.warning("sync_status_unreadable", error=str(exc))
            return SyncStatus()

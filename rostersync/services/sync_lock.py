"""Cross-process run guard backed by a single SQLite row.

At most one sync run may be active per deployment, whether it was started
by the API, the CLI or a scheduler.  The lock lives in its own SQLite file
so every process on the host sees the same record.

``acquire`` runs in a ``BEGIN IMMEDIATE`` transaction: the stale-record
check and the insert happen under SQLite's write lock, so two processes
racing for the lock cannot both see "free".  A record older than
``max_age_seconds`` is treated as abandoned (the owner crashed) and
reclaimed; the reclaim is logged.
"""

from __future__ import annotations

import json
import os
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from rostersync.models.sync import SyncLockInfo
from rostersync.utils.logging import get_logger

_DEFAULT_DB_PATH = Path("data/sync_lock.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS sync_lock (
    name             TEXT    PRIMARY KEY,
    acquired_at      TEXT    NOT NULL,
    owner_pid        INTEGER NOT NULL,
    owner_id         TEXT    NOT NULL,
    request_id       TEXT    NOT NULL,
    max_age_seconds  REAL    NOT NULL,
    metadata         TEXT    NOT NULL DEFAULT '{}'
);
"""

_LOCK_NAME = "artist_sync"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class SyncLock:
    """Single-holder lock with staleness recovery.

    Parameters
    ----------
    db_path:
        SQLite file shared by every process of the deployment.
    max_age_seconds:
        Age after which a held lock is presumed abandoned.
    clock:
        Returns the current UTC time; injectable for tests.
    owner_id:
        Identifies this process instance in the lock record.  Defaults to a
        random id so two processes with recycled PIDs are still distinct.
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        max_age_seconds: float = 3600.0,
        clock: Callable[[], datetime] = _utcnow,
        owner_id: str | None = None,
        busy_timeout: float = 10.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._max_age = max_age_seconds
        self._clock = clock
        self._owner_id = owner_id or uuid.uuid4().hex
        self._busy_timeout = busy_timeout
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def max_age_seconds(self) -> float:
        return self._max_age

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(
            str(self._db_path),
            timeout=self._busy_timeout,
            isolation_level=None,
        ) as db:
            db.row_factory = aiosqlite.Row
            yield db

    async def initialize(self) -> None:
        """Create the lock table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_TABLE_SQL)

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    async def acquire(self, request_id: str, metadata: dict[str, Any] | None = None) -> bool:
        """Try to take the lock for *request_id*.

        Returns
        -------
        bool
            ``True`` if this call now holds the lock; ``False`` if a fresh
            lock is held by someone else.
        """
        now = self._clock()
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                existing = await _fetch_info(db)
                if existing is not None:
                    age = existing.age_seconds(now)
                    if age < existing.max_age_seconds:
                        await db.execute("ROLLBACK")
                        self._logger.info(
                            "sync_lock_busy",
                            request_id=request_id,
                            holder_request_id=existing.request_id,
                            age_s=round(age, 1),
                        )
                        return False
                    await db.execute("DELETE FROM sync_lock WHERE name = ?", (_LOCK_NAME,))
                    self._logger.warning(
                        "stale_sync_lock_reclaimed",
                        request_id=request_id,
                        stale_request_id=existing.request_id,
                        stale_owner_pid=existing.owner_pid,
                        age_s=round(age, 1),
                        max_age_s=existing.max_age_seconds,
                    )

                await db.execute(
                    "INSERT INTO sync_lock "
                    "(name, acquired_at, owner_pid, owner_id, request_id, max_age_seconds, metadata) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        _LOCK_NAME,
                        now.isoformat(),
                        os.getpid(),
                        self._owner_id,
                        request_id,
                        self._max_age,
                        json.dumps(metadata or {}),
                    ),
                )
                await db.execute("COMMIT")
            except BaseException:
                if db.in_transaction:
                    await db.execute("ROLLBACK")
                raise

        self._logger.info("sync_lock_acquired", request_id=request_id)
        return True

    async def release(self, request_id: str | None = None) -> bool:
        """Release the lock.  Idempotent.

        Parameters
        ----------
        request_id:
            When given, only a lock held by that request is removed, so a
            run whose stale lock was reclaimed cannot release its
            successor's lock.

        Returns
        -------
        bool
            ``True`` if a record was removed.
        """
        async with self._connect() as db:
            if request_id is None:
                cursor = await db.execute("DELETE FROM sync_lock WHERE name = ?", (_LOCK_NAME,))
            else:
                cursor = await db.execute(
                    "DELETE FROM sync_lock WHERE name = ? AND request_id = ?",
                    (_LOCK_NAME, request_id),
                )
            removed = cursor.rowcount > 0

        if removed:
            self._logger.info("sync_lock_released", request_id=request_id)
        else:
            self._logger.debug("sync_lock_release_noop", request_id=request_id)
        return removed

    async def force_release(self) -> SyncLockInfo | None:
        """Operator action: drop the lock regardless of owner.

        Returns the record that was removed, if any.
        """
        async with self._connect() as db:
            info = await _fetch_info(db)
        await self.release()
        if info is not None:
            self._logger.warning(
                "sync_lock_force_released",
                request_id=info.request_id,
                owner_pid=info.owner_pid,
            )
        return info

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    async def info(self) -> SyncLockInfo | None:
        """Return the lock record while it is valid; ``None`` when free or stale."""
        async with self._connect() as db:
            info = await _fetch_info(db)
        if info is None or info.age_seconds(self._clock()) >= info.max_age_seconds:
            return None
        return info

    async def is_locked(self) -> bool:
        """``True`` if a non-stale lock is held."""
        return await self.info() is not None

    @asynccontextmanager
    async def hold(self, request_id: str, metadata: dict[str, Any] | None = None) -> AsyncIterator[bool]:
        """Context manager form: yields whether the lock was acquired and
        releases it on exit when it was."""
        acquired = await self.acquire(request_id, metadata)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(request_id)


async def _fetch_info(db: aiosqlite.Connection) -> SyncLockInfo | None:
    cursor = await db.execute(
        "SELECT acquired_at, owner_pid, owner_id, request_id, max_age_seconds, metadata "
        "FROM sync_lock WHERE name = ?",
        (_LOCK_NAME,),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return SyncLockInfo(
        acquired_at=datetime.fromisoformat(row["acquired_at"]),
        owner_pid=row["owner_pid"],
        owner_id=row["owner_id"],
        request_id=row["request_id"],
        max_age_seconds=row["max_age_seconds"],
        metadata=json.loads(row["metadata"] or "{}"),
    )

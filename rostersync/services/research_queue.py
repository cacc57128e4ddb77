"""Durable research queue and research-result cache (SQLite via aiosqlite).

Two tables, both keyed by canonical identity:

``queue_entries``
    One row per artist awaiting or having had research, with its
    :class:`~rostersync.models.queue.QueueStatus`.
``research_results``
    The cached :class:`~rostersync.models.research.ResearchResult` JSON.

Every write is a single atomic statement or an explicit
``BEGIN IMMEDIATE`` transaction, so concurrent callers (other coroutines,
the API process, a cron run) cannot lose updates:

- ``enqueue`` is ``INSERT ... ON CONFLICT DO NOTHING``; two concurrent
  enqueues of one identity produce one row and exactly one ``True``.
- Status transitions are compare-and-swap ``UPDATE ... WHERE status = ?``.
  Zero affected rows means the entry was not in the expected state and
  raises :class:`InvalidTransitionError`.
- ``save_result`` upserts the result and completes the entry in one
  transaction.

Connections run in autocommit mode (``isolation_level=None``) so that
multi-statement operations control their own transaction boundaries.
"""

from __future__ import annotations

import asyncio
import json
from collections import Counter
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from rostersync.models.artist import ArtistCandidate
from rostersync.models.queue import QueueEntry, QueueStats, QueueStatus
from rostersync.models.research import ResearchResult
from rostersync.utils.errors import InvalidTransitionError
from rostersync.utils.logging import get_logger

_DEFAULT_DB_PATH = Path("data/research_queue.db")

_CREATE_ENTRIES_SQL = """\
CREATE TABLE IF NOT EXISTS queue_entries (
    canonical_identity  TEXT    PRIMARY KEY,
    display_name        TEXT    NOT NULL,
    genres              TEXT    NOT NULL DEFAULT '[]',
    popularity          INTEGER NOT NULL DEFAULT 0,
    added_at            TEXT    NOT NULL,
    status              TEXT    NOT NULL DEFAULT 'pending',
    processing_at       TEXT,
    completed_at        TEXT,
    failed_at           TEXT,
    error               TEXT
);
"""

_CREATE_RESULTS_SQL = """\
CREATE TABLE IF NOT EXISTS research_results (
    canonical_identity  TEXT    PRIMARY KEY,
    payload             TEXT    NOT NULL,
    updated_at          TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_queue_status ON queue_entries(status, added_at);",
]

_ENTRY_COLUMNS = (
    "canonical_identity, display_name, genres, popularity, added_at, status, "
    "processing_at, completed_at, failed_at, error"
)

_INSERT_ENTRY_SQL = """\
INSERT INTO queue_entries (canonical_identity, display_name, genres, popularity, added_at, status)
VALUES (?, ?, ?, ?, ?, 'pending')
ON CONFLICT(canonical_identity) DO NOTHING;
"""

_UPSERT_RESULT_SQL = """\
INSERT INTO research_results (canonical_identity, payload, updated_at)
VALUES (?, ?, ?)
ON CONFLICT(canonical_identity)
DO UPDATE SET payload    = excluded.payload,
              updated_at = excluded.updated_at;
"""

_TRANSITION_SQL = """\
UPDATE queue_entries
SET status = ?, {stamp_column} = ?, error = ?
WHERE canonical_identity = ? AND status = ?;
"""

_RESET_SQL = """\
UPDATE queue_entries
SET status = 'pending', processing_at = NULL, failed_at = NULL, error = NULL
WHERE canonical_identity = ? AND status = 'failed';
"""


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ResearchQueue:
    """Durable, resumable research queue keyed by canonical identity.

    Parameters
    ----------
    db_path:
        SQLite database file; parent directories are created on
        :meth:`initialize`.
    clock:
        Returns the current UTC time; injectable for tests.
    busy_timeout:
        Seconds a writer waits for another process's write lock.
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        clock: Callable[[], datetime] = _utcnow,
        busy_timeout: float = 10.0,
    ) -> None:
        self._db_path = Path(db_path)
        self._clock = clock
        self._busy_timeout = busy_timeout
        self._logger: structlog.BoundLogger = get_logger(__name__)
        # Serializes read-then-write sequences per identity within this process.
        # An entry lives only while some coroutine holds or awaits it.
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._key_lock_users: Counter[str] = Counter()

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(
            str(self._db_path),
            timeout=self._busy_timeout,
            isolation_level=None,
        ) as db:
            db.row_factory = aiosqlite.Row
            yield db

    @asynccontextmanager
    async def _identity_lock(self, identity: str) -> AsyncIterator[None]:
        lock = self._key_locks.setdefault(identity, asyncio.Lock())
        self._key_lock_users[identity] += 1
        try:
            async with lock:
                yield
        finally:
            self._key_lock_users[identity] -= 1
            if not self._key_lock_users[identity]:
                del self._key_lock_users[identity]
                del self._key_locks[identity]

    async def initialize(self) -> None:
        """Create the tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_ENTRIES_SQL)
            await db.execute(_CREATE_RESULTS_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
        self._logger.info("research_queue_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    async def enqueue(self, candidate: ArtistCandidate) -> bool:
        """Insert a pending entry for *candidate* unless one already exists.

        Returns
        -------
        bool
            ``True`` if a new entry was created; ``False`` for a duplicate
            or an unresolvable (empty) identity.
        """
        return await self.enqueue_many([candidate]) == 1

    async def enqueue_many(self, candidates: Iterable[ArtistCandidate]) -> int:
        """Enqueue several candidates; returns how many new entries were created.

        The same identity appearing twice in *candidates* is counted once.
        """
        added = 0
        now = self._clock().isoformat()
        async with self._connect() as db:
            for candidate in candidates:
                identity = candidate.canonical_identity
                if not identity:
                    self._logger.warning(
                        "enqueue_unresolvable_identity",
                        display_name=candidate.display_name,
                    )
                    continue
                cursor = await db.execute(
                    _INSERT_ENTRY_SQL,
                    (
                        identity,
                        candidate.display_name,
                        json.dumps(candidate.genres),
                        candidate.popularity,
                        now,
                    ),
                )
                if cursor.rowcount == 1:
                    added += 1
                    self._logger.debug("queue_entry_added", identity=identity)
        if added:
            self._logger.info("queue_enqueued", added=added)
        return added

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_pending(self) -> list[QueueEntry]:
        """Return pending entries, oldest first."""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM queue_entries "
                "WHERE status = 'pending' ORDER BY added_at, rowid",
            )
            rows = await cursor.fetchall()
        return [_row_to_entry(row) for row in rows]

    async def get_entry(self, identity: str) -> QueueEntry | None:
        """Return the entry for *identity*, or ``None``."""
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM queue_entries WHERE canonical_identity = ?",
                (identity,),
            )
            row = await cursor.fetchone()
        return _row_to_entry(row) if row is not None else None

    async def get_result(self, identity: str) -> ResearchResult | None:
        """Return the cached research result for *identity*, or ``None``."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT payload FROM research_results WHERE canonical_identity = ?",
                (identity,),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return ResearchResult.model_validate_json(row["payload"])

    async def has_result(self, identity: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT 1 FROM research_results WHERE canonical_identity = ?",
                (identity,),
            )
            return await cursor.fetchone() is not None

    async def stats(self) -> QueueStats:
        """Return counts per status and the number of cached results."""
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT status, COUNT(*) AS n FROM queue_entries GROUP BY status",
            )
            counts = {row["status"]: row["n"] for row in await cursor.fetchall()}
            cursor = await db.execute("SELECT COUNT(*) AS n FROM research_results")
            researched = (await cursor.fetchone())["n"]

        return QueueStats(
            total=sum(counts.values()),
            pending=counts.get(QueueStatus.PENDING.value, 0),
            processing=counts.get(QueueStatus.PROCESSING.value, 0),
            completed=counts.get(QueueStatus.COMPLETED.value, 0),
            failed=counts.get(QueueStatus.FAILED.value, 0),
            total_researched=researched,
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def mark_processing(self, identity: str) -> None:
        """Move *identity* from pending to processing."""
        await self._transition(identity, QueueStatus.PENDING, QueueStatus.PROCESSING, "processing_at")

    async def mark_completed(self, identity: str) -> None:
        """Move *identity* from processing to completed."""
        await self._transition(identity, QueueStatus.PROCESSING, QueueStatus.COMPLETED, "completed_at")

    async def mark_failed(self, identity: str, error: str) -> None:
        """Move *identity* from processing to failed, recording *error*."""
        await self._transition(
            identity, QueueStatus.PROCESSING, QueueStatus.FAILED, "failed_at", error=error
        )

    async def reset(self, identity: str) -> None:
        """Operator action: move a failed entry back to pending.

        Raises
        ------
        InvalidTransitionError
            If the entry does not exist or is not failed.
        """
        async with self._identity_lock(identity), self._connect() as db:
            cursor = await db.execute(_RESET_SQL, (identity,))
            if cursor.rowcount == 1:
                self._logger.info("queue_entry_reset", identity=identity)
                return
            current = await _current_status(db, identity)
        raise InvalidTransitionError(
            message=f"Cannot reset '{identity}' from {current or 'missing'} to pending",
        )

    async def _transition(
        self,
        identity: str,
        source: QueueStatus,
        target: QueueStatus,
        stamp_column: str,
        error: str | None = None,
    ) -> None:
        sql = _TRANSITION_SQL.format(stamp_column=stamp_column)
        async with self._identity_lock(identity), self._connect() as db:
            cursor = await db.execute(
                sql,
                (target.value, self._clock().isoformat(), error, identity, source.value),
            )
            if cursor.rowcount == 1:
                self._logger.debug(
                    "queue_transition",
                    identity=identity,
                    source=source.value,
                    target=target.value,
                )
                return
            current = await _current_status(db, identity)
        raise InvalidTransitionError(
            message=f"Cannot move '{identity}' from {current or 'missing'} to {target.value}",
        )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def save_result(self, identity: str, result: ResearchResult) -> None:
        """Upsert the research result and complete the matching entry.

        Runs in one ``BEGIN IMMEDIATE`` transaction.  An entry in
        ``processing`` moves to ``completed``; an entry already
        ``completed`` keeps its status (the result is refreshed); an
        identity with no entry only gets its result cached.

        Raises
        ------
        InvalidTransitionError
            If the entry is ``pending`` or ``failed``: completing it would
            skip a state.  The result is not written.
        """
        if result.canonical_identity != identity:
            result = result.model_copy(update={"canonical_identity": identity})
        now = self._clock().isoformat()

        async with self._identity_lock(identity), self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                current = await _current_status(db, identity)
                if current in (QueueStatus.PENDING.value, QueueStatus.FAILED.value):
                    raise InvalidTransitionError(
                        message=f"Cannot save research for '{identity}' while {current}",
                    )
                await db.execute(
                    _UPSERT_RESULT_SQL,
                    (identity, result.model_dump_json(), now),
                )
                if current == QueueStatus.PROCESSING.value:
                    await db.execute(
                        "UPDATE queue_entries SET status = 'completed', completed_at = ? "
                        "WHERE canonical_identity = ? AND status = 'processing'",
                        (now, identity),
                    )
                await db.execute("COMMIT")
            except BaseException:
                if db.in_transaction:
                    await db.execute("ROLLBACK")
                raise

        self._logger.info("research_result_saved", identity=identity, entry_status=current)

    async def invalidate_result(self, identity: str) -> bool:
        """Delete the cached result for *identity*; ``True`` if one existed."""
        async with self._connect() as db:
            cursor = await db.execute(
                "DELETE FROM research_results WHERE canonical_identity = ?",
                (identity,),
            )
            removed = cursor.rowcount > 0
        if removed:
            self._logger.info("research_result_invalidated", identity=identity)
        return removed

    async def cleanup_completed(self) -> int:
        """Delete completed entries (results stay cached); returns the count."""
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM queue_entries WHERE status = 'completed'")
            removed = cursor.rowcount
        self._logger.info("queue_cleanup", removed=removed)
        return removed


async def _current_status(db: aiosqlite.Connection, identity: str) -> str | None:
    cursor = await db.execute(
        "SELECT status FROM queue_entries WHERE canonical_identity = ?",
        (identity,),
    )
    row = await cursor.fetchone()
    return row["status"] if row is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_entry(row: aiosqlite.Row) -> QueueEntry:
    return QueueEntry(
        canonical_identity=row["canonical_identity"],
        display_name=row["display_name"],
        genres=json.loads(row["genres"] or "[]"),
        popularity=row["popularity"],
        added_at=datetime.fromisoformat(row["added_at"]),
        status=QueueStatus(row["status"]),
        processing_at=_parse_ts(row["processing_at"]),
        completed_at=_parse_ts(row["completed_at"]),
        failed_at=_parse_ts(row["failed_at"]),
        error=row["error"],
    )

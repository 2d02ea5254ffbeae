"""AssignmentStore implementation backed by a local SQLite database."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from pydantic import ValidationError

from castellan.errors import StorageError
from castellan.interfaces.rbac import Assignment
from castellan.interfaces.store import RecordType, Storable, StoreRecord, WriteOutcome, as_record

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Columns v3..v5 are reserved and always written as ''.
_SCHEMA = """\
CREATE TABLE IF NOT EXISTS authz_rule (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    record_type TEXT NOT NULL,
    subject TEXT NOT NULL,
    role TEXT NOT NULL,
    tenant TEXT NOT NULL,
    v3 TEXT NOT NULL DEFAULT '',
    v4 TEXT NOT NULL DEFAULT '',
    v5 TEXT NOT NULL DEFAULT '',
    CONSTRAINT authz_rule_unique UNIQUE (record_type, subject, role, tenant)
);
CREATE INDEX IF NOT EXISTS idx_authz_rule_type ON authz_rule(record_type);
CREATE INDEX IF NOT EXISTS idx_authz_rule_subject_role_tenant ON authz_rule(subject, role, tenant);
CREATE INDEX IF NOT EXISTS idx_authz_rule_role_tenant ON authz_rule(role, tenant);
"""

_INSERT = (
    "INSERT OR IGNORE INTO authz_rule (record_type, subject, role, tenant) VALUES (?, ?, ?, ?)"
)

# SQLite VM instructions between deadline checks.
_PROGRESS_STEPS = 1000

_RETRYABLE_MARKERS = ("locked", "busy", "interrupted")


def _is_retryable(exc: sqlite3.Error) -> bool:
    text = str(exc).lower()
    return isinstance(exc, sqlite3.OperationalError) and any(m in text for m in _RETRYABLE_MARKERS)


class SQLiteAssignmentStore:
    """AssignmentStore using SQLite with WAL mode.

    Only rows tagged ``assignment`` are ever written. Calls carrying any other
    record type return ``WriteOutcome.ignored`` without touching the database.

    Every call is bounded by ``timeout`` seconds: the busy timeout covers lock
    waits and a progress handler interrupts statements that run past the
    deadline. Both surface as a retryable StorageError.
    """

    def __init__(self, db_path: str = ".castellan/authz.db", timeout: float = 5.0) -> None:
        if db_path != ":memory:":
            path = Path(db_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            db_path = str(path)

        self.db_path = db_path
        self.timeout = timeout
        self._lock = threading.Lock()
        try:
            # Autocommit; save() opens its own transaction.
            self._conn = sqlite3.connect(
                self.db_path, isolation_level=None, timeout=timeout, check_same_thread=False
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            logger.exception("failed to open assignment store at %s", self.db_path)
            raise StorageError("open", e, retryable=_is_retryable(e)) from e

    # -- helpers ---------------------------------------------------------------

    @contextmanager
    def _deadline(self) -> Iterator[None]:
        expires = time.monotonic() + self.timeout
        self._conn.set_progress_handler(lambda: int(time.monotonic() > expires), _PROGRESS_STEPS)
        try:
            yield
        finally:
            self._conn.set_progress_handler(None, 0)

    def _run(self, operation: str, fn: Callable[[sqlite3.Cursor], T]) -> T:
        with self._lock, self._deadline():
            cursor = self._conn.cursor()
            try:
                return fn(cursor)
            except sqlite3.Error as e:
                if self._conn.in_transaction:
                    self._conn.set_progress_handler(None, 0)
                    self._conn.rollback()
                logger.warning("assignment store %s failed on %s: %r", operation, self.db_path, e)
                raise StorageError(operation, e, retryable=_is_retryable(e)) from e

    def _ignore(self, operation: str, record: StoreRecord) -> WriteOutcome:
        logger.debug(
            "assignment store %s ignoring %s record %s",
            operation,
            record.record_type.value,
            record.values,
        )
        return WriteOutcome.ignored

    # -- AssignmentStore protocol ----------------------------------------------

    def load(self) -> set[Assignment]:
        """Read every row and return the assignment ones. Other tags are skipped."""
        rows = self._run(
            "load",
            lambda cur: cur.execute(
                "SELECT record_type, subject, role, tenant FROM authz_rule"
            ).fetchall(),
        )

        result: set[Assignment] = set()
        skipped = 0
        for record_type, subject, role, tenant in rows:
            if record_type != RecordType.assignment.value:
                skipped += 1
                continue
            try:
                result.add(Assignment(user_id=subject, role=role, tenant=tenant))
            except ValidationError as e:
                logger.error("invalid assignment row (%r, %r, %r)", subject, role, tenant)
                raise StorageError("load", e) from e

        if skipped:
            logger.debug("skipped %d non-assignment rows while loading", skipped)
        return result

    def save(self, records: Iterable[Storable]) -> None:
        """Replace every stored assignment with ``records`` in one transaction.

        On failure the transaction is rolled back and the previous rows remain.
        """
        rows: list[tuple[str, str, str, str]] = []
        for item in records:
            record = as_record(item)
            if not record.is_assignment:
                self._ignore("save", record)
                continue
            rows.append((record.record_type.value, *record.to_assignment().as_tuple()))

        def _save(cur: sqlite3.Cursor) -> None:
            cur.execute("BEGIN IMMEDIATE")
            cur.execute(
                "DELETE FROM authz_rule WHERE record_type = ?", (RecordType.assignment.value,)
            )
            cur.executemany(_INSERT, rows)
            cur.execute("COMMIT")

        self._run("save", _save)

    def add(self, record: Storable) -> WriteOutcome:
        record = as_record(record)
        if not record.is_assignment:
            return self._ignore("add", record)
        assignment = record.to_assignment()

        def _add(cur: sqlite3.Cursor) -> WriteOutcome:
            cur.execute(_INSERT, (record.record_type.value, *assignment.as_tuple()))
            return WriteOutcome.added if cur.rowcount == 1 else WriteOutcome.already_exists

        return self._run("add", _add)

    def remove(self, record: Storable) -> WriteOutcome:
        record = as_record(record)
        if not record.is_assignment:
            return self._ignore("remove", record)
        assignment = record.to_assignment()

        def _remove(cur: sqlite3.Cursor) -> WriteOutcome:
            cur.execute(
                "DELETE FROM authz_rule WHERE record_type = ? AND subject = ? AND role = ? AND tenant = ?",
                (record.record_type.value, *assignment.as_tuple()),
            )
            return WriteOutcome.removed if cur.rowcount > 0 else WriteOutcome.not_found

        return self._run("remove", _remove)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # -- extras ----------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        """Count rows grouped by record type."""
        rows = self._run(
            "stats",
            lambda cur: cur.execute(
                "SELECT record_type, COUNT(*) FROM authz_rule GROUP BY record_type"
            ).fetchall(),
        )
        counts = {t.value: 0 for t in RecordType}
        for record_type, count in rows:
            counts[record_type] = count
        return counts

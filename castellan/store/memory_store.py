"""AssignmentStore kept in process memory. Nothing survives a restart."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from castellan.interfaces.rbac import Assignment
from castellan.interfaces.store import Storable, WriteOutcome, as_record

logger = logging.getLogger(__name__)


class InMemoryAssignmentStore:
    """Same contract as SQLiteAssignmentStore, backed by a set."""

    def __init__(self, assignments: Iterable[Assignment] = ()) -> None:
        self._lock = threading.Lock()
        self._rows: set[Assignment] = set(assignments)

    def load(self) -> set[Assignment]:
        with self._lock:
            return set(self._rows)

    def save(self, records: Iterable[Storable]) -> None:
        rows: set[Assignment] = set()
        for item in records:
            record = as_record(item)
            if not record.is_assignment:
                logger.debug("memory store save ignoring %s record", record.record_type.value)
                continue
            rows.add(record.to_assignment())
        with self._lock:
            self._rows = rows

    def add(self, record: Storable) -> WriteOutcome:
        record = as_record(record)
        if not record.is_assignment:
            logger.debug("memory store add ignoring %s record", record.record_type.value)
            return WriteOutcome.ignored
        assignment = record.to_assignment()
        with self._lock:
            if assignment in self._rows:
                return WriteOutcome.already_exists
            self._rows.add(assignment)
            return WriteOutcome.added

    def remove(self, record: Storable) -> WriteOutcome:
        record = as_record(record)
        if not record.is_assignment:
            logger.debug("memory store remove ignoring %s record", record.record_type.value)
            return WriteOutcome.ignored
        assignment = record.to_assignment()
        with self._lock:
            if assignment not in self._rows:
                return WriteOutcome.not_found
            self._rows.discard(assignment)
            return WriteOutcome.removed

    def close(self) -> None:
        pass

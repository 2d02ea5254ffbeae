"""Assignment store interface and the tagged record crossing the storage boundary."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from castellan.interfaces.rbac import Assignment, PolicyFact


class RecordType(str, Enum):
    """Discriminant stored in the ``record_type`` column."""

    assignment = "assignment"
    policy = "policy"


class WriteOutcome(str, Enum):
    """Result of a single-record store write."""

    added = "added"
    already_exists = "already_exists"
    removed = "removed"
    not_found = "not_found"
    ignored = "ignored"


class StoreRecord(BaseModel):
    """A tagged row as seen by the store.

    Only ``RecordType.assignment`` rows are ever written. Any other tag is a
    deliberate no-op at every write entry point.
    """

    model_config = ConfigDict(frozen=True)

    record_type: RecordType
    values: tuple[str, ...] = Field(min_length=1)

    @classmethod
    def from_assignment(cls, assignment: Assignment) -> StoreRecord:
        return cls(record_type=RecordType.assignment, values=assignment.as_tuple())

    @classmethod
    def from_fact(cls, fact: PolicyFact) -> StoreRecord:
        return cls(record_type=RecordType.policy, values=fact.as_tuple())

    @property
    def is_assignment(self) -> bool:
        return self.record_type is RecordType.assignment

    def to_assignment(self) -> Assignment:
        if not self.is_assignment:
            raise ValueError(f"record of type {self.record_type.value!r} is not an assignment")
        if len(self.values) != 3:
            raise ValueError(f"assignment record needs 3 values, got {len(self.values)}")
        user_id, role, tenant = self.values
        return Assignment(user_id=user_id, role=role, tenant=tenant)


# Anything a caller may hand to a store write.
Storable = Assignment | PolicyFact | StoreRecord


def as_record(item: Storable) -> StoreRecord:
    """Normalize a write argument to a tagged record.

    Raises TypeError for anything that is not a Storable.
    """
    if isinstance(item, StoreRecord):
        return item
    if isinstance(item, Assignment):
        return StoreRecord.from_assignment(item)
    if isinstance(item, PolicyFact):
        return StoreRecord.from_fact(item)
    raise TypeError(f"cannot store {type(item).__name__}")


@runtime_checkable
class AssignmentStore(Protocol):
    """Durable storage for user-role-tenant bindings, and nothing else."""

    def load(self) -> set[Assignment]: ...

    def save(self, records: Iterable[Storable]) -> None: ...

    def add(self, record: Storable) -> WriteOutcome: ...

    def remove(self, record: Storable) -> WriteOutcome: ...

    def close(self) -> None: ...

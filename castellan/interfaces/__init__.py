"""Interfaces shared by the policy, engine and storage layers."""

from castellan.interfaces.rbac import WILDCARD, Assignment, Authorizer, Permission, PolicyFact
from castellan.interfaces.store import (
    AssignmentStore,
    RecordType,
    Storable,
    StoreRecord,
    WriteOutcome,
    as_record,
)

__all__ = [
    "WILDCARD",
    "Assignment",
    "AssignmentStore",
    "Authorizer",
    "Permission",
    "PolicyFact",
    "RecordType",
    "Storable",
    "StoreRecord",
    "WriteOutcome",
    "as_record",
]

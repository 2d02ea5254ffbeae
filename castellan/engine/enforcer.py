"""In-memory enforcement over compiled policy facts and live assignments."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from castellan.engine.matching import fact_matches
from castellan.errors import EnforcementError
from castellan.interfaces.rbac import Assignment, PolicyFact

logger = logging.getLogger(__name__)


def _index_facts(facts: frozenset[PolicyFact]) -> Mapping[tuple[str, str], tuple[PolicyFact, ...]]:
    by_role_tenant: dict[tuple[str, str], list[PolicyFact]] = defaultdict(list)
    for fact in facts:
        by_role_tenant[(fact.role, fact.tenant)].append(fact)
    return MappingProxyType({k: tuple(v) for k, v in by_role_tenant.items()})


def _index_assignments(
    assignments: frozenset[Assignment],
) -> Mapping[tuple[str, str], frozenset[str]]:
    by_user_tenant: dict[tuple[str, str], set[str]] = defaultdict(set)
    for a in assignments:
        by_user_tenant[(a.user_id, a.tenant)].add(a.role)
    return MappingProxyType({k: frozenset(v) for k, v in by_user_tenant.items()})


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of both tables. Readers grab one and never see a partial update."""

    facts: frozenset[PolicyFact]
    assignments: frozenset[Assignment]
    fact_index: Mapping[tuple[str, str], tuple[PolicyFact, ...]]
    role_index: Mapping[tuple[str, str], frozenset[str]]
    # Role names of the catalog the facts were compiled from.
    roles: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        facts: Iterable[PolicyFact],
        assignments: Iterable[Assignment],
        roles: Iterable[str] = (),
    ) -> Snapshot:
        facts = frozenset(facts)
        assignments = frozenset(assignments)
        return cls(
            facts=facts,
            assignments=assignments,
            fact_index=_index_facts(facts),
            role_index=_index_assignments(assignments),
            roles=frozenset(roles),
        )

    @property
    def tenants(self) -> frozenset[str]:
        return frozenset(fact.tenant for fact in self.facts)


class EnforcementEngine:
    """Holds the PolicyFact and Assignment tables and answers allow/deny queries.

    Readers take the current ``Snapshot`` reference without locking, so reads
    run in parallel. Every mutation builds a new snapshot under ``_lock`` and
    swaps the reference in one assignment, which serializes writers against
    each other and keeps readers on a consistent view.
    """

    def __init__(
        self,
        facts: Iterable[PolicyFact] = (),
        assignments: Iterable[Assignment] = (),
        roles: Iterable[str] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._snapshot = Snapshot.build(facts, assignments, roles)

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    # -- writes ----------------------------------------------------------------

    def replace_facts(self, facts: Iterable[PolicyFact], roles: Iterable[str] | None = None) -> None:
        """Swap in a whole new fact set, and the catalog roles with it when given.

        Assignments are carried over untouched.
        """
        facts = frozenset(facts)
        with self._lock:
            current = self._snapshot
            self._snapshot = Snapshot(
                facts=facts,
                assignments=current.assignments,
                fact_index=_index_facts(facts),
                role_index=current.role_index,
                roles=current.roles if roles is None else frozenset(roles),
            )

    def replace_assignments(self, assignments: Iterable[Assignment]) -> None:
        assignments = frozenset(assignments)
        with self._lock:
            current = self._snapshot
            self._snapshot = Snapshot(
                facts=current.facts,
                assignments=assignments,
                fact_index=current.fact_index,
                role_index=_index_assignments(assignments),
                roles=current.roles,
            )

    def add_assignment(self, assignment: Assignment) -> bool:
        """Returns False if the assignment was already present."""
        with self._lock:
            current = self._snapshot
            if assignment in current.assignments:
                return False
            self._swap_assignments(current, current.assignments | {assignment})
            return True

    def remove_assignment(self, assignment: Assignment) -> bool:
        """Returns False if there was nothing to remove."""
        with self._lock:
            current = self._snapshot
            if assignment not in current.assignments:
                return False
            self._swap_assignments(current, current.assignments - {assignment})
            return True

    def _swap_assignments(self, current: Snapshot, assignments: frozenset[Assignment]) -> None:
        self._snapshot = Snapshot(
            facts=current.facts,
            assignments=assignments,
            fact_index=current.fact_index,
            role_index=_index_assignments(assignments),
            roles=current.roles,
        )

    # -- reads -----------------------------------------------------------------

    def enforce(self, user_id: str, resource: str, action: str, tenant_id: str) -> bool:
        """Allow iff some role held in ``tenant_id`` has a matching fact in the same tenant.

        Any internal failure raises EnforcementError. It never turns into an allow.
        """
        snap = self._snapshot
        try:
            for role in snap.role_index.get((user_id, tenant_id), ()):
                for fact in snap.fact_index.get((role, tenant_id), ()):
                    if fact.role != role or fact.tenant != tenant_id:
                        raise EnforcementError(
                            f"corrupted fact index: {fact.as_tuple()} filed under ({role}, {tenant_id})"
                        )
                    if fact_matches(fact, resource, action, tenant_id):
                        return True
        except EnforcementError:
            logger.error("enforcement failed for user %s in tenant %s", user_id, tenant_id)
            raise
        except Exception as e:
            logger.exception("enforcement failed for user %s in tenant %s", user_id, tenant_id)
            raise EnforcementError(f"failed to enforce authorization for user {user_id}", e) from e
        return False

    def available_roles(self) -> list[str]:
        """Sorted catalog roles belonging to the current fact set."""
        return sorted(self._snapshot.roles)

    def roles_for(self, user_id: str, tenant_id: str) -> set[str]:
        return set(self._snapshot.role_index.get((user_id, tenant_id), ()))

    def tenants_for(self, user_id: str, role: str) -> set[str]:
        return {a.tenant for a in self._snapshot.assignments if a.user_id == user_id and a.role == role}

    def has_assignment(self, assignment: Assignment) -> bool:
        return assignment in self._snapshot.assignments

    @property
    def facts(self) -> frozenset[PolicyFact]:
        return self._snapshot.facts

    @property
    def assignments(self) -> frozenset[Assignment]:
        return self._snapshot.assignments

"""Authorization facade: policy lifecycle, role assignments and enforcement."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

from castellan.engine.enforcer import EnforcementEngine
from castellan.errors import InvalidArgumentError, require_non_empty
from castellan.interfaces.rbac import Assignment
from castellan.interfaces.store import AssignmentStore, WriteOutcome
from castellan.policy.compiler import PolicyCompiler, normalize_tenants
from castellan.policy.source import PolicySource

if TYPE_CHECKING:
    from castellan.config.models import CastellanConfig

logger = logging.getLogger(__name__)


class AuthorizationService:
    """Decides whether a user may perform an action on a resource within a tenant.

    Owns the enforcement engine and the store handle. Startup compiles the
    catalog for ``tenants`` and loads the stored assignments. Reads go
    straight to the engine's current snapshot. Writes (assign, remove,
    reload) are serialized by ``_write_lock`` so the store and the engine
    change together.

    Every public method validates its arguments before touching the engine or
    the store and raises InvalidArgumentError on an empty identifier.
    """

    def __init__(
        self,
        source: PolicySource,
        store: AssignmentStore,
        tenants: Iterable[str],
        engine: EnforcementEngine | None = None,
    ) -> None:
        tenant_list = normalize_tenants(tenants)
        self._store = store
        self._engine = engine or EnforcementEngine()
        self._compiler = PolicyCompiler(source, self._engine)
        self._write_lock = threading.Lock()

        self._compiler.reload(tenant_list)
        self._tenants = tenant_list
        self._engine.replace_assignments(store.load())

        logger.info(
            "authorization service initialized with %d roles for %d tenants (%d assignments)",
            len(source.roles()),
            len(tenant_list),
            len(self._engine.assignments),
        )

    @classmethod
    def from_config(cls, config: CastellanConfig) -> AuthorizationService:
        """Build the service from app-level config: policy file, store, tenants."""
        from castellan.store import create_store

        source = PolicySource.from_file(config.policy.path)
        store = create_store(config.store)
        try:
            return cls(source, store, config.tenants)
        except Exception:
            store.close()
            raise

    # -- properties ------------------------------------------------------------

    @property
    def engine(self) -> EnforcementEngine:
        return self._engine

    @property
    def source(self) -> PolicySource:
        return self._compiler.source

    @property
    def tenants(self) -> list[str]:
        return list(self._tenants)

    # -- enforcement -----------------------------------------------------------

    def can_do(self, user_id: str, resource: str, action: str, tenant_id: str) -> bool:
        """True iff the user holds, in ``tenant_id``, a role allowed ``action`` on ``resource``.

        A plain ``False`` is a denial. EnforcementError means the engine could
        not decide and must also be treated as deny.
        """
        require_non_empty(user_id=user_id, resource=resource, action=action, tenant_id=tenant_id)
        return self._engine.enforce(user_id, resource, action, tenant_id)

    # -- role assignments ------------------------------------------------------

    def assign_role(self, user_id: str, role: str, tenant_id: str) -> bool:
        """Bind ``role`` to the user within the tenant. Returns False if it already existed."""
        require_non_empty(user_id=user_id, role=role, tenant_id=tenant_id)
        assignment = Assignment(user_id=user_id, role=role, tenant=tenant_id)

        with self._write_lock:
            if role not in self._engine.snapshot.roles:
                raise InvalidArgumentError(f"role {role} is not available in the system")
            outcome = self._store.add(assignment)
            self._engine.add_assignment(assignment)

        if outcome is WriteOutcome.added:
            logger.info("role assigned: user=%s, role=%s, tenant=%s", user_id, role, tenant_id)
            return True
        logger.info(
            "role assignment skipped (already exists): user=%s, role=%s, tenant=%s",
            user_id,
            role,
            tenant_id,
        )
        return False

    def remove_role(self, user_id: str, role: str, tenant_id: str) -> bool:
        """Unbind ``role`` from the user within the tenant. Returns False if it was not bound."""
        require_non_empty(user_id=user_id, role=role, tenant_id=tenant_id)
        assignment = Assignment(user_id=user_id, role=role, tenant=tenant_id)

        with self._write_lock:
            outcome = self._store.remove(assignment)
            in_memory = self._engine.remove_assignment(assignment)

        if outcome is WriteOutcome.removed or in_memory:
            logger.info("role removed: user=%s, role=%s, tenant=%s", user_id, role, tenant_id)
            return True
        logger.info(
            "role removal skipped (not found): user=%s, role=%s, tenant=%s", user_id, role, tenant_id
        )
        return False

    def get_user_roles(self, user_id: str, tenant_id: str) -> set[str]:
        """Roles the user holds within ``tenant_id`` only."""
        require_non_empty(user_id=user_id, tenant_id=tenant_id)
        return self._engine.roles_for(user_id, tenant_id)

    def get_user_tenants_for_role(self, user_id: str, role: str) -> set[str]:
        """Every tenant in which the user holds ``role``.

        This is the one query that is not tenant-scoped. It exists for
        administrative tooling that has to see a user's footprint across
        tenants and must not be reachable from a tenant-scoped request path.
        """
        require_non_empty(user_id=user_id, role=role)
        return self._engine.tenants_for(user_id, role)

    def has_role(self, user_id: str, role: str, tenant_id: str) -> bool:
        require_non_empty(user_id=user_id, role=role, tenant_id=tenant_id)
        return self._engine.has_assignment(Assignment(user_id=user_id, role=role, tenant=tenant_id))

    def get_available_roles(self) -> list[str]:
        return self._engine.available_roles()

    # -- policy lifecycle ------------------------------------------------------

    def reload_policies(self, tenants: Iterable[str], source: PolicySource | None = None) -> None:
        """Recompile facts for ``tenants``, optionally from a new catalog.

        The new fact set replaces the old one in a single swap. Facts for
        tenants missing from ``tenants`` are dropped with it. Assignments are
        not touched. On any failure the previous facts stay in place.
        """
        tenant_list = normalize_tenants(tenants)

        with self._write_lock:
            previous = set(self._tenants)
            self._compiler.reload(tenant_list, source)
            self._tenants = tenant_list

        purged = sorted(previous - set(tenant_list))
        if purged:
            logger.info("policy facts purged for retired tenants: %s", ", ".join(purged))
        logger.info("policies reloaded successfully for %d tenants", len(tenant_list))

    def describe(self) -> dict[str, list[tuple[str, ...]]]:
        """Sorted dump of the loaded policy facts and assignments, for debugging."""
        snap = self._engine.snapshot
        return {
            "policies": sorted(f.as_tuple() for f in snap.facts),
            "assignments": sorted(a.as_tuple() for a in snap.assignments),
        }

    def close(self) -> None:
        self._store.close()
        logger.info("authorization service closed")

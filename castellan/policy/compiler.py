"""Expand a permission catalog into per-tenant policy facts."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from castellan.errors import InvalidArgumentError
from castellan.interfaces.rbac import PolicyFact
from castellan.policy.models import Catalog
from castellan.policy.source import PolicySource, to_wildcard

if TYPE_CHECKING:
    from castellan.engine.enforcer import EnforcementEngine

logger = logging.getLogger(__name__)


def normalize_tenants(tenants: Iterable[str]) -> tuple[str, ...]:
    """Deduplicate a tenant list, keeping first-seen order.

    Raises InvalidArgumentError if the list is empty or holds a blank id.
    """
    if isinstance(tenants, str):
        raise InvalidArgumentError(f"tenants must be a list of tenant ids, not a string: {tenants!r}")
    seen: dict[str, None] = {}
    for tenant in tenants:
        if not isinstance(tenant, str) or not tenant.strip():
            raise InvalidArgumentError(f"tenant id cannot be empty: {tenant!r}")
        seen.setdefault(tenant, None)
    if not seen:
        raise InvalidArgumentError("tenants list cannot be empty")
    return tuple(seen)


def compile_policy(catalog: Catalog, tenants: Iterable[str]) -> frozenset[PolicyFact]:
    """One fact per role x permission x tenant.

    ``all`` becomes the wildcard in the resource and action positions
    independently. The tenant is always copied literally.
    """
    tenants = tuple(tenants)
    facts: set[PolicyFact] = set()
    for role, spec in catalog.roles.items():
        for resource, actions in spec.permissions.items():
            resource = to_wildcard(resource)
            for action in actions:
                action = to_wildcard(action)
                for tenant in tenants:
                    facts.add(PolicyFact(role=role, resource=resource, action=action, tenant=tenant))
    return frozenset(facts)


class PolicyCompiler:
    """Compiles the current PolicySource and swaps the result into an engine."""

    def __init__(self, source: PolicySource, engine: EnforcementEngine) -> None:
        self._source = source
        self._engine = engine

    @property
    def source(self) -> PolicySource:
        return self._source

    def compile(self, tenants: Iterable[str], source: PolicySource | None = None) -> frozenset[PolicyFact]:
        source = source or self._source
        return compile_policy(source.catalog, normalize_tenants(tenants))

    def load_into_engine(self, facts: Iterable[PolicyFact], roles: Iterable[str] | None = None) -> None:
        """Replace the engine's whole fact set. Assignments are left alone."""
        self._engine.replace_facts(facts, roles)

    def reload(self, tenants: Iterable[str], source: PolicySource | None = None) -> frozenset[PolicyFact]:
        """Recompile for ``tenants`` (and optionally a new catalog) and swap it in.

        Facts are built completely before the swap, so a failure leaves the
        engine's previous fact set in place. Facts and the catalog role names
        land in the engine as one snapshot.
        """
        tenant_list = normalize_tenants(tenants)
        new_source = source or self._source
        facts = compile_policy(new_source.catalog, tenant_list)
        self._source = new_source
        self.load_into_engine(facts, new_source.roles())
        logger.debug("compiled %d policy facts for %d tenants", len(facts), len(tenant_list))
        return facts

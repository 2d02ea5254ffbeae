"""Pure matching rules for policy facts."""

from __future__ import annotations

from castellan.interfaces.rbac import WILDCARD, PolicyFact


def matches(pattern: str, value: str) -> bool:
    """True if ``pattern`` is the wildcard or equals ``value`` exactly."""
    return pattern == WILDCARD or pattern == value


def fact_matches(fact: PolicyFact, resource: str, action: str, tenant: str) -> bool:
    """Resource and action match independently. Tenant is never wildcarded."""
    return fact.tenant == tenant and matches(fact.resource, resource) and matches(fact.action, action)

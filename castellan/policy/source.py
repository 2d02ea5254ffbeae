"""Policy document parsing, token normalization and validation.

The catalog goes through independent pure stages:

    parse_policy -> normalize_catalog -> validate_catalog -> compile_policy

``PolicySource`` chains the first three and holds the result.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from castellan.errors import ConfigError
from castellan.interfaces.rbac import WILDCARD, Permission
from castellan.policy.models import Catalog, RoleSpec

# Human token in the policy document meaning "every value".
ALL_TOKEN = "all"


def parse_policy(document: str) -> Catalog:
    """Parse a YAML policy document into a Catalog.

    Raises ConfigError on invalid YAML or a structure that does not match
    ``roles -> name -> permissions -> resource -> [actions]``.
    """
    try:
        raw = yaml.safe_load(document)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in policy document: {e}", e) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(
            f"policy document must be a mapping with a 'roles' key, got {type(raw).__name__}"
        )

    try:
        return Catalog.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"malformed policy document: {e}", e) from e


def to_wildcard(token: str) -> str:
    """Map the human ``all`` token to the internal wildcard sentinel."""
    return WILDCARD if token == ALL_TOKEN else token


def normalize_catalog(catalog: Catalog) -> Catalog:
    """Return a copy of ``catalog`` with ``all`` replaced in resource and action positions.

    The two positions are rewritten independently of each other.
    """
    roles: dict[str, RoleSpec] = {}
    for name, spec in catalog.roles.items():
        permissions: dict[str, list[str]] = {}
        for resource, actions in spec.permissions.items():
            key = to_wildcard(resource)
            merged = permissions.setdefault(key, [])
            for action in actions:
                action = to_wildcard(action)
                if action not in merged:
                    merged.append(action)
        roles[name] = RoleSpec(permissions=permissions)
    return Catalog(roles=roles)


def validate_catalog(catalog: Catalog) -> None:
    """Reject catalogs that could never grant anything or carry blank tokens."""
    if not catalog.roles:
        raise ConfigError("no roles defined in policy document")

    for name, spec in catalog.roles.items():
        if not name.strip():
            raise ConfigError("role name cannot be empty")
        if not spec.permissions:
            raise ConfigError(f"role '{name}' has no permissions defined")
        for resource, actions in spec.permissions.items():
            if not resource.strip():
                raise ConfigError(f"role '{name}' has an empty resource name")
            if not actions:
                raise ConfigError(f"role '{name}' resource '{resource}' has no actions defined")
            if any(not action.strip() for action in actions):
                raise ConfigError(f"role '{name}' resource '{resource}' has an empty action")


def catalog_roles(catalog: Catalog) -> list[str]:
    """Sorted role names declared by the catalog."""
    return sorted(catalog.roles)


class PolicySource:
    """A parsed, normalized and validated permission catalog.

    Immutable. A policy change means building a new PolicySource and handing
    it to ``AuthorizationService.reload_policies``.
    """

    def __init__(self, catalog: Catalog, origin: str = "<memory>") -> None:
        catalog = normalize_catalog(catalog)
        validate_catalog(catalog)
        self._catalog = catalog
        self._roles = tuple(catalog_roles(catalog))
        self.origin = origin

    @classmethod
    def from_string(cls, document: str, origin: str = "<string>") -> PolicySource:
        return cls(parse_policy(document), origin=origin)

    @classmethod
    def from_file(cls, path: str | Path) -> PolicySource:
        path = Path(path)
        try:
            document = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"failed to read policy file {path}: {e}", e) from e
        return cls.from_string(document, origin=str(path))

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def roles(self) -> list[str]:
        return list(self._roles)

    def has_role(self, role: str) -> bool:
        return role in self._catalog.roles

    def permissions_for(self, role: str) -> frozenset[Permission]:
        return self._catalog.permissions_for(role)

    def __repr__(self) -> str:
        return f"PolicySource(origin={self.origin!r}, roles={list(self._roles)!r})"

"""Pydantic models for the declarative permission catalog."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from castellan.interfaces.rbac import Permission


class RoleSpec(BaseModel):
    """One role as written in the policy document: resource -> allowed actions."""

    model_config = ConfigDict(frozen=True)

    permissions: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("permissions", mode="before")
    @classmethod
    def null_permissions(cls, v: object) -> object:
        # `permissions:` with no body, or `resource:` with no list, parse as None.
        # Let validate_catalog report those with a precise message.
        if v is None:
            return {}
        if isinstance(v, dict):
            return {k: ([] if actions is None else actions) for k, actions in v.items()}
        return v


class Catalog(BaseModel):
    """The whole policy document: ``roles -> name -> permissions -> resource -> [actions]``."""

    model_config = ConfigDict(frozen=True)

    roles: dict[str, RoleSpec] = Field(default_factory=dict)

    @field_validator("roles", mode="before")
    @classmethod
    def null_roles(cls, v: object) -> object:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {name: ({} if spec is None else spec) for name, spec in v.items()}
        return v

    def permissions_for(self, role: str) -> frozenset[Permission]:
        """Every (resource, action) pair declared for a role, as written."""
        spec = self.roles.get(role)
        if spec is None:
            return frozenset()
        return frozenset(
            Permission(resource=resource, action=action)
            for resource, actions in spec.permissions.items()
            for action in actions
        )

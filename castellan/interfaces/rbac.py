"""Authorization interface and models."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Internal sentinel meaning "matches any concrete value in this position".
WILDCARD = "*"


class Permission(BaseModel):
    """A (resource, action) pair. Either side may be the wildcard sentinel."""

    model_config = ConfigDict(frozen=True)

    resource: str = Field(min_length=1)
    action: str = Field(min_length=1)

    @field_validator("resource", "action")
    @classmethod
    def validate_token(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("permission token cannot be empty or whitespace")
        return v


class PolicyFact(BaseModel):
    """Compiled (role, resource, action, tenant) tuple. Lives in memory only."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(min_length=1)
    resource: str = Field(min_length=1)
    action: str = Field(min_length=1)
    tenant: str = Field(min_length=1)

    @field_validator("role", "resource", "action", "tenant")
    @classmethod
    def validate_component(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("policy fact component cannot be empty or whitespace")
        return v

    def as_tuple(self) -> tuple[str, str, str, str]:
        return (self.role, self.resource, self.action, self.tenant)


class Assignment(BaseModel):
    """Durable binding of a user to a role within a tenant."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    role: str = Field(min_length=1)
    tenant: str = Field(min_length=1)

    @field_validator("user_id", "role", "tenant")
    @classmethod
    def validate_component(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("assignment component cannot be empty or whitespace")
        return v

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.user_id, self.role, self.tenant)


@runtime_checkable
class Authorizer(Protocol):
    """Anything that can answer an allow/deny query for a tenant-scoped request."""

    def can_do(self, user_id: str, resource: str, action: str, tenant_id: str) -> bool: ...

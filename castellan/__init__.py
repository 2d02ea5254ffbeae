"""Castellan: multi-tenant role-based authorization."""

from castellan.errors import (
    AuthzError,
    ConfigError,
    EnforcementError,
    InfrastructureError,
    InvalidArgumentError,
    StorageError,
)
from castellan.policy import PolicySource
from castellan.service import AuthorizationService

__all__ = [
    "AuthorizationService",
    "AuthzError",
    "ConfigError",
    "EnforcementError",
    "InfrastructureError",
    "InvalidArgumentError",
    "PolicySource",
    "StorageError",
]

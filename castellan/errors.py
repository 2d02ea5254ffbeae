"""Error hierarchy for the authorization core.

Three kinds reach callers: invalid arguments (rejected before any engine or
storage access), infrastructure failures (storage or policy document), and
enforcement failures (the engine could not decide, always a deny).
"""

from __future__ import annotations

VALIDATION_ERROR = "VALIDATION_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"
ENFORCEMENT_ERROR = "ENFORCEMENT_ERROR"


class AuthzError(Exception):
    """Base class for every error raised by castellan."""

    code: str = INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"{self.code}: {message}")

    @property
    def public_message(self) -> str:
        """Message that is safe to hand across a transport boundary."""
        return self.message


class InvalidArgumentError(AuthzError, ValueError):
    """Empty identifier, unknown role, or empty tenant list."""

    code = VALIDATION_ERROR


class InfrastructureError(AuthzError):
    """Technical failure. Details are logged, never echoed to clients."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def public_message(self) -> str:
        return "internal error"


class StorageError(InfrastructureError):
    """The assignment store failed (unreachable, timed out, schema violation)."""

    def __init__(
        self,
        operation: str,
        cause: Exception | None = None,
        retryable: bool = False,
    ) -> None:
        self.operation = operation
        self.retryable = retryable
        detail = f"storage {operation} failed"
        if cause is not None:
            detail += f": {cause}"
        super().__init__(detail, cause)


class ConfigError(InfrastructureError):
    """The policy document is unreadable, malformed, or invalid."""


class EnforcementError(AuthzError):
    """The engine could not produce a decision. The decision is always deny."""

    code = ENFORCEMENT_ERROR
    allowed = False

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    @property
    def public_message(self) -> str:
        return "authorization error"


def require_non_empty(**fields: str) -> None:
    """Raise InvalidArgumentError naming every empty or blank field."""
    empty = [name for name, value in fields.items() if not value or not str(value).strip()]
    if empty:
        raise InvalidArgumentError(f"parameters cannot be empty: {', '.join(empty)}")

"""Request-boundary contract between a transport and the authorization core.

A transport (RPC server, web framework middleware) owns an EndpointRegistry
mapping each method to a (resource, action) pair, plus an allow-list of
public methods. ``RequestInterceptor.intercept`` runs before business logic:

    1. public methods pass straight through, before any identity lookup;
    2. user and tenant ids are read from request metadata;
    3. methods without a mapping are rejected (fail closed);
    4. the authorizer decides; denials and failures are raised as
       InterceptorError subclasses for the transport to translate.

Translating those errors into status codes is the transport's job.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, TypeVar

from castellan.errors import AuthzError
from castellan.interfaces.rbac import Authorizer

logger = logging.getLogger(__name__)

USER_ID_HEADER = "x-user-id"
TENANT_ID_HEADER = "x-tenant-id"

R = TypeVar("R")

Metadata = Mapping[str, str | Sequence[str]]


class InterceptorError(Exception):
    """Base for rejections raised at the request boundary."""


class UnauthenticatedError(InterceptorError):
    """User or tenant id missing from the request."""


class PermissionDeniedError(InterceptorError):
    """The authorizer said no."""

    def __init__(self, resource: str, action: str) -> None:
        self.resource = resource
        self.action = action
        super().__init__(f"insufficient permissions for {resource}.{action}")


class EndpointNotMappedError(InterceptorError):
    """The method has no (resource, action) mapping and is not public."""


class AuthorizationFailedError(InterceptorError):
    """The authorizer raised instead of deciding."""


@dataclass(frozen=True)
class ResourceAction:
    resource: str
    action: str


@dataclass(frozen=True)
class AuthContext:
    """Who is calling and what they were authorized for, for the current request."""

    user_id: str
    tenant_id: str
    resource: str
    action: str


_auth_context: ContextVar[AuthContext | None] = ContextVar("castellan_auth_context", default=None)


def get_authorization_context() -> AuthContext | None:
    """AuthContext of the request being handled, or None outside an authorized call."""
    return _auth_context.get()


@contextmanager
def authorization_context(ctx: AuthContext) -> Iterator[AuthContext]:
    token = _auth_context.set(ctx)
    try:
        yield ctx
    finally:
        _auth_context.reset(token)


def method_name(service: str, method: str) -> str:
    """Fully-qualified method name in ``/package.Service/Method`` form."""
    return f"/{service}/{method}"


@dataclass
class EndpointRegistry:
    """Static endpoint -> (resource, action) table and public allow-list."""

    mappings: dict[str, ResourceAction] = field(default_factory=dict)
    public: set[str] = field(default_factory=set)

    def add_endpoint_mapping(self, method: str, resource: str, action: str) -> None:
        if not method or not resource or not action:
            raise ValueError("method, resource and action are required")
        self.mappings[method] = ResourceAction(resource=resource, action=action)

    def add_public_endpoint(self, method: str) -> None:
        if not method:
            raise ValueError("method is required")
        self.public.add(method)

    def is_public(self, method: str) -> bool:
        return method in self.public

    def resolve(self, method: str) -> ResourceAction | None:
        return self.mappings.get(method)


def _first(metadata: Metadata, key: str) -> str:
    for name, value in metadata.items():
        if name.lower() != key:
            continue
        if isinstance(value, str):
            return value
        return value[0] if value else ""
    return ""


def extract_identity(metadata: Metadata) -> tuple[str, str]:
    """Read (user_id, tenant_id) from request metadata. Header names are case-insensitive."""
    user_id = _first(metadata, USER_ID_HEADER)
    if not user_id.strip():
        raise UnauthenticatedError("missing user ID")
    tenant_id = _first(metadata, TENANT_ID_HEADER)
    if not tenant_id.strip():
        raise UnauthenticatedError("missing tenant ID")
    return user_id, tenant_id


class RequestInterceptor:
    """Gate every inbound call through an Authorizer before dispatch."""

    def __init__(self, authorizer: Authorizer, registry: EndpointRegistry) -> None:
        self._authorizer = authorizer
        self._registry = registry

    def authorize(self, method: str, metadata: Metadata) -> AuthContext | None:
        """Return the AuthContext for ``method``, or None for a public method."""
        if self._registry.is_public(method):
            logger.info("public endpoint accessed: %s", method)
            return None

        try:
            user_id, tenant_id = extract_identity(metadata)
        except UnauthenticatedError as e:
            logger.info("failed to extract user/tenant for %s: %s", method, e)
            raise

        target = self._registry.resolve(method)
        if target is None:
            logger.warning("no authorization mapping for endpoint: %s", method)
            raise EndpointNotMappedError(f"authorization mapping not configured for {method}")

        try:
            allowed = self._authorizer.can_do(user_id, target.resource, target.action, tenant_id)
        except AuthzError as e:
            logger.error("failed to check authorization for %s: %s", method, e)
            raise AuthorizationFailedError(e.public_message) from e

        if not allowed:
            logger.info(
                "access denied: user=%s, resource=%s, action=%s, tenant=%s",
                user_id,
                target.resource,
                target.action,
                tenant_id,
            )
            raise PermissionDeniedError(target.resource, target.action)

        logger.info(
            "access granted: user=%s, resource=%s, action=%s, tenant=%s",
            user_id,
            target.resource,
            target.action,
            tenant_id,
        )
        return AuthContext(
            user_id=user_id, tenant_id=tenant_id, resource=target.resource, action=target.action
        )

    def intercept(
        self,
        method: str,
        metadata: Metadata,
        handler: Callable[..., R],
        *args: Any,
        **kwargs: Any,
    ) -> R:
        """Authorize, then call ``handler`` with the AuthContext bound for its duration."""
        ctx = self.authorize(method, metadata)
        if ctx is None:
            return handler(*args, **kwargs)
        with authorization_context(ctx):
            return handler(*args, **kwargs)

"""Static permission catalog: parsing, validation and compilation."""

from .compiler import PolicyCompiler, compile_policy, normalize_tenants
from .models import Catalog, RoleSpec
from .source import (
    ALL_TOKEN,
    PolicySource,
    catalog_roles,
    normalize_catalog,
    parse_policy,
    to_wildcard,
    validate_catalog,
)

__all__ = [
    "ALL_TOKEN",
    "Catalog",
    "PolicyCompiler",
    "PolicySource",
    "RoleSpec",
    "catalog_roles",
    "compile_policy",
    "normalize_catalog",
    "normalize_tenants",
    "parse_policy",
    "to_wildcard",
    "validate_catalog",
]

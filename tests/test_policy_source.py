"""Tests for castellan.policy.source: parsing stages and PolicySource."""

from __future__ import annotations

import pytest

from castellan.errors import ConfigError, InfrastructureError
from castellan.interfaces.rbac import WILDCARD, Permission
from castellan.policy import (
    Catalog,
    PolicySource,
    catalog_roles,
    normalize_catalog,
    parse_policy,
    to_wildcard,
    validate_catalog,
)


# ---------------------------------------------------------------------------
# parse_policy
# ---------------------------------------------------------------------------


class TestParse:
    def test_parses_roles_and_permissions(self, policy_yaml):
        catalog = parse_policy(policy_yaml)
        assert set(catalog.roles) == {"admin", "instructor", "auditor", "grader"}
        assert catalog.roles["instructor"].permissions == {"assignment": ["create", "view"]}

    def test_parse_keeps_human_tokens(self, policy_yaml):
        # Token translation is a separate stage
        catalog = parse_policy(policy_yaml)
        assert catalog.roles["admin"].permissions == {"all": ["all"]}

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError, match="invalid YAML"):
            parse_policy("roles: [unclosed")

    def test_top_level_must_be_mapping(self):
        with pytest.raises(ConfigError, match="must be a mapping"):
            parse_policy("- admin\n- viewer\n")

    def test_actions_must_be_a_list(self):
        doc = "roles:\n  viewer:\n    permissions:\n      doc: {read: true}\n"
        with pytest.raises(ConfigError, match="malformed"):
            parse_policy(doc)

    def test_non_string_action_rejected(self):
        doc = "roles:\n  viewer:\n    permissions:\n      doc: [1, 2]\n"
        with pytest.raises(ConfigError):
            parse_policy(doc)

    def test_empty_document_parses_to_empty_catalog(self):
        assert parse_policy("").roles == {}

    def test_null_permissions_become_empty(self):
        catalog = parse_policy("roles:\n  viewer:\n    permissions:\n")
        assert catalog.roles["viewer"].permissions == {}

    def test_config_error_is_infrastructure(self):
        with pytest.raises(InfrastructureError):
            parse_policy("roles: [unclosed")


# ---------------------------------------------------------------------------
# normalize_catalog
# ---------------------------------------------------------------------------


class TestNormalize:
    def test_to_wildcard(self):
        assert to_wildcard("all") == WILDCARD
        assert to_wildcard("view") == "view"
        assert to_wildcard("ALL") == "ALL"

    def test_resource_and_action_translated_independently(self):
        catalog = Catalog.model_validate(
            {
                "roles": {
                    "grader": {"permissions": {"submission": ["all"]}},
                    "auditor": {"permissions": {"all": ["view"]}},
                }
            }
        )
        normalized = normalize_catalog(catalog)
        assert normalized.roles["grader"].permissions == {"submission": [WILDCARD]}
        assert normalized.roles["auditor"].permissions == {WILDCARD: ["view"]}

    def test_duplicate_actions_collapsed(self):
        catalog = Catalog.model_validate(
            {"roles": {"editor": {"permissions": {"doc": ["edit", "edit", "view"]}}}}
        )
        assert normalize_catalog(catalog).roles["editor"].permissions == {"doc": ["edit", "view"]}

    def test_input_not_mutated(self, policy_yaml):
        catalog = parse_policy(policy_yaml)
        normalize_catalog(catalog)
        assert catalog.roles["admin"].permissions == {"all": ["all"]}


# ---------------------------------------------------------------------------
# validate_catalog
# ---------------------------------------------------------------------------


class TestValidate:
    def test_valid_catalog_passes(self, policy_yaml):
        validate_catalog(parse_policy(policy_yaml))

    def test_zero_roles(self):
        with pytest.raises(ConfigError, match="no roles"):
            validate_catalog(Catalog())

    def test_role_without_resources(self):
        with pytest.raises(ConfigError, match="role 'viewer' has no permissions"):
            validate_catalog(parse_policy("roles:\n  viewer:\n    permissions: {}\n"))

    def test_role_with_null_body(self):
        with pytest.raises(ConfigError, match="role 'viewer' has no permissions"):
            validate_catalog(parse_policy("roles:\n  viewer:\n"))

    def test_resource_without_actions(self):
        doc = "roles:\n  viewer:\n    permissions:\n      doc: []\n"
        with pytest.raises(ConfigError, match="resource 'doc' has no actions"):
            validate_catalog(parse_policy(doc))

    def test_blank_action(self):
        doc = "roles:\n  viewer:\n    permissions:\n      doc: ['  ']\n"
        with pytest.raises(ConfigError, match="empty action"):
            validate_catalog(parse_policy(doc))

    def test_blank_resource(self):
        doc = "roles:\n  viewer:\n    permissions:\n      '': [view]\n"
        with pytest.raises(ConfigError, match="empty resource"):
            validate_catalog(parse_policy(doc))


# ---------------------------------------------------------------------------
# PolicySource
# ---------------------------------------------------------------------------


class TestPolicySource:
    def test_roles_sorted(self, policy_source):
        assert policy_source.roles() == ["admin", "auditor", "grader", "instructor"]
        assert catalog_roles(policy_source.catalog) == policy_source.roles()

    def test_roles_returns_copy(self, policy_source):
        policy_source.roles().append("ghost")
        assert "ghost" not in policy_source.roles()

    def test_has_role(self, policy_source):
        assert policy_source.has_role("instructor")
        assert not policy_source.has_role("ghost-role")

    def test_catalog_is_normalized(self, policy_source):
        assert policy_source.catalog.roles["admin"].permissions == {WILDCARD: [WILDCARD]}

    def test_permissions_for(self, policy_source):
        assert policy_source.permissions_for("instructor") == {
            Permission(resource="assignment", action="create"),
            Permission(resource="assignment", action="view"),
        }
        assert policy_source.permissions_for("ghost-role") == frozenset()

    def test_from_file(self, policy_file):
        source = PolicySource.from_file(policy_file)
        assert source.origin == str(policy_file)
        assert "admin" in source.roles()

    def test_from_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="failed to read policy file"):
            PolicySource.from_file(tmp_path / "nope.yaml")

    def test_invalid_catalog_rejected_at_construction(self):
        with pytest.raises(ConfigError):
            PolicySource.from_string("roles: {}\n")

    def test_public_message_hides_details(self):
        with pytest.raises(ConfigError) as exc_info:
            PolicySource.from_string("roles: {}\n")
        assert exc_info.value.public_message == "internal error"
        assert "no roles" in exc_info.value.message

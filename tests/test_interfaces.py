"""Tests for castellan.interfaces: models, enums and protocols."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from castellan.interfaces import (
    WILDCARD,
    Assignment,
    AssignmentStore,
    Authorizer,
    Permission,
    PolicyFact,
    RecordType,
    StoreRecord,
    WriteOutcome,
    as_record,
)


# ---------------------------------------------------------------------------
# Enum values
# ---------------------------------------------------------------------------


class TestEnums:
    def test_record_types(self):
        assert {t.value for t in RecordType} == {"assignment", "policy"}

    def test_write_outcomes(self):
        for member in WriteOutcome:
            assert member.value == member.name


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestModels:
    def test_wildcard(self):
        assert WILDCARD == "*"

    @pytest.mark.parametrize("field", ["user_id", "role", "tenant"])
    def test_assignment_rejects_blank(self, field):
        values = {"user_id": "u", "role": "r", "tenant": "t"}
        values[field] = "  "
        with pytest.raises(ValidationError):
            Assignment(**values)

    def test_policy_fact_rejects_empty(self):
        with pytest.raises(ValidationError):
            PolicyFact(role="r", resource="", action="a", tenant="t")

    def test_permission_rejects_blank(self):
        with pytest.raises(ValidationError):
            Permission(resource="doc", action=" ")

    def test_models_are_hashable_and_frozen(self):
        a = Assignment(user_id="u", role="r", tenant="t")
        assert {a, Assignment(user_id="u", role="r", tenant="t")} == {a}
        with pytest.raises(ValidationError):
            a.role = "other"

    def test_as_tuple(self):
        assert Assignment(user_id="u", role="r", tenant="t").as_tuple() == ("u", "r", "t")
        assert PolicyFact(role="r", resource="*", action="v", tenant="t").as_tuple() == ("r", "*", "v", "t")


# ---------------------------------------------------------------------------
# StoreRecord
# ---------------------------------------------------------------------------


class TestStoreRecord:
    def test_from_assignment_round_trip(self):
        a = Assignment(user_id="u", role="r", tenant="t")
        record = StoreRecord.from_assignment(a)
        assert record.is_assignment
        assert record.to_assignment() == a

    def test_fact_record_is_not_assignment(self):
        record = StoreRecord.from_fact(PolicyFact(role="r", resource="*", action="*", tenant="t"))
        assert record.record_type is RecordType.policy
        assert not record.is_assignment
        with pytest.raises(ValueError, match="not an assignment"):
            record.to_assignment()

    def test_wrong_arity(self):
        record = StoreRecord(record_type=RecordType.assignment, values=("u", "r"))
        with pytest.raises(ValueError, match="needs 3 values"):
            record.to_assignment()

    def test_as_record(self):
        a = Assignment(user_id="u", role="r", tenant="t")
        record = StoreRecord.from_assignment(a)
        assert as_record(record) is record
        assert as_record(a) == record

    def test_as_record_tags_facts(self):
        fact = PolicyFact(role="r", resource="*", action="*", tenant="t")
        assert as_record(fact) == StoreRecord.from_fact(fact)

    def test_as_record_rejects_other_types(self):
        with pytest.raises(TypeError, match="cannot store tuple"):
            as_record(("u", "r", "t"))


# ---------------------------------------------------------------------------
# Protocol conformance
# ---------------------------------------------------------------------------


class TestProtocols:
    def test_authorizer_structural(self):
        class AlwaysNo:
            def can_do(self, user_id, resource, action, tenant_id):
                return False

        assert isinstance(AlwaysNo(), Authorizer)
        assert not isinstance(object(), Authorizer)

    def test_store_structural(self, memory_store, sqlite_store):
        assert isinstance(memory_store, AssignmentStore)
        assert isinstance(sqlite_store, AssignmentStore)

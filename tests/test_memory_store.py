"""Tests for castellan.store.memory_store and create_store."""

from __future__ import annotations

import pytest

from castellan.config.models import StoreConfig
from castellan.interfaces.rbac import Assignment, PolicyFact
from castellan.interfaces.store import AssignmentStore, StoreRecord, WriteOutcome
from castellan.store import InMemoryAssignmentStore, SQLiteAssignmentStore, create_store

A1 = Assignment(user_id="u1", role="instructor", tenant="acme")
A2 = Assignment(user_id="u2", role="admin", tenant="other")


class TestInMemoryStore:
    def test_satisfies_protocol(self, memory_store):
        assert isinstance(memory_store, AssignmentStore)

    def test_seeded(self):
        assert InMemoryAssignmentStore([A1]).load() == {A1}

    def test_add_remove(self, memory_store):
        assert memory_store.add(A1) is WriteOutcome.added
        assert memory_store.add(A1) is WriteOutcome.already_exists
        assert memory_store.remove(A1) is WriteOutcome.removed
        assert memory_store.remove(A1) is WriteOutcome.not_found

    def test_save_replaces(self, memory_store):
        memory_store.add(A1)
        memory_store.save([A2])
        assert memory_store.load() == {A2}

    def test_policy_records_ignored(self, memory_store):
        record = StoreRecord.from_fact(PolicyFact(role="admin", resource="*", action="*", tenant="acme"))
        assert memory_store.add(record) is WriteOutcome.ignored
        assert memory_store.remove(record) is WriteOutcome.ignored
        memory_store.save([record, A1])
        assert memory_store.load() == {A1}

    def test_raw_policy_fact_ignored(self, memory_store):
        fact = PolicyFact(role="admin", resource="*", action="*", tenant="acme")
        assert memory_store.add(fact) is WriteOutcome.ignored
        assert memory_store.remove(fact) is WriteOutcome.ignored
        memory_store.save([A1, fact])
        assert memory_store.load() == {A1}

    def test_load_returns_copy(self, memory_store):
        memory_store.add(A1)
        memory_store.load().clear()
        assert memory_store.load() == {A1}


class TestCreateStore:
    def test_memory(self):
        assert isinstance(create_store(StoreConfig(provider="memory")), InMemoryAssignmentStore)

    def test_sqlite(self, tmp_path):
        store = create_store(StoreConfig(provider="sqlite", path=str(tmp_path / "a.db"), timeout=2.0))
        try:
            assert isinstance(store, SQLiteAssignmentStore)
            assert store.timeout == 2.0
        finally:
            store.close()

    def test_unknown_provider(self):
        cfg = StoreConfig.model_construct(provider="postgres", path="x", timeout=1.0)
        with pytest.raises(ValueError, match="Unsupported store provider"):
            create_store(cfg)

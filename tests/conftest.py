"""Shared test fixtures for Castellan."""

import pytest

from castellan.config.models import CastellanConfig
from castellan.policy import PolicySource
from castellan.service import AuthorizationService
from castellan.store import InMemoryAssignmentStore, SQLiteAssignmentStore

SAMPLE_POLICY = """\
roles:
  admin:
    permissions:
      all: [all]
  instructor:
    permissions:
      assignment: [create, view]
  auditor:
    permissions:
      all: [view]
  grader:
    permissions:
      submission: [all]
"""


@pytest.fixture
def policy_yaml():
    return SAMPLE_POLICY


@pytest.fixture
def policy_source(policy_yaml):
    return PolicySource.from_string(policy_yaml)


@pytest.fixture
def policy_file(tmp_path, policy_yaml):
    path = tmp_path / "policies.yaml"
    path.write_text(policy_yaml)
    return path


@pytest.fixture
def memory_store():
    return InMemoryAssignmentStore()


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteAssignmentStore(db_path=str(tmp_path / "authz.db"), timeout=1.0)
    yield store
    store.close()


@pytest.fixture
def service(policy_source, memory_store):
    """Service over the sample catalog for tenants 'acme' and 'other'."""
    return AuthorizationService(policy_source, memory_store, ["acme", "other"])


@pytest.fixture
def sqlite_service(policy_source, sqlite_store):
    return AuthorizationService(policy_source, sqlite_store, ["acme", "other"])


@pytest.fixture
def sample_config(tmp_path, policy_file):
    return CastellanConfig(
        policy={"path": str(policy_file)},
        store={"provider": "sqlite", "path": str(tmp_path / "store" / "authz.db")},
        tenants=["acme", "other"],
    )

"""Assignment store backends."""

from castellan.config.models import StoreConfig
from castellan.interfaces.store import AssignmentStore
from castellan.store.memory_store import InMemoryAssignmentStore
from castellan.store.sqlite_store import SQLiteAssignmentStore


def create_store(config: StoreConfig) -> AssignmentStore:
    """Create an assignment store from app-level config."""
    if config.provider == "sqlite":
        return SQLiteAssignmentStore(db_path=config.path, timeout=config.timeout)
    if config.provider == "memory":
        return InMemoryAssignmentStore()
    raise ValueError(
        f"Unsupported store provider: {config.provider!r}. Supported: sqlite, memory"
    )


__all__ = [
    "InMemoryAssignmentStore",
    "SQLiteAssignmentStore",
    "create_store",
]

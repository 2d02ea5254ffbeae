"""Enforcement: in-memory tables and matching rules."""

from .enforcer import EnforcementEngine, Snapshot
from .matching import fact_matches, matches

__all__ = ["EnforcementEngine", "Snapshot", "fact_matches", "matches"]

"""
solver — query engine over ground relational facts.

Public API:
  query(facts, conditions, bindings)   → list[Substitution]
  QueryEngine(state)                   engine bound to one state
  build_facts(state)                   → Facts
  ground(pred, subst)                  → RelationalPredicate | None
  load_state_json(path, domain)        → StateFile
"""

from .engine  import Facts, QueryEngine, Substitution, build_facts, ground, query
from .loader  import StateFile, load_state_json, state_from_dict

__all__ = [
    "Facts",
    "QueryEngine",
    "Substitution",
    "build_facts",
    "ground",
    "query",
    "StateFile",
    "load_state_json",
    "state_from_dict",
]

"""
domain/environment.py — the interface an environment simulator exposes.

  start()       -> Observation
  step(action)  -> (Observation, reward, terminal)

Actions are grounded RelationalPredicates taken from the observation's
valid-action set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from relational.predicates import RelationalPredicate

from .spec import DomainSpec


@dataclass(frozen=True, slots=True)
class Observation:
    """
    - facts:         ground state facts
    - valid_actions: action name -> grounded valid actions
    - goal_args:     goal variable name -> constant (e.g. {"?G_0": "a"})
    """
    facts:         frozenset[RelationalPredicate]
    valid_actions: dict[str, tuple[RelationalPredicate, ...]]
    goal_args:     dict[str, str] = field(default_factory=dict)

    def all_actions(self) -> list[RelationalPredicate]:
        return [a for name in sorted(self.valid_actions) for a in self.valid_actions[name]]


class Environment(Protocol):
    domain: DomainSpec

    def start(self) -> Observation: ...

    def step(self, action: RelationalPredicate) -> tuple[Observation, float, bool]: ...

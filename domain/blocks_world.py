"""
domain/blocks_world.py — the blocks world reference domain and simulator.

State facts:
  block(X), floor(floor), on(X, Y), clear(X), clear(floor),
  highest(X), above(X, Y)
Action:
  move(X, Y) — put clear block X on clear block Y or on the floor

Goals:
  onab     block a directly on block b
  unstack  every block on the floor
  stack    all blocks in a single tower

Every step costs -1; an episode ends on the goal or after max_steps.
"""

from __future__ import annotations

import logging
import random

from relational.arguments import constant
from relational.predicates import RelationalPredicate

from .environment import Observation
from .registry import register_domain
from .spec import DomainSpec

logger = logging.getLogger(__name__)

FLOOR = "floor"

BLOCKS_WORLD: dict = {
    "name": "blocks_world",
    "types": {"thing": None, "block": "thing", "floor": "thing"},
    "predicates": [
        {"name": "block",   "args": ["block"]},
        {"name": "floor",   "args": ["floor"]},
        {"name": "on",      "args": ["block", "thing"]},
        {"name": "clear",   "args": ["thing"]},
        {"name": "highest", "args": ["block"]},
        {"name": "above",   "args": ["block", "thing"]},
    ],
    "actions": [
        {"name": "move", "args": ["block", "thing"]},
    ],
    "constants": [FLOOR],
    "specialization_conditions": {
        "move": ["highest(?X)", "highest(?Y)", "on(?X, floor)"],
    },
}

GOALS: tuple[str, ...] = ("onab", "unstack", "stack")


def blocks_world_spec() -> DomainSpec:
    return DomainSpec.from_dict(BLOCKS_WORLD)


class BlocksWorld:
    """
    Blocks world simulator.

    Usage::

        env = BlocksWorld(num_blocks=3, goal="onab", seed=1)
        obs = env.start()
        obs, reward, done = env.step(obs.valid_actions["move"][0])
    """

    def __init__(
        self,
        num_blocks: int = 3,
        goal:       str = "onab",
        max_steps:  int = 20,
        seed:       int | None = None,
    ) -> None:
        if goal not in GOALS:
            raise ValueError(f"Unknown blocks world goal '{goal}' (expected one of {GOALS})")
        if goal == "onab" and num_blocks < 2:
            raise ValueError("Goal 'onab' needs at least 2 blocks")
        self.domain     = blocks_world_spec()
        self.goal       = goal
        self.max_steps  = max_steps
        self.blocks     = [chr(ord("a") + i) for i in range(num_blocks)]
        self._rng       = random.Random(seed)
        self._support: dict[str, str] = {}
        self._steps     = 0

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    def start(self) -> Observation:
        self._steps = 0
        for _ in range(100):
            self._support = self._random_towers()
            if not self.goal_reached():
                break
        logger.debug("blocks world start: %s", self._support)
        return self.observe()

    def step(self, action: RelationalPredicate) -> tuple[Observation, float, bool]:
        obs = self.observe()
        if action not in obs.valid_actions.get("move", ()):
            raise ValueError(f"Action {action} is not valid in the current state")
        block, target = action.terms()
        self._support[block] = target
        self._steps += 1
        done = self.goal_reached() or self._steps >= self.max_steps
        return self.observe(), -1.0, done

    def goal_reached(self) -> bool:
        match self.goal:
            case "onab":
                return self._support.get("a") == "b"
            case "unstack":
                return all(s == FLOOR for s in self._support.values())
            case _:
                return sum(1 for s in self._support.values() if s == FLOOR) == 1

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _random_towers(self) -> dict[str, str]:
        order = list(self.blocks)
        self._rng.shuffle(order)
        support: dict[str, str] = {}
        tops:    list[str]      = []
        for block in order:
            if tops and self._rng.random() < 0.5:
                i = self._rng.randrange(len(tops))
                support[block] = tops[i]
                tops[i] = block
            else:
                support[block] = FLOOR
                tops.append(block)
        return support

    def _clear_blocks(self) -> list[str]:
        covered = set(self._support.values())
        return [b for b in self.blocks if b not in covered]

    def _below(self, block: str) -> list[str]:
        chain: list[str] = []
        current = self._support[block]
        while current != FLOOR:
            chain.append(current)
            current = self._support[current]
        chain.append(FLOOR)
        return chain

    def observe(self) -> Observation:
        make  = self.domain.make
        facts: set[RelationalPredicate] = {make("floor", (constant(FLOOR),)),
                                           make("clear", (constant(FLOOR),))}
        clear  = self._clear_blocks()
        height = {b: len(self._below(b)) for b in self.blocks}
        top    = max(height.values(), default=0)

        for b in self.blocks:
            facts.add(make("block", (constant(b),)))
            facts.add(make("on", (constant(b), constant(self._support[b]))))
            for below in self._below(b):
                facts.add(make("above", (constant(b), constant(below))))
        for b in clear:
            facts.add(make("clear", (constant(b),)))
            if height[b] == top:
                facts.add(make("highest", (constant(b),)))

        moves: list[RelationalPredicate] = []
        for b in clear:
            for target in [*clear, FLOOR]:
                if target != b and self._support[b] != target:
                    moves.append(make("move", (constant(b), constant(target))))

        goal_args = {"?G_0": "a", "?G_1": "b"} if self.goal == "onab" else {}
        return Observation(frozenset(facts), {"move": tuple(sorted(moves))}, goal_args)


register_domain(
    "blocks_world",
    blocks_world_spec,
    BlocksWorld,
    "Blocks world with onab / unstack / stack goals",
)

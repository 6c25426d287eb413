"""
optimizer/policy.py — sampled policies and the distribution they come from.

PolicyDistribution holds the slots, a probability per slot and the rule
arena. sample_policy() first decides which slots are used: each slot is
included with its probability scaled by the number of slots (capped at 1,
so a uniform slot distribution uses every slot). The included slots are
then drawn without replacement, in an order weighted by slot probability
(fixed descending order when frozen), and a rule is drawn from each. The
resulting Policy is a decision list: the first rule whose conditions hold
proposes the action.
"""

from __future__ import annotations

import copy
import logging
import math
import random
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from relational.predicates import RelationalPredicate
from relational.rules import RelationalRule, RuleArena
from solver.engine import QueryEngine

from .distribution import ProbabilityDistribution
from .slot import ABSENT, Slot

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Policy:
    """
    - choices: (slot id, rule id | None) in priority order
    - fired:   slot ids whose rule proposed an action during evaluation;
               None until the policy has been evaluated
    """
    choices: list[tuple[int, int | None]] = field(default_factory=list)
    fired:   set[int] | None = None

    def __len__(self) -> int:
        return len(self.rule_ids())

    def rule_ids(self) -> list[int]:
        return [r for _, r in self.choices if r is not ABSENT]

    def slot_ids(self) -> list[int]:
        return [s for s, _ in self.choices]

    def choice(self, slot_id: int) -> int | None:
        for s, r in self.choices:
            if s == slot_id:
                return r
        return None

    def used_slots(self) -> set[int]:
        """Slots that contributed a rule (only the fired ones once evaluated)."""
        chosen = {s for s, r in self.choices if r is not ABSENT}
        if self.fired is None:
            return chosen
        return chosen & self.fired

    def evaluate(
        self,
        arena:         RuleArena,
        state:         Sequence[RelationalPredicate] | frozenset[RelationalPredicate],
        valid_actions: Mapping[str, Sequence[RelationalPredicate]],
        bindings:      Mapping[str, str] | None = None,
    ) -> list[tuple[int, list[RelationalPredicate]]]:
        """
        (rule id, proposed valid actions) for every rule that fires, in
        priority order. Records the firing slots.
        """
        if self.fired is None:
            self.fired = set()
        engine = QueryEngine(state)
        results: list[tuple[int, list[RelationalPredicate]]] = []
        for slot_id, rule_id in self.choices:
            if rule_id is ABSENT or rule_id not in arena:
                continue
            rule    = arena[rule_id]
            actions = engine.actions(rule, valid_actions.get(rule.action_name, ()), bindings)
            if actions:
                self.fired.add(slot_id)
                results.append((rule_id, actions))
        return results

    def first_action(
        self,
        arena:         RuleArena,
        state:         Sequence[RelationalPredicate] | frozenset[RelationalPredicate],
        valid_actions: Mapping[str, Sequence[RelationalPredicate]],
        rng:           random.Random | None = None,
        bindings:      Mapping[str, str] | None = None,
    ) -> RelationalPredicate | None:
        """An action of the highest-priority firing rule (random among ties)."""
        for _, actions in self.evaluate(arena, state, valid_actions, bindings):
            return rng.choice(actions) if rng is not None else actions[0]
        return None

    def describe(self, arena: RuleArena) -> list[str]:
        return [str(arena[r]) for r in self.rule_ids() if r in arena]


# ---------------------------------------------------------------------------
# PolicyDistribution
# ---------------------------------------------------------------------------

class PolicyDistribution:
    """
    Slots, their selection probabilities and the rule arena.

    Usage::

        dist   = PolicyDistribution(seed=1)
        slot   = dist.add_slot("move", covered_rule)
        policy = dist.sample_policy()
    """

    def __init__(
        self,
        arena:          RuleArena | None = None,
        rng:            random.Random | None = None,
        seed:           int | None = None,
        include_absent: bool = False,
    ) -> None:
        self.arena          = arena if arena is not None else RuleArena()
        self.slots:         dict[int, Slot] = {}
        self.slot_probs:    ProbabilityDistribution[int] = ProbabilityDistribution()
        self.include_absent = include_absent
        self.frozen         = False
        self._rng           = rng or random.Random(seed)
        self._next_slot_id  = 0

    def __len__(self) -> int:
        return len(self.slots)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self.slots.values())

    def __str__(self) -> str:
        lines = [f"{s}  P={self.slot_probs.probability(s.slot_id):.4f}" for s in self]
        return "\n".join(lines)

    @property
    def rng(self) -> random.Random:
        return self._rng

    # ------------------------------------------------------------------
    # Slots and rules
    # ------------------------------------------------------------------

    def slot_for(self, action: str) -> Slot | None:
        for slot in self.slots.values():
            if slot.action == action:
                return slot
        return None

    def add_slot(self, action: str, seed_rule: RelationalRule | None = None) -> Slot:
        """
        New slot for action (seeded with the registered seed rule); the slot
        enters the slot distribution at 1/size before renormalisation.
        """
        seed_id = self.arena.add(seed_rule).rule_id if seed_rule is not None else None
        slot = Slot(self._next_slot_id, action, seed_id, self.include_absent)
        self._next_slot_id += 1
        self.slots[slot.slot_id] = slot
        self.slot_probs.add_new(slot.slot_id)
        logger.debug("new slot %d for '%s'", slot.slot_id, action)
        return slot

    def add_rule(self, slot: Slot, rule: RelationalRule) -> RelationalRule | None:
        """Registers rule and adds it to slot. None when the slot already has it."""
        registered = self.arena.add(rule)
        if not slot.add_rule(registered.rule_id):
            return None
        return registered

    def remove_rule(self, slot: Slot, rule_id: int) -> None:
        """Removes the rule from the slot, and from the arena when unused elsewhere."""
        slot.remove_rule(rule_id)
        if not any(rule_id in s for s in self.slots.values()):
            self.arena.remove(rule_id)

    def rule(self, rule_id: int) -> RelationalRule:
        return self.arena[rule_id]

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def freeze(self, frozen: bool = True) -> None:
        """Most-likely selection everywhere; not to be toggled while sampling."""
        self.frozen = frozen

    def inclusion_probability(self, slot_id: int) -> float:
        """Chance that the slot contributes to a sampled policy."""
        return min(1.0, self.slot_probs.probability(slot_id) * len(self.slots))

    def included_slots(self) -> list[int]:
        """
        Slots used by the next policy. Frozen, a slot is used when its
        inclusion probability is at least one half.
        """
        if self.frozen:
            return [s for s in self.slot_probs if self.inclusion_probability(s) >= 0.5]
        return [s for s in self.slot_probs if self._rng.random() < self.inclusion_probability(s)]

    def slot_order(self) -> list[int]:
        included = self.included_slots()
        if self.frozen:
            return [s for s in self.slot_probs.ordered() if s in included]
        remaining = ProbabilityDistribution(
            (s, p) for s, p in self.slot_probs.items() if s in included
        )
        order: list[int] = []
        while len(remaining):
            slot_id = remaining.sample(self._rng)
            order.append(slot_id)
            remaining.remove(slot_id)
        return order

    def sample_policy(self) -> Policy:
        choices = [
            (slot_id, self.slots[slot_id].sample(self._rng, self.frozen))
            for slot_id in self.slot_order()
        ]
        return Policy(choices)

    def snapshot(self, seed: int | None = None) -> PolicyDistribution:
        """Independent copy for a sampling worker; it never writes back."""
        clone = copy.deepcopy(self)
        clone._rng = random.Random(seed)
        return clone

    # ------------------------------------------------------------------

    def is_normalised(self, tolerance: float = 1e-6) -> bool:
        if self.slots and not math.isclose(self.slot_probs.total(), 1.0, abs_tol=tolerance):
            return False
        return all(
            math.isclose(s.rules.total(), 1.0, abs_tol=tolerance)
            for s in self.slots.values()
            if len(s.rules)
        )

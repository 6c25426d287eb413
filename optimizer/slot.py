"""
optimizer/slot.py — a distribution over the rule variants of one action.

The rule distribution is keyed by rule id. An optional absent choice
(key ABSENT) lets the slot contribute no rule to a sampled policy.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping

from .distribution import ProbabilityDistribution

logger = logging.getLogger(__name__)

ABSENT = None


class Slot:
    """
    Public attributes:
      slot_id       stable id inside the policy distribution
      action        action predicate name
      seed_rule_id  the covered (LGG) rule the slot was created from
      rules         ProbabilityDistribution[int | None]
      fixed         True once the slot has converged on one rule
      num_updates   number of elite updates that touched the slot
      update_size   size of the last rule-distribution update
    """

    def __init__(
        self,
        slot_id:        int,
        action:         str,
        seed_rule_id:   int | None = None,
        include_absent: bool = False,
    ) -> None:
        self.slot_id      = slot_id
        self.action       = action
        self.seed_rule_id = seed_rule_id
        self.rules: ProbabilityDistribution[int | None] = ProbabilityDistribution()
        self.fixed        = False
        self.num_updates  = 0
        self.update_size  = 0.0
        self._low_streaks: dict[int, int] = {}

        if seed_rule_id is not None:
            self.rules.add(seed_rule_id, 1.0)
        if include_absent:
            self.rules.add_new(ABSENT)

    def __len__(self) -> int:
        return len(self.rule_ids())

    def __contains__(self, rule_id: object) -> bool:
        return rule_id is not ABSENT and rule_id in self.rules

    def __str__(self) -> str:
        return (
            f"Slot ({self.action}) "
            f"[KL_SIZE:{self.kl_size():.3f};SIZE:{len(self)};UPDATES:{self.num_updates}] "
            f"{self.rules}"
        )

    @property
    def has_absent(self) -> bool:
        return ABSENT in self.rules

    def rule_ids(self) -> list[int]:
        return [r for r in self.rules if r is not ABSENT]

    def probability(self, rule_id: int | None) -> float:
        return self.rules.probability(rule_id)

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_rule(self, rule_id: int) -> bool:
        """New rules enter at 1/size before renormalisation."""
        if rule_id in self.rules:
            return False
        self.rules.add_new(rule_id)
        self.fixed = False
        return True

    def remove_rule(self, rule_id: int) -> None:
        self.rules.remove(rule_id)
        self._low_streaks.pop(rule_id, None)

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample(self, rng: random.Random, frozen: bool = False) -> int | None:
        """A rule id (or None for the absent choice / an empty slot)."""
        return self.rules.sample(rng, most_likely=frozen or self.fixed)

    def best_rule(self) -> int | None:
        for rule_id in self.rules.ordered():
            if rule_id is not ABSENT:
                return rule_id
        return None

    # ------------------------------------------------------------------
    # Update and pruning
    # ------------------------------------------------------------------

    def update(self, counts: Mapping[int | None, float], num_samples: float, step: float) -> float:
        if num_samples <= 0:
            return 0.0
        self.update_size  = self.rules.update(num_samples, counts, step)
        self.num_updates += 1
        return self.update_size

    def kl_size(self) -> float:
        return self.rules.kl_size()

    def viable_rules(self, threshold: float) -> list[int]:
        return [r for r in self.rule_ids() if self.rules.probability(r) > threshold]

    def is_converged(self, beta: float) -> bool:
        """One dominant rule at probability ≥ 1 − β; the slot becomes fixed."""
        best = self.best_rule()
        if best is not None and self.kl_size() <= 1.0 and self.rules.probability(best) >= 1.0 - beta:
            self.fixed = True
        return self.fixed

    def prune(self, threshold: float, iterations: int) -> list[int]:
        """
        Removes rules that stayed below threshold for `iterations`
        consecutive calls. The seed rule and the last rule stay.
        """
        removed: list[int] = []
        for rule_id in self.rule_ids():
            if self.rules.probability(rule_id) < threshold:
                self._low_streaks[rule_id] = self._low_streaks.get(rule_id, 0) + 1
            else:
                self._low_streaks.pop(rule_id, None)

        for rule_id, streak in list(self._low_streaks.items()):
            if streak < iterations or rule_id == self.seed_rule_id or len(self) <= 1:
                continue
            self.remove_rule(rule_id)
            removed.append(rule_id)

        if removed:
            logger.info("slot %s pruned rules %s", self.action, removed)
        return removed

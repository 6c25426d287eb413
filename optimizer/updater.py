"""
optimizer/updater.py — cross-entropy update of the policy distribution.

  select_elites(samples, n)            top-n by return, ties at the cutoff kept
  population_size(dist, ρ, minimum)    sampling population heuristic
  CrossEntropyUpdater.update(...)      slot/rule EMA update, pruning,
                                       regeneration, KL diagnostics
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from covering.pregoal import PreGoalTracker
from covering.specializer import Specializer

from .config import LearnerConfig
from .policy import Policy, PolicyDistribution
from .slot import ABSENT

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PolicyValue:
    """A sampled policy, its return and the iteration it was sampled in."""
    policy:    Policy
    value:     float
    iteration: int = 0


# ---------------------------------------------------------------------------
# Elites and population
# ---------------------------------------------------------------------------

def elite_count(population: int, selection_ratio: float) -> int:
    """ceil(population · ρ), at least one for a non-empty population."""
    if population <= 0:
        return 0
    return max(1, math.ceil(population * selection_ratio))


def select_elites(samples: Sequence[PolicyValue], num_elites: int) -> list[PolicyValue]:
    """
    The num_elites best samples by return (descending), plus every sample
    tied with the last one.
    """
    ordered = sorted(samples, key=lambda pv: -pv.value)
    if num_elites <= 0 or not ordered:
        return []
    if num_elites >= len(ordered):
        return ordered
    cutoff = ordered[num_elites - 1].value
    return [pv for pv in ordered if pv.value >= cutoff]


def population_size(
    distribution:    PolicyDistribution,
    selection_ratio: float,
    minimum:         int = 1,
) -> int:
    """
    ceil(max(Σ KL-size(slot), number of slots) / ρ), at least minimum.
    Every slot adds at least 1 to the sum, so the size never shrinks when a
    slot is added.
    """
    slots   = list(distribution)
    kl_sum  = math.fsum(s.kl_size() for s in slots)
    return max(minimum, math.ceil(max(kl_sum, len(slots)) / selection_ratio))


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class UpdateReport:
    num_elites:    int   = 0
    slot_update:   float = 0.0
    rule_update:   float = 0.0
    kl_divergence: float = 0.0
    pruned:        list[int] = field(default_factory=list)
    regenerated:   list[int] = field(default_factory=list)
    converged:     bool  = False

    @property
    def total_update(self) -> float:
        return self.slot_update + self.rule_update


class CrossEntropyUpdater:
    """
    Single writer of a PolicyDistribution between sampling rounds.

    Usage::

        updater = CrossEntropyUpdater(dist, specializer, config)
        report  = updater.update(None, samples)
    """

    def __init__(
        self,
        distribution: PolicyDistribution,
        specializer:  Specializer | None = None,
        config:       LearnerConfig | None = None,
        pregoals:     PreGoalTracker | None = None,
    ) -> None:
        self.distribution = distribution
        self.specializer  = specializer
        self.config       = config or LearnerConfig()
        self.pregoals     = pregoals
        self.kl_history:  list[float] = []
        self.converged    = False
        self._strikes     = 0

    # ------------------------------------------------------------------

    def count_elites(
        self,
        elites: Sequence[PolicyValue],
    ) -> tuple[dict[int, int], dict[int, dict[int | None, int]]]:
        """
        slot id -> number of elites that used the slot, and
        slot id -> {rule id | None: elites choosing it}. An absent choice
        counts for None; a chosen rule that never fired is not counted.
        """
        slot_counts: dict[int, int] = {}
        rule_counts: dict[int, dict[int | None, int]] = {}
        for pv in elites:
            used = pv.policy.used_slots()
            for slot_id in used:
                slot_counts[slot_id] = slot_counts.get(slot_id, 0) + 1
            for slot_id, rule_id in pv.policy.choices:
                if rule_id is not ABSENT and slot_id not in used:
                    continue
                counts = rule_counts.setdefault(slot_id, {})
                counts[rule_id] = counts.get(rule_id, 0) + 1
        return slot_counts, rule_counts

    def record_returns(self, samples: Sequence[PolicyValue]) -> None:
        arena = self.distribution.arena
        for pv in samples:
            used = pv.policy.used_slots()
            for slot_id, rule_id in pv.policy.choices:
                if rule_id is ABSENT or slot_id not in used or rule_id not in arena:
                    continue
                rule = arena[rule_id]
                rule.uses += 1
                rule.record_return(pv.value)

    def update(
        self,
        elites:          Sequence[PolicyValue] | None,
        all_sampled:     Sequence[PolicyValue],
        step_size:       float | None = None,
        selection_ratio: float | None = None,
    ) -> UpdateReport:
        """
        One cross-entropy update. Without explicit elites they are selected
        from all_sampled with ceil(len(all_sampled) · ρ) and ties.
        With no elites the distribution is left untouched.
        """
        step  = step_size if step_size is not None else self.config.step_size
        ratio = selection_ratio if selection_ratio is not None else self.config.selection_ratio
        if elites is None:
            elites = select_elites(all_sampled, elite_count(len(all_sampled), ratio))

        report = UpdateReport(num_elites=len(elites))
        if not elites:
            return report

        dist = self.distribution
        self.record_returns(all_sampled)
        slot_counts, rule_counts = self.count_elites(elites)

        before_slots = dist.slot_probs.as_dict()
        before_rules = {s.slot_id: s.rules.as_dict() for s in dist}

        report.slot_update = dist.slot_probs.update(len(elites), slot_counts, step)
        for slot in dist:
            counts = rule_counts.get(slot.slot_id)
            if counts:
                report.rule_update += slot.update(counts, sum(counts.values()), step)

        report.kl_divergence = dist.slot_probs.kl_divergence(before_slots) + math.fsum(
            s.rules.kl_divergence(before_rules.get(s.slot_id, {})) for s in dist
        )
        self.kl_history.append(report.kl_divergence)

        report.pruned      = self.prune()
        report.regenerated = self.regenerate()
        for slot in dist:
            slot.is_converged(self.config.slot_beta)

        if report.total_update < step * self.config.converged_epsilon:
            self._strikes += 1
        else:
            self._strikes = 0
        if self._strikes >= self.config.converged_updates and not self.converged:
            self.converged = True
            logger.info("distribution converged after %d small updates", self._strikes)
        report.converged = self.converged
        return report

    # ------------------------------------------------------------------

    def prune(self) -> list[int]:
        """Forward-only removal of persistently negligible rules."""
        removed: list[int] = []
        for slot in list(self.distribution):
            for rule_id in slot.prune(self.config.prune_threshold, self.config.pruning_iterations):
                self.distribution.remove_rule(slot, rule_id)
                removed.append(rule_id)
        return removed

    def _pregoal_fingerprint(self, action: str) -> int:
        if self.pregoals is None:
            return 0
        info = self.pregoals.get(action)
        return info.fingerprint if info is not None and info.is_settled() else 0

    def regenerate(self) -> list[int]:
        """
        Slots at or below the regeneration KL-size get the mutants of their
        best rule, once per best rule and settled pre-goal.
        """
        if self.specializer is None:
            return []
        added: list[int] = []
        for slot in list(self.distribution):
            if slot.kl_size() > self.config.regeneration_kl_size:
                continue
            best_id = slot.best_rule()
            if best_id is None or best_id not in self.distribution.arena:
                continue
            best        = self.distribution.arena[best_id]
            fingerprint = self._pregoal_fingerprint(slot.action)
            if best.has_spawned(fingerprint):
                continue
            best.mark_spawned(fingerprint)
            for mutant in sorted(self.specializer.specialize(best), key=str):
                registered = self.distribution.add_rule(slot, mutant)
                if registered is not None:
                    added.append(registered.rule_id)
        if added:
            logger.info("regenerated %d rules", len(added))
        return added

    def reset_convergence(self) -> None:
        self._strikes  = 0
        self.converged = False

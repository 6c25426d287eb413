"""
covering/pregoal.py — per-action pre-goal tracking.

The pre-goal of an action is the generalised fact set observed when the
action fired towards the goal. Each observation is unified into it:

  CHANGED    inactivity := 0
  UNCHANGED  inactivity += 1
  FAILED     PreGoalError (same action, no shared structure)

The observation that created or last changed the pre-goal counts as the
first of a run: threshold identical observations in a row settle it
(inactivity >= threshold - 1).

A settled pre-goal is immutable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from domain.spec import DomainSpec
from relational.arguments import RelationalArgument
from relational.errors import PreGoalError
from relational.predicates import RelationalPredicate

from .unification import Unifier, UnificationResult

logger = logging.getLogger(__name__)

INACTIVITY_THRESHOLD = 50


class PreGoalStatus(StrEnum):
    UNSETTLED = "unsettled"
    SETTLED   = "settled"


@dataclass(slots=True)
class PreGoalInformation:
    """
    - facts:        generalised pre-goal facts
    - action_terms: the action's terms as they unified (constants or variables)
    - inactivity:   observations since the last change
    - threshold:    length of the unchanged run that settles the pre-goal
    """
    facts:        tuple[RelationalPredicate, ...]
    action_terms: tuple[RelationalArgument, ...]
    inactivity:   int = 0
    threshold:    int = INACTIVITY_THRESHOLD

    @property
    def status(self) -> PreGoalStatus:
        if self.inactivity + 1 >= self.threshold:
            return PreGoalStatus.SETTLED
        return PreGoalStatus.UNSETTLED

    def is_settled(self) -> bool:
        return self.status is PreGoalStatus.SETTLED

    def is_recently_changed(self) -> bool:
        return self.inactivity == 0

    @property
    def fingerprint(self) -> int:
        return hash((self.facts, self.action_terms))


class PreGoalTracker:
    """Pre-goal state machine for every action of a domain."""

    def __init__(
        self,
        domain:    DomainSpec,
        unifier:   Unifier | None = None,
        threshold: int = INACTIVITY_THRESHOLD,
    ) -> None:
        self.domain    = domain
        self.unifier   = unifier or Unifier()
        self.threshold = threshold
        self._pregoals: dict[str, PreGoalInformation] = {}

    def __contains__(self, action_name: object) -> bool:
        return action_name in self._pregoals

    def get(self, action_name: str) -> PreGoalInformation | None:
        return self._pregoals.get(action_name)

    def status(self, action_name: str) -> PreGoalStatus:
        info = self._pregoals.get(action_name)
        return info.status if info is not None else PreGoalStatus.UNSETTLED

    def is_settled(self, action_name: str) -> bool:
        return self.status(action_name) is PreGoalStatus.SETTLED

    def clear(self, action_name: str | None = None) -> None:
        if action_name is None:
            self._pregoals.clear()
        else:
            self._pregoals.pop(action_name, None)

    # ------------------------------------------------------------------

    def observe(
        self,
        action: RelationalPredicate,
        state:  Iterable[RelationalPredicate],
    ) -> UnificationResult:
        """
        Unifies one observation (the facts when action fired) into the
        action's pre-goal.

        Raises:
            PreGoalError when the observation shares nothing with the
            stored pre-goal.
        """
        facts = tuple(sorted({f for f in state if not self.domain.is_useless_fact(f)}))
        info  = self._pregoals.get(action.name)

        if info is None:
            info = self._pregoals[action.name] = PreGoalInformation(
                facts, action.args, 0, self.threshold
            )
            self._log_settled(action.name, info)
            return UnificationResult.CHANGED
        if info.is_settled():
            return UnificationResult.UNCHANGED

        result = self.unifier.unify(info.facts, facts, info.action_terms, action.args)
        match result.result:
            case UnificationResult.FAILED:
                raise PreGoalError(
                    action.name,
                    [str(f) for f in info.facts],
                    [str(f) for f in facts],
                )
            case UnificationResult.CHANGED:
                info.facts        = result.facts
                info.action_terms = result.action_terms
                info.inactivity   = 0
            case _:
                info.inactivity += 1
        self._log_settled(action.name, info)
        return result.result

    def _log_settled(self, action_name: str, info: PreGoalInformation) -> None:
        if info.is_settled():
            logger.info("pre-goal for '%s' settled: %d facts", action_name, len(info.facts))

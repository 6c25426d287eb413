"""
optimizer/learner.py — the cross-entropy rule learner for one goal.

CrossEntropyLearner wires the parts together:

  observe(observation)       covering of the state, new slots for new actions
  sample_policy()            a policy from the current distribution
  run_episode(env, policy)   roll out one policy, feed the pre-goal tracker
  record_sample(policy, v)   store a (policy, return) sample
  end_iteration()            elite archive + CrossEntropyUpdater.update
"""

from __future__ import annotations

import logging
import random

from covering.generalizer import Covering
from covering.pregoal import PreGoalTracker
from covering.specializer import Specializer
from covering.unification import Unifier
from domain.environment import Environment, Observation
from domain.spec import DomainSpec
from relational.predicates import RelationalPredicate
from relational.rules import RelationalRule

from .config import LearnerConfig
from .policy import Policy, PolicyDistribution
from .updater import (
    CrossEntropyUpdater,
    PolicyValue,
    UpdateReport,
    elite_count,
    population_size,
    select_elites,
)

logger = logging.getLogger(__name__)


class CrossEntropyLearner:
    def __init__(
        self,
        domain:       DomainSpec,
        config:       LearnerConfig | None = None,
        distribution: PolicyDistribution | None = None,
    ) -> None:
        self.domain  = domain
        self.config  = config or LearnerConfig()
        self._rng    = random.Random(self.config.seed)

        self.unifier     = Unifier()
        self.covering    = Covering(domain, self.unifier, self._rng, self.config.settled_rule_states)
        self.pregoals    = PreGoalTracker(domain, self.unifier, self.config.inactivity_threshold)
        self.specializer = Specializer(domain, self.pregoals)
        if distribution is None:
            distribution = PolicyDistribution(rng=self._rng, include_absent=self.config.absent_choice)
        self.distribution = distribution
        self.updater = CrossEntropyUpdater(
            self.distribution, self.specializer, self.config, self.pregoals
        )

        self.iteration = 0
        self.samples:  list[PolicyValue] = []
        self.elites:   list[PolicyValue] = []
        self._covered: dict[str, list[RelationalRule]] = {
            slot.action: [self.distribution.arena[slot.seed_rule_id]]
            for slot in self.distribution
            if slot.seed_rule_id is not None and slot.seed_rule_id in self.distribution.arena
        }

    # ------------------------------------------------------------------
    # Rule population
    # ------------------------------------------------------------------

    def observe(self, observation: Observation) -> dict[str, list[RelationalRule]]:
        """Covers the observed state; every newly covered action gets a slot."""
        covered = self.covering.cover(
            observation.facts, observation.valid_actions, self._covered, create_new=True
        )
        for action, rules in covered.items():
            if not rules:
                continue
            if self.distribution.slot_for(action) is None:
                slot = self.distribution.add_slot(action, rules[0])
                rules[0] = self.distribution.arena[slot.seed_rule_id]
                logger.info("covered '%s': %s", action, rules[0])
            self._covered[action] = rules
        return covered

    def covered_rules(self) -> dict[str, list[RelationalRule]]:
        return {k: list(v) for k, v in self._covered.items()}

    # ------------------------------------------------------------------
    # Sampling and episodes
    # ------------------------------------------------------------------

    def sample_policy(self) -> Policy:
        return self.distribution.sample_policy()

    def choose_action(self, policy: Policy, observation: Observation) -> RelationalPredicate | None:
        """The policy's action, or a random valid action when no rule fires."""
        action = policy.first_action(
            self.distribution.arena,
            observation.facts,
            observation.valid_actions,
            self._rng,
            observation.goal_args,
        )
        if action is None:
            candidates = observation.all_actions()
            if candidates:
                action = self._rng.choice(candidates)
        return action

    def run_episode(
        self,
        env:       Environment,
        policy:    Policy | None = None,
        max_steps: int = 100,
    ) -> tuple[Policy, float]:
        """
        Rolls out one episode. The state in which the final, goal-reaching
        action was taken feeds the pre-goal of that action.
        """
        if policy is None:
            policy = self.sample_policy()
        observation = env.start()
        total       = 0.0
        last: tuple[RelationalPredicate, frozenset[RelationalPredicate]] | None = None
        done  = False
        steps = 0

        while not done and steps < max_steps:
            if not self.distribution.frozen:
                self.observe(observation)
            action = self.choose_action(policy, observation)
            if action is None:
                break
            last = (action, observation.facts)
            observation, reward, done = env.step(action)
            total += reward
            steps += 1

        reached = getattr(env, "goal_reached", None)
        if done and last is not None and (reached is None or reached()):
            if not self.distribution.frozen:
                self.pregoals.observe(last[0], last[1])
        return policy, total

    def record_sample(self, policy: Policy, value: float) -> None:
        self.samples.append(PolicyValue(policy, value, self.iteration))

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def population(self) -> int:
        return population_size(
            self.distribution, self.config.selection_ratio, self.config.min_population
        )

    def num_elites(self) -> int:
        return elite_count(self.population(), self.config.selection_ratio)

    def ready_for_update(self) -> bool:
        return len(self.samples) >= self.population()

    def _archive(self) -> list[PolicyValue]:
        """Elites from earlier iterations that are not stale yet."""
        limit = self.config.stale_limit
        return [pv for pv in self.elites if self.iteration - pv.iteration < limit]

    def end_iteration(self) -> UpdateReport:
        """Selects elites from the archive and this iteration, then updates."""
        pool        = self._archive() + self.samples
        self.elites = select_elites(pool, self.num_elites())
        report      = self.updater.update(self.elites, self.samples)
        self.samples = []
        self.iteration += 1
        return report

    def run_iteration(self, env: Environment, max_steps: int = 100) -> UpdateReport:
        for _ in range(self.population()):
            policy, value = self.run_episode(env, max_steps=max_steps)
            self.record_sample(policy, value)
        return self.end_iteration()

    def is_converged(self) -> bool:
        if self.updater.converged:
            return True
        n = self.num_elites()
        return len(self.elites) >= n > 1 and len({pv.value for pv in self.elites}) == 1

    def freeze(self, frozen: bool = True) -> None:
        self.distribution.freeze(frozen)

    def best_policy(self) -> Policy:
        """The most likely policy (sampled frozen, previous mode restored)."""
        was = self.distribution.frozen
        self.distribution.freeze(True)
        try:
            return self.distribution.sample_policy()
        finally:
            self.distribution.freeze(was)

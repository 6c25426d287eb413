"""
covering/generalizer.py — covering: maximally general rules from observed
state-action instances.

  cover(state, valid_actions, existing, create_new) -> rules per action

For every valid action instance the facts mentioning its terms are
inversely substituted (instance terms → ?X, ?Y, ...; protected constants
kept together with their type facts; other terms anonymised) and unified
into the existing candidate rules of the action. Rules settle after
SETTLED_RULE_STATES consecutive states without change.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Mapping, Sequence
from typing import TypeAlias

from domain.spec import DomainSpec
from relational.arguments import ANONYMOUS, RelationalArgument, action_variable
from relational.predicates import RelationalPredicate
from relational.rules import SETTLED_RULE_STATES, RelationalRule

from .unification import Unifier

logger = logging.getLogger(__name__)

TermIndex: TypeAlias = dict[str, list[RelationalPredicate]]


class Covering:
    """
    Covering engine for one domain.

    Usage::

        covering = Covering(domain)
        rules    = covering.cover(obs.facts, obs.valid_actions, {})
    """

    def __init__(
        self,
        domain:         DomainSpec,
        unifier:        Unifier | None = None,
        rng:            random.Random | None = None,
        settled_states: int = SETTLED_RULE_STATES,
    ) -> None:
        self.domain         = domain
        self.unifier        = unifier or Unifier()
        self.settled_states = settled_states
        self._rng           = rng or random.Random()

    # ------------------------------------------------------------------
    # State indexing
    # ------------------------------------------------------------------

    def index_state(self, state: Iterable[RelationalPredicate]) -> TermIndex:
        """term -> facts mentioning it (numbers and useless facts skipped)."""
        index: TermIndex = {}
        for pred in sorted(set(state)):
            if self.domain.is_useless_fact(pred):
                continue
            for arg in dict.fromkeys(pred.args):
                if arg.is_numeric or arg.is_anonymous:
                    continue
                index.setdefault(arg.name, []).append(pred)
        return index

    def relevant_facts(self, index: TermIndex, instance: RelationalPredicate) -> list[RelationalPredicate]:
        facts: dict[RelationalPredicate, None] = {}
        for arg in instance.args:
            if arg.is_numeric:
                continue
            for pred in index.get(arg.name, ()):
                facts[pred] = None
        return list(facts)

    # ------------------------------------------------------------------
    # Instance ordering
    # ------------------------------------------------------------------

    def order_instances(self, instances: Sequence[RelationalPredicate]) -> list[RelationalPredicate]:
        """
        Greedy order maximising new terms per argument position; once no
        remaining instance brings a new term the rest follow in random order.
        """
        remaining = list(instances)
        ordered:  list[RelationalPredicate] = []
        used:     dict[int, set[str]]       = {}

        while remaining:
            best_idx, best_score = None, 0
            for idx, inst in enumerate(remaining):
                score = sum(1 for j, a in enumerate(inst.args) if a.name not in used.get(j, ()))
                if score > best_score:
                    best_idx, best_score = idx, score
            if best_idx is None:
                self._rng.shuffle(remaining)
                ordered.extend(remaining)
                break
            inst = remaining.pop(best_idx)
            ordered.append(inst)
            for j, a in enumerate(inst.args):
                used.setdefault(j, set()).add(a.name)

        return ordered

    # ------------------------------------------------------------------
    # Inverse substitution
    # ------------------------------------------------------------------

    def inverse_substitute(
        self,
        facts:    Iterable[RelationalPredicate],
        instance: RelationalPredicate,
    ) -> tuple[tuple[RelationalPredicate, ...], RelationalPredicate]:
        """
        Candidate rule body and action for one instance.

        Protected constants stay and bring their type fact; numbers stay
        only in facts that also mention an action variable or a constant.
        """
        mapping: dict[RelationalArgument, RelationalArgument] = {}
        for i, arg in enumerate(instance.args):
            if not self.domain.is_constant(arg.name) and arg not in mapping:
                mapping[arg] = action_variable(i)
        action = instance.replace_arguments(mapping)

        conditions: dict[RelationalPredicate, None] = {}
        for pred in facts:
            if self.domain.is_useless_fact(pred):
                continue
            anchored = False
            args:  list[RelationalArgument] = []
            types: list[RelationalPredicate] = []
            for j, arg in enumerate(pred.args):
                if arg in mapping:
                    args.append(mapping[arg])
                    anchored = True
                elif arg.is_numeric:
                    args.append(arg)
                elif self.domain.is_constant(arg.name):
                    args.append(arg)
                    anchored = True
                    if j < len(pred.arg_types):
                        type_fact = self.domain.type_fact(pred.arg_types[j], arg)
                        if type_fact is not None and type_fact != pred:
                            types.append(type_fact)
                else:
                    args.append(ANONYMOUS)
            if not anchored:
                args = [ANONYMOUS if a.is_numeric else a for a in args]
            cond = pred.with_args(args)
            if cond.is_fully_anonymous() and cond.args:
                continue
            conditions[cond] = None
            for t in types:
                conditions[t] = None

        return tuple(conditions), action

    # ------------------------------------------------------------------
    # Covering
    # ------------------------------------------------------------------

    def all_settled(self, rules: Iterable[RelationalRule]) -> bool:
        rules = list(rules)
        return bool(rules) and all(r.is_settled(self.settled_states) for r in rules)

    def cover(
        self,
        state:         Iterable[RelationalPredicate],
        valid_actions: Mapping[str, Sequence[RelationalPredicate]],
        existing:      Mapping[str, Sequence[RelationalRule]],
        create_new:    bool = True,
    ) -> dict[str, list[RelationalRule]]:
        """
        Refines the existing candidate rules of every valid action with the
        instances in this state. A rule is created for an action without
        candidates only when create_new is set.

        Returns:
            action name -> candidate rules (existing ones updated in place).
        """
        index = self.index_state(state)
        results: dict[str, list[RelationalRule]] = {}

        for action_name in sorted(valid_actions):
            rules = list(existing.get(action_name, ()))
            results[action_name] = rules
            if self.all_settled(rules):
                continue

            changed: dict[int, bool] = {}
            for instance in self.order_instances(valid_actions[action_name]):
                conditions, action = self.inverse_substitute(
                    self.relevant_facts(index, instance), instance
                )

                if not rules:
                    if create_new:
                        rule = RelationalRule(conditions=conditions, action=action)
                        rules.append(rule)
                        changed[id(rule)] = True
                        logger.debug("covered new rule: %s", rule)
                    continue

                for rule in rules:
                    if rule.is_settled(self.settled_states):
                        continue
                    result = self.unifier.unify(
                        rule.conditions, conditions, rule.action_terms, action.args
                    )
                    if result.failed:
                        logger.debug("discarded candidate from %s for %s", instance, rule)
                        continue
                    if result.changed:
                        rule.set_conditions(result.facts)
                        rule.set_action_terms(result.action_terms)
                        changed[id(rule)] = True
                        logger.debug("generalised rule: %s", rule)

            for rule in rules:
                if not rule.is_settled(self.settled_states):
                    rule.note_state(changed.get(id(rule), False))

        return results

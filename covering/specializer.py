"""
covering/specializer.py — single-step rule specialisation.

Two families of mutants:

  specialize_toward_pregoal(rule)
      one mutant per settled pre-goal fact the rule does not already
      imply (translated from pre-goal terms to the rule's action terms),
      plus numeric range splits of the rule's range conditions;
  specialize_with_action_conditions(rule)
      every specialisation condition the domain declares for the action,
      asserted and negated.

A mutant is dropped when its new condition is redundant, contradicts the
rule, or violates the type lineage of an existing type predicate.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from domain.spec import DomainSpec
from relational.arguments import ANONYMOUS, ArgumentType, NumericRange, RelationalArgument, action_variable
from relational.predicates import RelationalPredicate
from relational.rules import RelationalRule, normalise_conditions

from .pregoal import PreGoalInformation, PreGoalTracker

logger = logging.getLogger(__name__)

NUM_NUMERICAL_SPLITS = 3


class Specializer:
    def __init__(self, domain: DomainSpec, pregoals: PreGoalTracker | None = None) -> None:
        self.domain   = domain
        self.pregoals = pregoals

    # ------------------------------------------------------------------
    # Condition checks
    # ------------------------------------------------------------------

    def consistent_types(
        self,
        conditions: Iterable[RelationalPredicate],
        condition:  RelationalPredicate,
    ) -> bool:
        """
        Every term of a positive condition must have a type on the lineage
        of each type predicate already asserted on that term. A new type
        predicate must also lie on the lineage of the declared argument
        type wherever an existing condition uses its term.
        """
        if condition.negated:
            return True
        if condition.is_type and condition.args and not condition.args[0].is_anonymous:
            term = condition.args[0]
            for c in conditions:
                if c.negated or c.is_type:
                    continue
                for j, arg in enumerate(c.args[:len(c.arg_types)]):
                    if arg == term and not self.domain.on_lineage(condition.name, c.arg_types[j]):
                        return False
        type_preds = [c for c in conditions if c.is_type and not c.negated and c.args]
        for j, arg in enumerate(condition.args):
            if arg.is_anonymous:
                continue
            if condition.is_type:
                term_type = condition.name
            elif j < len(condition.arg_types):
                term_type = condition.arg_types[j]
            else:
                continue
            for tp in type_preds:
                if tp.args[0] == arg and not self.domain.on_lineage(term_type, tp.name):
                    return False
        return True

    def simplify(
        self,
        conditions: tuple[RelationalPredicate, ...],
        condition:  RelationalPredicate,
    ) -> tuple[RelationalPredicate, ...] | None:
        """
        conditions plus condition, or None when condition is already implied,
        contradicts an existing condition, or breaks type consistency.
        """
        if any(condition.generalises(c) for c in conditions):
            return None
        negation = condition.negate()
        if any(negation.generalises(c) for c in conditions):
            return None
        if not self.consistent_types(conditions, condition):
            return None
        return normalise_conditions([*conditions, condition])

    # ------------------------------------------------------------------
    # Toward the pre-goal
    # ------------------------------------------------------------------

    def _translate(
        self,
        fact:    RelationalPredicate,
        mapping: dict[RelationalArgument, RelationalArgument],
    ) -> RelationalPredicate:
        args: list[RelationalArgument] = []
        for arg in fact.args:
            if arg in mapping:
                args.append(mapping[arg])
            elif arg.is_numeric or arg.is_anonymous or self.domain.is_constant(arg.name):
                args.append(arg)
            else:
                args.append(ANONYMOUS)
        return fact.with_args(args)

    def _pregoal_mapping(
        self,
        info: PreGoalInformation,
        rule: RelationalRule,
    ) -> dict[RelationalArgument, RelationalArgument]:
        mapping: dict[RelationalArgument, RelationalArgument] = {}
        for pg_term, rule_term in zip(info.action_terms, rule.action_terms):
            if pg_term not in mapping:
                mapping[pg_term] = rule_term
        return mapping

    def range_splits(
        self,
        rule:    RelationalRule,
        arg:     RelationalArgument,
        pregoal: RelationalArgument | None = None,
    ) -> list[NumericRange]:
        """
        Sub-ranges of a range argument: halves and the centred half-width
        window; for non-mutants also the split at zero and the pre-goal's
        own (differing) range or value.
        """
        rng    = arg.range
        lo, hi = rng.bounds()
        splits: list[NumericRange] = []
        if lo != hi:
            mid = (lo + hi) / 2
            q   = (hi - lo) / 4
            splits += [rng.sub_range(lo, mid), rng.sub_range(mid, hi),
                       rng.sub_range(mid - q, mid + q)][:NUM_NUMERICAL_SPLITS]
        if not rule.mutant:
            if lo * hi < 0:
                splits += [rng.sub_range(lo, 0.0), rng.sub_range(0.0, hi)]
            if pregoal is not None and pregoal.is_numeric:
                p_lo, p_hi = pregoal.numeric_bounds()
                if (p_lo, p_hi) != (lo, hi) and lo <= p_lo <= p_hi <= hi:
                    splits.append(rng.sub_range(p_lo, p_hi))
        current = rng.bounds()
        return [s for s in dict.fromkeys(splits) if s.bounds() != current]

    def _pregoal_numeric(
        self,
        translated: list[RelationalPredicate],
        cond:       RelationalPredicate,
        j:          int,
    ) -> RelationalArgument | None:
        for fact in translated:
            if not fact.same_signature(cond) or not fact.args[j].is_numeric:
                continue
            others = [a for k, a in enumerate(fact.args) if k != j]
            mine   = [a for k, a in enumerate(cond.args) if k != j]
            if others == mine:
                return fact.args[j]
        return None

    def specialize_toward_pregoal(self, rule: RelationalRule) -> set[RelationalRule]:
        if self.pregoals is None:
            return set()
        info = self.pregoals.get(rule.action_name)
        if info is None or not info.is_settled():
            return set()

        mapping    = self._pregoal_mapping(info, rule)
        translated = [self._translate(f, mapping) for f in info.facts]
        mutants: set[RelationalRule] = set()

        for fact in translated:
            if fact.args and fact.is_fully_anonymous():
                continue
            conditions = self.simplify(rule.conditions, fact)
            if conditions is not None and conditions != rule.conditions:
                mutants.add(rule.spawn_mutant(conditions))

        for cond in rule.conditions:
            for j, arg in enumerate(cond.args):
                if arg.kind is not ArgumentType.NUMBER_RANGE:
                    continue
                pg_arg = self._pregoal_numeric(translated, cond, j)
                for sub in self.range_splits(rule, arg, pg_arg):
                    new_arg  = RelationalArgument(ArgumentType.NUMBER_RANGE, arg.name, sub)
                    new_cond = cond.with_args(cond.args[:j] + (new_arg,) + cond.args[j + 1:])
                    conds    = [c for c in rule.conditions if c != cond] + [new_cond]
                    mutants.add(rule.spawn_mutant(conds))

        mutants.discard(rule)
        return mutants

    # ------------------------------------------------------------------
    # Action conditions
    # ------------------------------------------------------------------

    def specialize_with_action_conditions(self, rule: RelationalRule) -> set[RelationalRule]:
        templates = self.domain.specialization_conditions.get(rule.action_name, ())
        mapping   = {action_variable(i): term for i, term in enumerate(rule.action_terms)}
        mutants: set[RelationalRule] = set()
        for template in templates:
            condition = template.replace_arguments(mapping)
            for cond in (condition, condition.negate()):
                conditions = self.simplify(rule.conditions, cond)
                if conditions is not None and conditions != rule.conditions:
                    mutants.add(rule.spawn_mutant(conditions))
        mutants.discard(rule)
        return mutants

    def specialize(self, rule: RelationalRule) -> set[RelationalRule]:
        mutants = self.specialize_toward_pregoal(rule) | self.specialize_with_action_conditions(rule)
        logger.debug("%d mutants of %s", len(mutants), rule)
        return mutants

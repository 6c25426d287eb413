"""
covering/unification.py — least-general unification of two fact sets.

Unifier.unify(old_facts, new_facts, old_terms, new_terms) merges a stored
(possibly already generalised) fact set with a new one for the same action:

  1. differing action terms are replaced by the action variable of their
     position in both sets (two different variables cannot be merged);
  2. every old fact is paired with the new fact of the same name and
     polarity that needs the fewest anonymised terms; disagreeing terms
     become '?', disagreeing numbers merge into a range variable;
  3. negated facts unify only with an identical fact;
  4. a new fact is used at most once; old facts without a partner, or whose
     partner leaves nothing but anonymous terms, are dropped.

Result: UNCHANGED, CHANGED, or FAILED (nothing survived).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from relational.arguments import (
    ANONYMOUS,
    ArgumentType,
    NumericRange,
    RelationalArgument,
    action_variable,
)
from relational.predicates import RelationalPredicate

logger = logging.getLogger(__name__)

_PENDING_RANGE = "?#_"


class UnificationResult(StrEnum):
    UNCHANGED = "unchanged"
    CHANGED   = "changed"
    FAILED    = "failed"


@dataclass(frozen=True, slots=True)
class Unification:
    """
    - result:       UNCHANGED | CHANGED | FAILED
    - facts:        the unified fact set (the old set when FAILED)
    - action_terms: the unified action terms
    """
    result:       UnificationResult
    facts:        tuple[RelationalPredicate, ...]
    action_terms: tuple[RelationalArgument, ...]

    @property
    def changed(self) -> bool:
        return self.result is UnificationResult.CHANGED

    @property
    def failed(self) -> bool:
        return self.result is UnificationResult.FAILED


@dataclass(frozen=True, slots=True)
class _FactMatch:
    fact:       RelationalPredicate
    generality: int
    merges:     int

    @property
    def cost(self) -> tuple[int, int]:
        return self.generality, self.merges


# ---------------------------------------------------------------------------
# Unifier
# ---------------------------------------------------------------------------

class Unifier:
    """
    Stateful only in the counter used to name new range variables
    (?#_0, ?#_1, ...).
    """

    def __init__(self, range_index: int = 0) -> None:
        self._range_index = range_index

    def _next_range_name(self) -> str:
        name = f"?#_{self._range_index}"
        self._range_index += 1
        return name

    # ------------------------------------------------------------------

    def unify(
        self,
        old_facts: Iterable[RelationalPredicate],
        new_facts: Iterable[RelationalPredicate],
        old_terms: Sequence[RelationalArgument] = (),
        new_terms: Sequence[RelationalArgument] = (),
    ) -> Unification:
        old_facts = tuple(sorted(set(old_facts)))
        old_terms = tuple(old_terms)
        new_terms = tuple(new_terms)
        failed    = Unification(UnificationResult.FAILED, old_facts, old_terms)

        if len(old_terms) != len(new_terms):
            return failed

        # 1. action terms
        old_repl: dict[RelationalArgument, RelationalArgument] = {}
        new_repl: dict[RelationalArgument, RelationalArgument] = {}
        terms = list(old_terms)
        for i, (o, n) in enumerate(zip(old_terms, new_terms)):
            if o == n:
                continue
            if o.is_variable and n.is_variable:
                return failed
            var = o if o.is_variable else (n if n.is_variable else action_variable(i))
            if not o.is_variable:
                old_repl[o] = var
            if not n.is_variable:
                new_repl[n] = var
            terms[i] = var

        old_mapped = [f.replace_arguments(old_repl) for f in old_facts]
        remaining  = sorted(set(f.replace_arguments(new_repl) for f in new_facts))

        # 2-4. facts
        unified: list[RelationalPredicate] = []
        for old in old_mapped:
            best_idx:   int | None       = None
            best_match: _FactMatch | None = None
            for idx, candidate in enumerate(remaining):
                match = _unify_fact(old, candidate)
                if match is None:
                    continue
                if best_match is None or match.cost < best_match.cost:
                    best_idx, best_match = idx, match
            if best_match is None:
                continue
            remaining.pop(best_idx)
            unified.append(self._name_ranges(best_match.fact))

        if not unified:
            logger.debug("no facts survived unification of %d old facts", len(old_facts))
            return failed

        result_facts = tuple(sorted(set(unified)))
        result_terms = tuple(terms)
        if set(result_facts) == set(old_facts) and result_terms == old_terms:
            return Unification(UnificationResult.UNCHANGED, old_facts, old_terms)
        return Unification(UnificationResult.CHANGED, result_facts, result_terms)

    def _name_ranges(self, fact: RelationalPredicate) -> RelationalPredicate:
        if not any(a.kind is ArgumentType.NUMBER_RANGE and a.name == _PENDING_RANGE
                   for a in fact.args):
            return fact
        args = tuple(
            RelationalArgument(a.kind, self._next_range_name(), a.range)
            if a.kind is ArgumentType.NUMBER_RANGE and a.name == _PENDING_RANGE
            else a
            for a in fact.args
        )
        return fact.with_args(args)


# ---------------------------------------------------------------------------
# Single fact
# ---------------------------------------------------------------------------

def _merge_numbers(o: RelationalArgument, n: RelationalArgument) -> RelationalArgument:
    """The range covering both numeric arguments, reusing o's name if it is a range."""
    o_lo, o_hi = o.numeric_bounds()
    n_lo, n_hi = n.numeric_bounds()
    merged = NumericRange(min(o_lo, n_lo), max(o_hi, n_hi))
    if o.kind is ArgumentType.NUMBER_RANGE:
        if merged.bounds() == o.range.bounds():
            return o
        return RelationalArgument(ArgumentType.NUMBER_RANGE, o.name, merged)
    return RelationalArgument(ArgumentType.NUMBER_RANGE, _PENDING_RANGE, merged)


def _unify_fact(old: RelationalPredicate, new: RelationalPredicate) -> _FactMatch | None:
    if not old.same_signature(new):
        return None
    if old.negated:
        return _FactMatch(old, 0, 0) if old == new else None

    args:       list[RelationalArgument] = []
    generality: int = 0
    merges:     int = 0
    for o, n in zip(old.args, new.args):
        if o == n or o.is_anonymous:
            args.append(o)
        elif o.is_numeric and n.is_numeric:
            merged = _merge_numbers(o, n)
            if merged != o:
                merges += 1
            args.append(merged)
        else:
            args.append(ANONYMOUS)
            generality += 1

    if args and all(a.is_anonymous for a in args):
        return None
    return _FactMatch(old.with_args(args), generality, merges)


def unify(
    old_facts: Iterable[RelationalPredicate],
    new_facts: Iterable[RelationalPredicate],
    old_terms: Sequence[RelationalArgument] = (),
    new_terms: Sequence[RelationalArgument] = (),
) -> Unification:
    """Unification with a throwaway range counter."""
    return Unifier().unify(old_facts, new_facts, old_terms, new_terms)

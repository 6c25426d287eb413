"""
solver/engine.py — conjunctive query engine over ground relational facts.

The learner asks one question of this module:

    query(facts, conditions, bindings) -> list[Substitution]

Supported:
  - variables of every kind (?X, ?G_0, ?Bnd_0, ?Unb_0, ranges ?#_0)
  - anonymous arguments '?' (expanded to fresh unbound variables)
  - numeric constants compared by value, ranges tested by containment
  - negation-as-failure over conditions whose named variables are bound
  - pre-bound variables (goal variables of modular policies)

Restrictions (safe negation):
  - every named variable in a negated condition must be bound by an
    earlier positive condition; anonymous arguments in a negated
    condition match anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from relational.arguments import (
    ArgumentType,
    RelationalArgument,
    parse_argument,
    unbound_variable,
)
from relational.predicates import RelationalPredicate
from relational.rules import RelationalRule

Facts        = dict[str, set[tuple[str, ...]]]
Substitution = dict[str, str]


def build_facts(state: Iterable[RelationalPredicate]) -> Facts:
    """Indexes positive ground facts by predicate name."""
    facts: Facts = {}
    for pred in state:
        if not pred.negated:
            facts.setdefault(pred.name, set()).add(pred.terms())
    return facts


# ---------------------------------------------------------------------------
# Argument matching
# ---------------------------------------------------------------------------

def _as_number(value: str) -> float | None:
    try:
        return float(value)
    except ValueError:
        return None


def _match_arg(arg: RelationalArgument, value: str, subst: Substitution) -> bool:
    """Matches one argument, extending subst in place. False on a clash."""
    match arg.kind:
        case ArgumentType.ANON:
            return True
        case ArgumentType.CONST:
            return arg.name == value
        case ArgumentType.NUMBER_CONST:
            v = _as_number(value)
            return v is not None and v == arg.value
        case ArgumentType.NUMBER_RANGE:
            v = _as_number(value)
            if v is None or not arg.range.contains(v):
                return False
    bound = subst.get(arg.name)
    if bound is None:
        subst[arg.name] = value
        return True
    return bound == value


def _unify(
    args:   tuple[RelationalArgument, ...],
    ground: tuple[str, ...],
    subst:  Substitution,
) -> Substitution | None:
    """Unifies condition arguments with a ground tuple. New substitution or None."""
    if len(args) != len(ground):
        return None
    s = dict(subst)
    for arg, value in zip(args, ground):
        if not _match_arg(arg, value, s):
            return None
    return s


def _expand_anonymous(
    conditions: Sequence[RelationalPredicate],
) -> tuple[list[RelationalPredicate], set[str]]:
    """
    Anonymous arguments of positive conditions become fresh ?Unb_i
    variables. Returns the expanded conditions and the generated names.
    """
    counter   = 0
    generated: set[str] = set()
    expanded:  list[RelationalPredicate] = []
    for cond in conditions:
        if cond.negated or not any(a.is_anonymous for a in cond.args):
            expanded.append(cond)
            continue
        new_args: list[RelationalArgument] = []
        for arg in cond.args:
            if arg.is_anonymous:
                var = unbound_variable(1000 + counter)
                generated.add(var.name)
                new_args.append(var)
                counter += 1
            else:
                new_args.append(arg)
        expanded.append(cond.with_args(new_args))
    return expanded, generated


# ---------------------------------------------------------------------------
# Backtracking over the condition list
# ---------------------------------------------------------------------------

def _match_body(
    body:  list[RelationalPredicate],
    facts: Facts,
    subst: Substitution,
) -> list[Substitution]:
    """
    All substitutions extending subst under which every condition of body
    holds in facts.

    Raises ValueError when a negated condition still has unbound named
    variables.
    """
    if not body:
        return [dict(subst)]

    cond = body[0]
    rest = body[1:]

    if cond.negated:
        unbound = [a.name for a in cond.args
                   if a.is_variable and a.kind is not ArgumentType.NUMBER_RANGE
                   and a.name not in subst]
        if unbound:
            raise ValueError(
                f"Unsafe negation (unbound variables {unbound}): {cond}  "
                f"[substitution: {subst}]"
            )
        for fact_args in facts.get(cond.name, set()):
            if _unify(cond.args, fact_args, subst) is not None:
                return []
        return _match_body(rest, facts, subst)

    results: list[Substitution] = []
    for fact_args in facts.get(cond.name, set()):
        new_subst = _unify(cond.args, fact_args, subst)
        if new_subst is not None:
            results.extend(_match_body(rest, facts, new_subst))
    return results


def query(
    facts:      Facts | Iterable[RelationalPredicate],
    conditions: Sequence[RelationalPredicate],
    bindings:   Mapping[str, str] | None = None,
) -> list[Substitution]:
    """
    Answers a conjunctive query.

    Args:
        facts:      indexed facts or an iterable of ground predicates
        conditions: the query; positive conditions are matched before
                    negated ones
        bindings:   pre-bound variables, e.g. {"?G_0": "a"}

    Returns:
        Distinct substitutions (variable name -> value); an empty list when
        the query fails.
    """
    if not isinstance(facts, dict):
        facts = build_facts(facts)
    ordered = [c for c in conditions if not c.negated] + [c for c in conditions if c.negated]
    seen:    set[tuple[tuple[str, str], ...]] = set()
    results: list[Substitution] = []
    body, generated = _expand_anonymous(ordered)
    for subst in _match_body(body, facts, dict(bindings or {})):
        subst = {k: v for k, v in subst.items() if k not in generated}
        key   = tuple(sorted(subst.items()))
        if key not in seen:
            seen.add(key)
            results.append(subst)
    return results


def ground(pred: RelationalPredicate, subst: Mapping[str, str]) -> RelationalPredicate | None:
    """Substitutes bound variables; None while any variable stays unbound."""
    args: list[RelationalArgument] = []
    for arg in pred.args:
        if arg.is_constant:
            args.append(arg)
        elif arg.name in subst:
            args.append(parse_argument(subst[arg.name]))
        else:
            return None
    return pred.with_args(args)


# ---------------------------------------------------------------------------
# QueryEngine
# ---------------------------------------------------------------------------

class QueryEngine:
    """
    Query engine bound to one state.

    Usage::

        engine  = QueryEngine(observation.facts)
        actions = engine.actions(rule, observation.valid_actions["move"])
    """

    def __init__(self, state: Iterable[RelationalPredicate]) -> None:
        self._facts: Facts = build_facts(state)

    def query(
        self,
        conditions: Sequence[RelationalPredicate],
        bindings:   Mapping[str, str] | None = None,
    ) -> list[Substitution]:
        return query(self._facts, conditions, bindings)

    def holds(self, conditions: Sequence[RelationalPredicate]) -> bool:
        return bool(self.query(conditions))

    def actions(
        self,
        rule:          RelationalRule,
        valid_actions: Iterable[RelationalPredicate],
        bindings:      Mapping[str, str] | None = None,
    ) -> list[RelationalPredicate]:
        """
        Valid grounded actions the rule proposes in this state, sorted.
        The action itself is matched as the last positive condition.
        """
        valid = list(valid_actions)
        if not valid:
            return []
        facts = {k: set(v) for k, v in self._facts.items()}
        facts[rule.action.name] = {a.terms() for a in valid}
        positives = [c for c in rule.conditions if not c.negated]
        negatives = [c for c in rule.conditions if c.negated]
        body, _   = _expand_anonymous([*positives, rule.action, *negatives])

        by_terms = {a.terms(): a for a in valid}
        found: dict[tuple[str, ...], RelationalPredicate] = {}
        for subst in _match_body(body, facts, dict(bindings or {})):
            grounded = ground(rule.action, subst)
            if grounded is not None and grounded.terms() in by_terms:
                found[grounded.terms()] = by_terms[grounded.terms()]
        return sorted(found.values())

    @property
    def facts(self) -> Facts:
        return {k: set(v) for k, v in self._facts.items()}

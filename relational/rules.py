"""
relational/rules.py — first-order rules and the rule arena.

RelationalRule: condition set (body) => action predicate (head), plus
lineage (parent/child ids, ancestry depth, mutant flag) and usage
statistics (Welford mean/SD of returns, uses, states-seen counter).

RuleArena: owns every rule under a stable integer id; lineage is stored as
id lists, never as object references.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from .arguments import ANONYMOUS, ArgumentType, RelationalArgument, bound_variable
from .predicates import RelationalPredicate

SETTLED_RULE_STATES = 50

INFERS_ACTION   = " => "
CONDITION_JOIN  = " AND "

_RENAMED_KINDS = (ArgumentType.BOUND_VAR, ArgumentType.UNBOUND_VAR)


def normalise_conditions(
    conditions: Iterable[RelationalPredicate],
) -> tuple[RelationalPredicate, ...]:
    """
    Canonical condition tuple: duplicates and fully anonymous conditions
    removed, bound/unbound variables used once turned anonymous, the rest
    renumbered ?Bnd_0, ?Bnd_1 ... in order of appearance, then sorted.
    """
    conds = [c for c in dict.fromkeys(conditions) if not c.is_fully_anonymous()]

    uses: dict[RelationalArgument, int] = {}
    for cond in conds:
        for arg in cond.args:
            if arg.kind in _RENAMED_KINDS:
                uses[arg] = uses.get(arg, 0) + 1

    if uses:
        mapping: dict[RelationalArgument, RelationalArgument] = {}
        for arg, count in uses.items():
            if count == 1:
                mapping[arg] = ANONYMOUS
            else:
                mapping[arg] = bound_variable(sum(1 for v in mapping.values() if v != ANONYMOUS))
        conds = [c.replace_arguments(mapping) for c in conds]
        conds = [c for c in dict.fromkeys(conds) if not c.is_fully_anonymous()]

    return tuple(sorted(conds))


# ---------------------------------------------------------------------------
# RelationalRule
# ---------------------------------------------------------------------------

@dataclass(eq=False, slots=True)
class RelationalRule:
    """
    A rule "cond1 AND cond2 ... => action(args)".

    Equality and hashing use the action and the canonical condition set, so
    two rules with the same body and head are the same rule regardless of
    lineage or statistics. Only unregistered rules or rules outside sets
    should have their conditions replaced.
    """
    conditions: tuple[RelationalPredicate, ...]
    action:     RelationalPredicate
    rule_id:    int = -1
    parent_ids: list[int] = field(default_factory=list)
    child_ids:  list[int] = field(default_factory=list)
    ancestry:   int  = 0
    mutant:     bool = False
    uses:       int  = 0
    states_seen: int = 0
    spawned_from: set[int] = field(default_factory=set)
    _count: int   = 0
    _mean:  float = 0.0
    _m2:    float = 0.0

    def __post_init__(self) -> None:
        self.conditions = normalise_conditions(self.conditions)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def key(self) -> tuple[RelationalPredicate, tuple[RelationalPredicate, ...]]:
        return self.action, self.conditions

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RelationalRule):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        body = CONDITION_JOIN.join(str(c) for c in self.conditions)
        return f"{body}{INFERS_ACTION}{self.action}".lstrip()

    def __repr__(self) -> str:
        return f"RelationalRule(#{self.rule_id} {self})"

    # ------------------------------------------------------------------

    @property
    def action_name(self) -> str:
        return self.action.name

    @property
    def action_terms(self) -> tuple[RelationalArgument, ...]:
        return self.action.args

    def set_conditions(self, conditions: Iterable[RelationalPredicate]) -> bool:
        """Replaces the body. Returns True (and resets settledness) on change."""
        new = normalise_conditions(conditions)
        if new == self.conditions:
            return False
        self.conditions  = new
        self.states_seen = 0
        return True

    def set_action_terms(self, terms: Iterable[RelationalArgument]) -> None:
        self.action = self.action.with_args(terms)

    def note_state(self, changed: bool) -> None:
        """Settledness counter: any change resets it, otherwise it grows."""
        self.states_seen = 0 if changed else self.states_seen + 1

    def is_settled(self, threshold: int = SETTLED_RULE_STATES) -> bool:
        return self.states_seen >= threshold

    # ------------------------------------------------------------------
    # Return statistics (Welford)
    # ------------------------------------------------------------------

    def record_return(self, value: float) -> None:
        self._count += 1
        delta       = value - self._mean
        self._mean += delta / self._count
        self._m2   += delta * (value - self._mean)

    @property
    def return_count(self) -> int:
        return self._count

    @property
    def mean(self) -> float:
        return self._mean

    @property
    def std(self) -> float:
        if self._count < 2:
            return 0.0
        return math.sqrt(self._m2 / (self._count - 1))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def spawn_mutant(self, conditions: Iterable[RelationalPredicate]) -> RelationalRule:
        """Unregistered child rule with this rule as its single parent."""
        return RelationalRule(
            conditions=tuple(conditions),
            action=self.action,
            parent_ids=[self.rule_id] if self.rule_id >= 0 else [],
            ancestry=self.ancestry + 1,
            mutant=True,
        )

    def has_spawned(self, pregoal_fingerprint: int) -> bool:
        return pregoal_fingerprint in self.spawned_from

    def mark_spawned(self, pregoal_fingerprint: int) -> None:
        self.spawned_from.add(pregoal_fingerprint)


# ---------------------------------------------------------------------------
# RuleArena
# ---------------------------------------------------------------------------

class RuleArena:
    """
    Registry of rules by stable integer id.

    Usage::

        arena = RuleArena()
        rule  = arena.add(RelationalRule(conds, action))
        arena.get(rule.rule_id)
    """

    def __init__(self) -> None:
        self._rules: dict[int, RelationalRule] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[RelationalRule]:
        return iter(self._rules.values())

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __getitem__(self, rule_id: int) -> RelationalRule:
        return self._rules[rule_id]

    def get(self, rule_id: int) -> RelationalRule | None:
        return self._rules.get(rule_id)

    def find(self, rule: RelationalRule) -> RelationalRule | None:
        """Registered rule equal to rule (same action and conditions)."""
        for existing in self._rules.values():
            if existing == rule:
                return existing
        return None

    def add(self, rule: RelationalRule) -> RelationalRule:
        """
        Registers rule under a fresh id and links it to its parents.
        An equal rule that is already registered is returned instead.
        """
        existing = self.find(rule)
        if existing is not None:
            for pid in rule.parent_ids:
                if pid not in existing.parent_ids and pid != existing.rule_id:
                    existing.parent_ids.append(pid)
                    self._link(pid, existing.rule_id)
            return existing

        rule.rule_id   = self._next_id
        self._next_id += 1
        self._rules[rule.rule_id] = rule
        for pid in rule.parent_ids:
            self._link(pid, rule.rule_id)
        return rule

    def _link(self, parent_id: int, child_id: int) -> None:
        parent = self._rules.get(parent_id)
        if parent is not None and child_id not in parent.child_ids:
            parent.child_ids.append(child_id)

    def remove(self, rule_id: int) -> RelationalRule | None:
        """Drops the rule; children keep the id in their parent history."""
        rule = self._rules.pop(rule_id, None)
        if rule is None:
            return None
        for pid in rule.parent_ids:
            parent = self._rules.get(pid)
            if parent is not None and rule_id in parent.child_ids:
                parent.child_ids.remove(rule_id)
        return rule

    def parents(self, rule_id: int) -> list[RelationalRule]:
        return [self._rules[p] for p in self._rules[rule_id].parent_ids if p in self._rules]

    def children(self, rule_id: int) -> list[RelationalRule]:
        return [self._rules[c] for c in self._rules[rule_id].child_ids if c in self._rules]


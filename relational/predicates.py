"""
relational/predicates.py — relational predicates (facts and conditions).

A RelationalPredicate is a name, an ordered tuple of RelationalArguments and a
negation flag. Declared argument types and the "type predicate" marker come
from the domain declaration and do not take part in equality.

Ordering (condition sets are kept sorted for determinism):
  non-negated first, arity, type predicates first, name,
  argument kinds (constant < variable < anonymous), argument text.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from .arguments import ANONYMOUS, ArgumentType, RelationalArgument, constant, number


@dataclass(frozen=True, slots=True)
class RelationalPredicate:
    """
    - name:      predicate name, e.g. "clear"
    - args:      ordered arguments
    - negated:   True → "not name(args...)"
    - arg_types: declared argument types (from the domain), not compared
    - is_type:   True for unary type predicates such as block(?X), not compared
    """
    name:      str
    args:      tuple[RelationalArgument, ...]
    negated:   bool = False
    arg_types: tuple[str, ...] = field(default=(), compare=False)
    is_type:   bool = field(default=False, compare=False)

    def __str__(self) -> str:
        prefix = "not " if self.negated else ""
        return f"{prefix}{self.name}({', '.join(str(a) for a in self.args)})"

    def __lt__(self, other: RelationalPredicate) -> bool:
        return self.sort_key() < other.sort_key()

    def sort_key(self) -> tuple:
        return (
            self.negated,
            len(self.args),
            not self.is_type,
            self.name,
            tuple(_arg_class(a) for a in self.args),
            tuple(a.sort_key() for a in self.args),
        )

    # ------------------------------------------------------------------

    @property
    def arity(self) -> int:
        return len(self.args)

    def is_ground(self) -> bool:
        """True when every argument is a constant or a number."""
        return all(a.is_constant for a in self.args)

    def is_fully_anonymous(self) -> bool:
        return all(a.is_anonymous for a in self.args)

    def terms(self) -> tuple[str, ...]:
        return tuple(a.name for a in self.args)

    def negate(self) -> RelationalPredicate:
        return replace(self, negated=not self.negated)

    def with_args(self, args: Iterable[RelationalArgument]) -> RelationalPredicate:
        return replace(self, args=tuple(args))

    def same_signature(self, other: RelationalPredicate) -> bool:
        """Same name, arity and polarity."""
        return (
            self.name == other.name
            and self.negated == other.negated
            and len(self.args) == len(other.args)
        )

    def replace_arguments(
        self,
        mapping:       Mapping[RelationalArgument, RelationalArgument],
        retain_others: bool = True,
        keep_numbers:  bool = True,
    ) -> RelationalPredicate:
        """
        Returns a copy with arguments substituted through mapping.

        Arguments missing from the mapping are kept when retain_others is
        True, otherwise they become anonymous (numbers survive when
        keep_numbers is True).
        """
        new_args: list[RelationalArgument] = []
        for arg in self.args:
            if arg in mapping:
                new_args.append(mapping[arg])
            elif retain_others or (keep_numbers and arg.is_numeric):
                new_args.append(arg)
            else:
                new_args.append(ANONYMOUS)
        return replace(self, args=tuple(new_args))

    def generalises(self, other: RelationalPredicate) -> bool:
        """
        True when self is implied by other: same signature and every
        argument of self is anonymous, equal to other's, or a range
        containing other's numeric value or sub-range.
        """
        if not self.same_signature(other):
            return False
        for mine, theirs in zip(self.args, other.args):
            if mine.is_anonymous or mine == theirs:
                continue
            if mine.kind is ArgumentType.NUMBER_RANGE and theirs.is_numeric:
                lo, hi = theirs.numeric_bounds()
                if mine.range.contains(lo) and mine.range.contains(hi):
                    continue
            return False
        return True


def _arg_class(arg: RelationalArgument) -> int:
    if arg.is_constant:
        return 0
    if arg.is_anonymous:
        return 2
    return 1


def fact(name: str, *values: str | float, negated: bool = False) -> RelationalPredicate:
    """Shorthand for ground facts: fact("on", "a", "b"), fact("dist", "a", 3)."""
    args = tuple(
        number(v) if isinstance(v, (int, float)) else constant(v)
        for v in values
    )
    return RelationalPredicate(name, args, negated)

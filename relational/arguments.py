"""
relational/arguments.py — typed arguments of relational predicates.

ArgumentType orders the kinds of argument (constants before variables,
anonymous last). RelationalArgument is an immutable tagged value:

  a, floor            CONST
  3, 0.5              NUMBER_CONST
  ?G_0                GOAL_VARIABLE
  ?X, ?Y, ?Z, ?A ...  ACTION_VAR
  ?#_0{1..7}          NUMBER_RANGE (optionally ?#_0{1..7|0.25..0.75})
  ?Bnd_0              BOUND_VAR
  ?Unb_0              UNBOUND_VAR
  ?                   ANON

Public API:
  constant(name), number(value), goal_variable(i), action_variable(i),
  bound_variable(i), unbound_variable(i), number_range(i, low, high, ...),
  ANONYMOUS, parse_argument(text), format_number(value)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

from .errors import ParseError


class ArgumentType(StrEnum):
    """Kinds of argument, declared in sort order."""

    CONST         = "const"
    NUMBER_CONST  = "number_const"
    GOAL_VARIABLE = "goal_variable"
    ACTION_VAR    = "action_var"
    NUMBER_RANGE  = "number_range"
    BOUND_VAR     = "bound_var"
    UNBOUND_VAR   = "unbound_var"
    ANON          = "anon"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS: dict[ArgumentType, int] = {t: i for i, t in enumerate(ArgumentType)}

_VARIABLE_KINDS: frozenset[ArgumentType] = frozenset({
    ArgumentType.GOAL_VARIABLE,
    ArgumentType.ACTION_VAR,
    ArgumentType.NUMBER_RANGE,
    ArgumentType.BOUND_VAR,
    ArgumentType.UNBOUND_VAR,
})


def format_number(value: float) -> str:
    """Integral values print without a fractional part: 3.0 -> '3'."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


# ---------------------------------------------------------------------------
# NumericRange
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class NumericRange:
    """
    A context range [low, high] plus the fractional sub-range of it that the
    argument actually covers. With fractions (0, 1) the whole context is meant.
    """
    low:       float
    high:      float
    low_frac:  float = 0.0
    high_frac: float = 1.0

    def bounds(self) -> tuple[float, float]:
        span = self.high - self.low
        return self.low + span * self.low_frac, self.low + span * self.high_frac

    def contains(self, value: float) -> bool:
        lo, hi = self.bounds()
        return lo <= value <= hi

    def is_full(self) -> bool:
        return self.low_frac == 0.0 and self.high_frac == 1.0

    def sub_range(self, low: float, high: float) -> NumericRange:
        """Same context, covering only [low, high] (clipped to the context)."""
        span = self.high - self.low
        if span == 0:
            return NumericRange(self.low, self.high)
        lf = min(max((low - self.low) / span, 0.0), 1.0)
        hf = min(max((high - self.low) / span, 0.0), 1.0)
        return NumericRange(self.low, self.high, lf, hf)

    def widen(self, value: float) -> NumericRange:
        """A full range over the current bounds extended to include value."""
        lo, hi = self.bounds()
        return NumericRange(min(lo, value), max(hi, value))

    def __str__(self) -> str:
        text = f"{format_number(self.low)}..{format_number(self.high)}"
        if not self.is_full():
            text += f"|{format_number(self.low_frac)}..{format_number(self.high_frac)}"
        return "{" + text + "}"


# ---------------------------------------------------------------------------
# RelationalArgument
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RelationalArgument:
    """
    A single predicate argument.

    - kind:  ArgumentType
    - name:  textual value ("a", "3", "?X", "?#_0", "?")
    - range: context and sub-range, only for NUMBER_RANGE
    """
    kind:  ArgumentType
    name:  str
    range: NumericRange | None = None

    def __str__(self) -> str:
        if self.range is not None:
            return f"{self.name}{self.range}"
        return self.name

    def __lt__(self, other: RelationalArgument) -> bool:
        return self.sort_key() < other.sort_key()

    def sort_key(self) -> tuple[int, float, float, str]:
        lo, hi = self.range.bounds() if self.range is not None else (0.0, 0.0)
        return self.kind.rank, lo, hi, self.name

    # ------------------------------------------------------------------

    @property
    def is_anonymous(self) -> bool:
        return self.kind is ArgumentType.ANON

    @property
    def is_variable(self) -> bool:
        return self.kind in _VARIABLE_KINDS

    @property
    def is_constant(self) -> bool:
        return self.kind in (ArgumentType.CONST, ArgumentType.NUMBER_CONST)

    @property
    def is_numeric(self) -> bool:
        return self.kind in (ArgumentType.NUMBER_CONST, ArgumentType.NUMBER_RANGE)

    @property
    def value(self) -> float:
        """Numeric value of a NUMBER_CONST."""
        if self.kind is not ArgumentType.NUMBER_CONST:
            raise TypeError(f"Argument '{self}' is not a number")
        return float(self.name)

    def numeric_bounds(self) -> tuple[float, float]:
        """[value, value] for numbers, the resolved sub-range for ranges."""
        if self.range is not None:
            return self.range.bounds()
        v = self.value
        return v, v


# ---------------------------------------------------------------------------
# Constructors
# ---------------------------------------------------------------------------

ANONYMOUS = RelationalArgument(ArgumentType.ANON, "?")


def constant(name: str) -> RelationalArgument:
    return RelationalArgument(ArgumentType.CONST, name)


def number(value: float) -> RelationalArgument:
    return RelationalArgument(ArgumentType.NUMBER_CONST, format_number(value))


def action_variable(index: int) -> RelationalArgument:
    """?X for index 0, then ?Y, ?Z, ?A, ?B ... wrapping around the alphabet."""
    letter = chr(ord("A") + (ord("X") - ord("A") + index) % 26)
    return RelationalArgument(ArgumentType.ACTION_VAR, f"?{letter}")


def goal_variable(index: int) -> RelationalArgument:
    return RelationalArgument(ArgumentType.GOAL_VARIABLE, f"?G_{index}")


def bound_variable(index: int) -> RelationalArgument:
    return RelationalArgument(ArgumentType.BOUND_VAR, f"?Bnd_{index}")


def unbound_variable(index: int) -> RelationalArgument:
    return RelationalArgument(ArgumentType.UNBOUND_VAR, f"?Unb_{index}")


def number_range(
    index:     int,
    low:       float,
    high:      float,
    low_frac:  float = 0.0,
    high_frac: float = 1.0,
) -> RelationalArgument:
    return RelationalArgument(
        ArgumentType.NUMBER_RANGE,
        f"?#_{index}",
        NumericRange(float(low), float(high), low_frac, high_frac),
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_NUM = r"-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?"

_NUMBER_RE = re.compile(rf"^{_NUM}$")
_RANGE_RE  = re.compile(
    rf"^\?#_(\d+)\{{({_NUM})\.\.({_NUM})(?:\|({_NUM})\.\.({_NUM}))?\}}$"
)
_INDEXED_RE = {
    ArgumentType.GOAL_VARIABLE: re.compile(r"^\?G_(\d+)$"),
    ArgumentType.BOUND_VAR:     re.compile(r"^\?Bnd_(\d+)$"),
    ArgumentType.UNBOUND_VAR:   re.compile(r"^\?Unb_(\d+)$"),
}
_ACTION_VAR_RE = re.compile(r"^\?[A-Z]$")
_CONST_RE      = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_\-.]*$")


def parse_argument(text: str) -> RelationalArgument:
    """
    Parses the text form of an argument.

    Raises:
        ParseError when the text is not a recognised argument.
    """
    text = text.strip()
    if text == "?":
        return ANONYMOUS

    m = _RANGE_RE.match(text)
    if m:
        index, low, high, lf, hf = m.groups()
        return number_range(
            int(index), float(low), float(high),
            float(lf) if lf is not None else 0.0,
            float(hf) if hf is not None else 1.0,
        )

    for kind, pattern in _INDEXED_RE.items():
        if pattern.match(text):
            return RelationalArgument(kind, text)

    if _ACTION_VAR_RE.match(text):
        return RelationalArgument(ArgumentType.ACTION_VAR, text)
    if _NUMBER_RE.match(text):
        return number(float(text))
    if _CONST_RE.match(text):
        return constant(text)
    raise ParseError(f"Invalid argument: '{text}'", text)

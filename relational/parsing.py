"""
relational/parsing.py — text form of predicates and rules.

Everything inside the learner works on RelationalPredicate/RelationalRule;
strings appear only when reading or writing files and CLI input.

Public API:
  parse_predicate(text, domain=None)  -> RelationalPredicate
  parse_rule(text, domain=None)       -> RelationalRule
  format_rule(rule)                   -> str
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .arguments import parse_argument
from .errors import ParseError
from .predicates import RelationalPredicate
from .rules import CONDITION_JOIN, INFERS_ACTION, RelationalRule

if TYPE_CHECKING:
    from domain.spec import DomainSpec

_PRED_RE = re.compile(
    r"^(not\s+)?([a-z_][a-z0-9_\-]*)\s*(?:\(([^)]*)\))?\s*$", re.IGNORECASE
)


def parse_predicate(text: str, domain: DomainSpec | None = None) -> RelationalPredicate:
    """
    Parses "name(a, ?X)" or "not name(a, ?X)".

    With a domain the predicate is checked against its declaration and
    carries the declared argument types.

    Examples::

        "clear(?X)"          → clear(?X)
        "not on(?X, floor)"  → negated on(?X, floor)
        "dist(?X, ?#_0{1..5})"

    Raises:
        ParseError for malformed text, DomainError for undeclared predicates.
    """
    m = _PRED_RE.match(text.strip())
    if not m:
        raise ParseError(f"Invalid predicate: '{text}'", text)

    negated  = m.group(1) is not None
    name     = m.group(2)
    raw_args = m.group(3)

    if raw_args is None or raw_args.strip() == "":
        args = ()
    else:
        args = tuple(parse_argument(a) for a in raw_args.split(","))

    if domain is not None:
        return domain.make(name, args, negated)
    return RelationalPredicate(name, args, negated)


def parse_rule(text: str, domain: DomainSpec | None = None) -> RelationalRule:
    """
    Parses "cond1 AND cond2 => action(args)". An empty body is allowed:
    "=> action(args)".
    """
    body, sep, head = text.strip().rpartition(INFERS_ACTION.strip())
    if not sep:
        raise ParseError(f"Rule without '=>': '{text}'", text)
    if not head.strip():
        raise ParseError(f"Rule without an action: '{text}'", text)

    conditions = [
        parse_predicate(part, domain)
        for part in body.split(CONDITION_JOIN)
        if part.strip()
    ]
    action = parse_predicate(head, domain)
    if action.negated:
        raise ParseError(f"Negated action in rule: '{text}'", text)
    return RelationalRule(conditions=tuple(conditions), action=action)


def format_rule(rule: RelationalRule) -> str:
    return str(rule)

"""
solver/loader.py — reading observed states from JSON.

Public API:
  load_state_json(path, domain=None)  -> StateFile
  state_from_dict(raw, domain=None)   -> StateFile
"""

from __future__ import annotations

import json
import pathlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from relational.arguments import number, parse_argument
from relational.errors import ParseError
from relational.parsing import parse_predicate
from relational.predicates import RelationalPredicate

if TYPE_CHECKING:
    from domain.spec import DomainSpec


@dataclass(slots=True)
class StateFile:
    """
    - domain:        domain name declared in the file ("" when absent)
    - facts:         ground state facts
    - valid_actions: action name -> grounded valid actions
    """
    domain:        str
    facts:         list[RelationalPredicate] = field(default_factory=list)
    valid_actions: dict[str, list[RelationalPredicate]] = field(default_factory=dict)


def _predicate_from(entry, domain: DomainSpec | None) -> RelationalPredicate:
    """Entries are either "on(a, b)" strings or {"pred": ..., "args": [...]}."""
    if isinstance(entry, str):
        return parse_predicate(entry, domain)
    if not isinstance(entry, dict) or "pred" not in entry:
        raise ParseError(f"Invalid fact entry: {entry!r}", str(entry))
    args = tuple(
        number(a) if isinstance(a, (int, float)) else parse_argument(str(a))
        for a in entry.get("args", [])
    )
    negated = bool(entry.get("negated", False))
    if domain is not None:
        return domain.make(str(entry["pred"]), args, negated)
    return RelationalPredicate(str(entry["pred"]), args, negated)


def state_from_dict(raw: dict, domain: DomainSpec | None = None) -> StateFile:
    state = StateFile(domain=str(raw.get("domain", "")))
    for entry in raw.get("facts", []):
        state.facts.append(_predicate_from(entry, domain))
    for entry in raw.get("valid_actions", []):
        action = _predicate_from(entry, domain)
        state.valid_actions.setdefault(action.name, []).append(action)
    return state


def load_state_json(path: pathlib.Path, domain: DomainSpec | None = None) -> StateFile:
    """
    Reads one observed state.

    Expected format::

        {
            "domain": "blocks_world",
            "facts": [
                {"pred": "on", "args": ["a", "b"]},
                "clear(a)"
            ],
            "valid_actions": ["move(a, c)", {"pred": "move", "args": ["b", "c"]}]
        }

    Numeric JSON values become numeric constants.
    """
    raw = json.loads(pathlib.Path(path).read_text(encoding="utf-8"))
    return state_from_dict(raw, domain)

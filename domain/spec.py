"""
domain/spec.py — declarative description of a relational domain.

DomainSpec reads a domain declaration (JSON / dict) and indexes it:
  predicates  name -> PredicateDecl   (state predicates, type predicates)
  actions     name -> PredicateDecl   (action predicates)
  types       type -> parent type     (type lineage, None for roots)
  constants   protected domain constants (never generalised to variables)
  specialization_conditions  action -> condition templates over ?X, ?Y, ...

Declaration format::

    {
        "name": "blocks_world",
        "types": {"thing": null, "block": "thing", "floor": "thing"},
        "predicates": [
            {"name": "block", "args": ["block"]},
            {"name": "on",    "args": ["block", "thing"]}
        ],
        "actions":   [{"name": "move", "args": ["block", "thing"]}],
        "constants": ["floor"],
        "specialization_conditions": {"move": ["highest(?X)"]}
    }

Unary predicates named after a declared type are type predicates.
"""

from __future__ import annotations

import json
import pathlib
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from relational.arguments import RelationalArgument, action_variable
from relational.errors import DomainError, ErrorCode
from relational.predicates import RelationalPredicate

VALID_ACTIONS_PREDICATE = "valid_actions"
MARKER_FACTS: frozenset[str] = frozenset({"initial_fact"})


# ---------------------------------------------------------------------------
# PredicateDecl
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class PredicateDecl:
    """
    - name:      e.g. "on"
    - arg_types: declared type of every argument, e.g. ("block", "thing")
    - is_type:   unary predicate naming a type, e.g. block(?X)
    """
    name:      str
    arg_types: tuple[str, ...]
    is_type:   bool = False

    @property
    def arity(self) -> int:
        return len(self.arg_types)


# ---------------------------------------------------------------------------
# DomainSpec
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class DomainSpec:
    """Immutable domain context passed to every learner component."""

    name:       str
    predicates: dict[str, PredicateDecl]
    actions:    dict[str, PredicateDecl]
    types:      dict[str, str | None] = field(default_factory=dict)
    constants:  frozenset[str] = frozenset()
    specialization_conditions: dict[str, tuple[RelationalPredicate, ...]] = field(
        default_factory=dict
    )
    valid_actions_predicate: str = VALID_ACTIONS_PREDICATE
    marker_facts:            frozenset[str] = MARKER_FACTS

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def declaration(self, name: str) -> PredicateDecl | None:
        return self.predicates.get(name) or self.actions.get(name)

    def is_type_predicate(self, name: str) -> bool:
        decl = self.predicates.get(name)
        return decl is not None and decl.is_type

    def is_constant(self, term: str) -> bool:
        return term in self.constants

    def lineage(self, type_name: str) -> tuple[str, ...]:
        """The type followed by its ancestors: ("block", "thing")."""
        chain: list[str] = []
        current: str | None = type_name
        while current is not None and current not in chain:
            chain.append(current)
            current = self.types.get(current)
        return tuple(chain)

    def on_lineage(self, a: str, b: str) -> bool:
        """True when one type is an ancestor-or-self of the other."""
        return a in self.lineage(b) or b in self.lineage(a)

    def is_useless_fact(self, pred: RelationalPredicate) -> bool:
        """Valid-action echoes, marker facts and fully anonymous facts."""
        return (
            pred.name == self.valid_actions_predicate
            or pred.name in self.marker_facts
            or (pred.args != () and pred.is_fully_anonymous())
        )

    # ------------------------------------------------------------------
    # Building predicates
    # ------------------------------------------------------------------

    def make(
        self,
        name:    str,
        args:    Iterable[RelationalArgument],
        negated: bool = False,
    ) -> RelationalPredicate:
        """
        Builds a declared predicate with its argument types.

        Raises:
            DomainError for undeclared predicates or a wrong arity.
        """
        args = tuple(args)
        decl = self.declaration(name)
        if decl is None:
            raise DomainError(
                ErrorCode.UNKNOWN_PREDICATE,
                f"Predicate '{name}' is not declared in domain '{self.name}'",
                {"predicate": name},
            )
        if decl.arity != len(args):
            raise DomainError(
                ErrorCode.ARITY_MISMATCH,
                f"'{name}' takes {decl.arity} arguments, got {len(args)}",
                {"predicate": name, "expected": decl.arity, "got": len(args)},
            )
        return RelationalPredicate(name, args, negated, decl.arg_types, decl.is_type)

    def annotate(self, pred: RelationalPredicate) -> RelationalPredicate:
        """Attaches declared types; undeclared predicates pass unchanged."""
        decl = self.declaration(pred.name)
        if decl is None or decl.arity != pred.arity:
            return pred
        return replace(pred, arg_types=decl.arg_types, is_type=decl.is_type)

    def action_template(self, name: str) -> RelationalPredicate:
        """The action over fresh action variables: move(?X, ?Y)."""
        decl = self.actions.get(name)
        if decl is None:
            raise DomainError(
                ErrorCode.UNKNOWN_PREDICATE,
                f"Action '{name}' is not declared in domain '{self.name}'",
                {"action": name},
            )
        args = tuple(action_variable(i) for i in range(decl.arity))
        return RelationalPredicate(name, args, False, decl.arg_types, False)

    def type_fact(self, type_name: str, arg: RelationalArgument) -> RelationalPredicate | None:
        """type_name(arg) when type_name is a declared type predicate."""
        if not self.is_type_predicate(type_name):
            return None
        return self.make(type_name, (arg,))

    # ------------------------------------------------------------------
    # Factory constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> DomainSpec:
        from relational.parsing import parse_predicate

        types = {str(k): (str(v) if v is not None else None)
                 for k, v in data.get("types", {}).items()}

        predicates: dict[str, PredicateDecl] = {}
        for p in data.get("predicates", []):
            arg_types = tuple(p.get("args", []))
            is_type   = bool(p.get("type", p["name"] in types and len(arg_types) == 1))
            predicates[p["name"]] = PredicateDecl(p["name"], arg_types, is_type)

        actions = {
            a["name"]: PredicateDecl(a["name"], tuple(a.get("args", [])))
            for a in data.get("actions", [])
        }

        spec = cls(
            name=data.get("name", "generic"),
            predicates=predicates,
            actions=actions,
            types=types,
            constants=frozenset(data.get("constants", [])),
            valid_actions_predicate=data.get("valid_actions_predicate", VALID_ACTIONS_PREDICATE),
        )

        conditions = {
            action: tuple(parse_predicate(text, spec) for text in templates)
            for action, templates in data.get("specialization_conditions", {}).items()
        }
        return replace(spec, specialization_conditions=conditions)

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> DomainSpec:
        """Loads a declaration from a JSON file."""
        data = json.loads(pathlib.Path(path).read_text(encoding="utf-8"))
        return cls.from_dict(data)

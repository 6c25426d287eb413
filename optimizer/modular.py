"""
optimizer/modular.py — modular policies: rules interleaved with sub-policies
for sub-goals.

Nodes live in an arena and refer to each other by id. A node's goal
bindings map its goal variables (?G_0, ...) to terms of its parent's
context: constants, or the parent's own goal variables. flatten() resolves
the tree with an iterative post-order traversal into one decision list of
(rule id, goal bindings) pairs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeAlias

from relational.errors import PolicyDepthError
from relational.predicates import RelationalPredicate
from relational.rules import RuleArena
from solver.engine import QueryEngine

DEFAULT_MAX_DEPTH = 8


class ItemKind(StrEnum):
    RULE   = "rule"
    POLICY = "policy"


@dataclass(slots=True)
class PolicyNode:
    node_id:       int
    goal_bindings: dict[str, str] = field(default_factory=dict)
    items:         list[tuple[ItemKind, int]] = field(default_factory=list)

    def children(self) -> list[int]:
        return [ref for kind, ref in self.items if kind is ItemKind.POLICY]


ResolvedRule: TypeAlias = tuple[int, dict[str, str]]


class ModularPolicy:
    """
    Usage::

        policy = ModularPolicy({"?G_0": "a", "?G_1": "b"})
        sub    = policy.add_subpolicy(policy.root, {"?G_0": "?G_1"})
        policy.add_rule(sub, clear_rule.rule_id)
        policy.add_rule(policy.root, move_rule.rule_id)
        policy.flatten()   # [(clear_id, {"?G_0": "b"}), (move_id, {...})]
    """

    def __init__(
        self,
        goal_bindings: Mapping[str, str] | None = None,
        max_depth:     int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.max_depth = max_depth
        self._nodes: dict[int, PolicyNode] = {}
        self.root = self.add_node(goal_bindings)

    def __len__(self) -> int:
        return len(self._nodes)

    def node(self, node_id: int) -> PolicyNode:
        return self._nodes[node_id]

    def add_node(self, goal_bindings: Mapping[str, str] | None = None) -> int:
        node_id = len(self._nodes)
        self._nodes[node_id] = PolicyNode(node_id, dict(goal_bindings or {}))
        return node_id

    def add_rule(self, node_id: int, rule_id: int) -> None:
        self._nodes[node_id].items.append((ItemKind.RULE, rule_id))

    def add_subpolicy(self, parent_id: int, goal_bindings: Mapping[str, str]) -> int:
        child = self.add_node(goal_bindings)
        self.link(parent_id, child)
        return child

    def link(self, parent_id: int, child_id: int) -> None:
        """Uses an existing node as a sub-policy of parent (nodes can be shared)."""
        if child_id not in self._nodes:
            raise KeyError(f"Unknown policy node {child_id}")
        self._nodes[parent_id].items.append((ItemKind.POLICY, child_id))

    # ------------------------------------------------------------------

    def flatten(self) -> list[ResolvedRule]:
        """
        Decision list of (rule id, goal bindings in the root's parent
        context), sub-policies expanded in place.

        Raises:
            PolicyDepthError when nesting exceeds max_depth (cycles included).
        """
        resolved: dict[int, list[ResolvedRule]] = {}
        stack: list[tuple[int, int, bool]] = [(self.root, 0, False)]

        while stack:
            node_id, depth, expanded = stack.pop()
            if node_id in resolved:
                continue
            if depth > self.max_depth:
                raise PolicyDepthError(depth, self.max_depth)
            node = self._nodes[node_id]

            if not expanded:
                stack.append((node_id, depth, True))
                for child in reversed(node.children()):
                    if child not in resolved:
                        stack.append((child, depth + 1, False))
                continue

            entries: list[ResolvedRule] = []
            for kind, ref in node.items:
                if kind is ItemKind.RULE:
                    entries.append((ref, dict(node.goal_bindings)))
                    continue
                if ref not in resolved:
                    raise PolicyDepthError(depth + 1, self.max_depth)
                for rule_id, bindings in resolved[ref]:
                    entries.append((rule_id, {
                        var: node.goal_bindings.get(term, term)
                        for var, term in bindings.items()
                    }))
            resolved[node_id] = entries

        return resolved[self.root]

    def evaluate(
        self,
        arena:         RuleArena,
        state:         Sequence[RelationalPredicate] | frozenset[RelationalPredicate],
        valid_actions: Mapping[str, Sequence[RelationalPredicate]],
    ) -> list[tuple[int, list[RelationalPredicate]]]:
        """(rule id, proposed actions) for each firing rule in decision-list order."""
        engine = QueryEngine(state)
        results: list[tuple[int, list[RelationalPredicate]]] = []
        for rule_id, bindings in self.flatten():
            if rule_id not in arena:
                continue
            rule    = arena[rule_id]
            actions = engine.actions(rule, valid_actions.get(rule.action_name, ()), bindings)
            if actions:
                results.append((rule_id, actions))
        return results

"""
Tests for covering/generalizer.py — rules covered from observed states.
"""

import random

import pytest

from covering.generalizer import Covering
from domain.spec import DomainSpec
from relational.arguments import constant, number
from relational.predicates import fact


@pytest.fixture
def covering(blocks):
    return Covering(blocks, rng=random.Random(0))


def _moves(make_fact, *pairs):
    return {"move": [make_fact("move", a, b) for a, b in pairs]}


class TestCoverScenarios:
    """Covering the two move instances of a small blocks world state."""

    def test_unclear_operand_drops_clear_x(self, covering, make_fact):
        """
        b is not clear in this state, so clear(?X) holds for move(a, c) only
        and cannot survive the generalisation of both instances; on(a, b) is
        dropped the same way. clear(?X) AND clear(?Y) needs clear(b), see
        test_both_operands_clear.
        """
        state = [make_fact("on", "a", "b"), make_fact("clear", "a"), make_fact("clear", "c")]
        rules = covering.cover(state, _moves(make_fact, ("a", "c"), ("b", "c")), {})
        assert [str(r) for r in rules["move"]] == ["clear(?Y) => move(?X, ?Y)"]

    def test_both_operands_clear(self, covering, make_fact):
        state = [make_fact("on", "a", "b"), make_fact("clear", "a"),
                 make_fact("clear", "b"), make_fact("clear", "c")]
        rules = covering.cover(state, _moves(make_fact, ("a", "c"), ("b", "c")), {})
        assert [str(r) for r in rules["move"]] == ["clear(?X) AND clear(?Y) => move(?X, ?Y)"]

    def test_single_instance_keeps_all_context(self, covering, make_fact):
        state = [make_fact("on", "a", "b"), make_fact("clear", "a"), make_fact("clear", "c")]
        rules = covering.cover(state, _moves(make_fact, ("a", "c")), {})
        assert str(rules["move"][0]) == "clear(?X) AND clear(?Y) AND on(?X, ?) => move(?X, ?Y)"

    def test_no_rule_without_create_new(self, covering, make_fact):
        state = [make_fact("clear", "a"), make_fact("clear", "c")]
        rules = covering.cover(state, _moves(make_fact, ("a", "c")), {}, create_new=False)
        assert rules == {"move": []}

    def test_existing_rules_refined_in_place(self, covering, make_fact):
        state = [make_fact("on", "a", "b"), make_fact("clear", "a"), make_fact("clear", "c")]
        first = covering.cover(state, _moves(make_fact, ("a", "c")), {})
        rule  = first["move"][0]
        again = covering.cover(state, _moves(make_fact, ("b", "c")), first)
        assert again["move"][0] is rule
        assert str(rule) == "clear(?Y) => move(?X, ?Y)"
        assert rule.states_seen == 0


class TestSettledness:
    def test_rule_settles_and_stops_changing(self, blocks, make_fact):
        covering = Covering(blocks, rng=random.Random(0), settled_states=2)
        state    = [make_fact("clear", "a"), make_fact("clear", "c"), make_fact("on", "a", "b")]
        moves    = _moves(make_fact, ("a", "c"), ("b", "c"))

        rules = covering.cover(state, moves, {})
        rule  = rules["move"][0]
        assert rule.states_seen == 0
        covering.cover(state, moves, rules)
        assert rule.states_seen == 1
        covering.cover(state, moves, rules)
        assert rule.is_settled(2)
        assert covering.all_settled(rules["move"])

        before = str(rule)
        other  = [make_fact("clear", "d"), make_fact("on", "d", "a")]
        covering.cover(other, _moves(make_fact, ("d", "floor")), rules)
        assert str(rule) == before

    def test_all_settled_needs_rules(self, covering):
        assert not covering.all_settled([])


class TestInverseSubstitution:
    """Instance terms to action variables, constants protected."""

    def test_protected_constant_kept(self, covering, make_fact):
        facts = [make_fact("on", "a", "floor"), make_fact("clear", "a")]
        conds, action = covering.inverse_substitute(facts, make_fact("move", "a", "floor"))
        assert str(action) == "move(?X, floor)"
        assert sorted(str(c) for c in conds) == ["clear(?X)", "on(?X, floor)"]

    def test_protected_constant_adds_type_fact(self):
        domain = DomainSpec.from_dict({
            "name": "tabletop",
            "types": {"thing": None, "block": "thing", "table": "thing"},
            "predicates": [
                {"name": "block", "args": ["block"]},
                {"name": "table", "args": ["table"]},
                {"name": "on",    "args": ["block", "table"]},
            ],
            "actions": [{"name": "pickup", "args": ["block"]}],
            "constants": ["table"],
        })
        covering = Covering(domain)
        on_table = domain.make("on", (constant("a"), constant("table")))
        conds, action = covering.inverse_substitute([on_table], domain.make("pickup", (constant("a"),)))
        assert str(action) == "pickup(?X)"
        assert [str(c) for c in conds] == ["on(?X, table)", "table(table)"]

    def test_numbers_kept_only_when_anchored(self, covering):
        facts = [fact("height", "a", 2), fact("height", "b", 3)]
        conds, _ = covering.inverse_substitute(facts, fact("move", "a", "c"))
        assert [str(c) for c in conds] == ["height(?X, 2)"]

    def test_useless_facts_skipped(self, covering):
        facts = [fact("valid_actions", "a"), fact("clear", "a")]
        conds, _ = covering.inverse_substitute(facts, fact("move", "a", "c"))
        assert [str(c) for c in conds] == ["clear(?X)"]


class TestInstanceOrder:
    def test_greedy_new_terms_first(self, covering):
        instances = [fact("move", "a", "c"), fact("move", "b", "c"), fact("move", "b", "d")]
        ordered   = covering.order_instances(instances)
        assert [str(i) for i in ordered] == ["move(a, c)", "move(b, d)", "move(b, c)"]

    def test_relevant_facts_by_term(self, covering, make_fact):
        state = [make_fact("on", "a", "b"), make_fact("clear", "a"), make_fact("clear", "c")]
        index = covering.index_state(state)
        assert sorted(index) == ["a", "b", "c"]
        relevant = covering.relevant_facts(index, make_fact("move", "b", "c"))
        assert sorted(str(f) for f in relevant) == ["clear(c)", "on(a, b)"]

    def test_numbers_not_indexed(self, covering):
        index = covering.index_state([fact("height", "a", 2)])
        assert list(index) == ["a"]
        assert number(2).name not in index

"""
Tests for solver/engine.py and solver/loader.py.
"""

import json

import pytest

from relational.errors import DomainError, ParseError
from relational.parsing import parse_predicate, parse_rule
from relational.predicates import fact
from solver.engine import QueryEngine, build_facts, ground, query
from solver.loader import load_state_json, state_from_dict


def _conds(*texts):
    return [parse_predicate(t) for t in texts]


@pytest.fixture
def tower():
    """a on b on the floor, c alone on the floor."""
    return [
        fact("block", "a"), fact("block", "b"), fact("block", "c"),
        fact("on", "a", "b"), fact("on", "b", "floor"), fact("on", "c", "floor"),
        fact("clear", "a"), fact("clear", "c"), fact("clear", "floor"),
        fact("height", "a", 2), fact("height", "b", 1), fact("height", "c", 1),
    ]


def _sorted(results):
    return sorted(tuple(sorted(r.items())) for r in results)


class TestQuery:
    """Conjunctive queries over ground facts."""

    def test_join(self, tower):
        assert query(tower, _conds("on(?X, ?Y)", "clear(?X)", "block(?Y)")) == [
            {"?X": "a", "?Y": "b"}
        ]

    def test_no_answer(self, tower):
        assert query(tower, _conds("on(?X, ?X)")) == []

    def test_negation_as_failure(self, tower):
        results = query(tower, _conds("not clear(?X)", "block(?X)"))
        assert results == [{"?X": "b"}]

    def test_unsafe_negation(self, tower):
        with pytest.raises(ValueError, match="Unsafe negation"):
            query(tower, _conds("not clear(?X)"))

    def test_anonymous_arguments_not_reported(self, tower):
        results = query(tower, _conds("on(?X, ?)", "block(?X)"))
        assert _sorted(results) == [(("?X", "a"),), (("?X", "b"),), (("?X", "c"),)]

    def test_anonymous_in_negation_matches_anything(self, tower):
        results = query(tower, _conds("block(?X)", "not on(?, ?X)"))
        assert _sorted(results) == [(("?X", "a"),), (("?X", "c"),)]

    def test_prebound_goal_variables(self, tower):
        results = query(tower, _conds("on(?G_0, ?Y)"), {"?G_0": "a"})
        assert results == [{"?G_0": "a", "?Y": "b"}]

    def test_numeric_constant_by_value(self, tower):
        results = query(tower, _conds("height(?X, 2.0)"))
        assert results == [{"?X": "a"}]

    def test_range_containment(self, tower):
        results = query(tower, _conds("height(?X, ?#_0{0..1})"))
        assert sorted(r["?X"] for r in results) == ["b", "c"]

    def test_indexed_facts_accepted(self, tower):
        facts = build_facts(tower)
        assert ("a", "b") in facts["on"]
        assert query(facts, _conds("clear(a)")) == [{}]

    def test_negated_facts_not_indexed(self):
        facts = build_facts([fact("clear", "a", negated=True)])
        assert facts == {}


class TestGround:
    def test_ground(self):
        action = parse_predicate("move(?X, ?Y)")
        assert str(ground(action, {"?X": "a", "?Y": "floor"})) == "move(a, floor)"
        assert ground(action, {"?X": "a"}) is None


class TestQueryEngine:
    """Rules proposing grounded valid actions."""

    @pytest.fixture
    def valid(self):
        return [fact("move", "a", "c"), fact("move", "a", "floor"),
                fact("move", "c", "a"), fact("move", "c", "floor")]

    def test_rule_proposes_matching_actions(self, tower, valid):
        engine = QueryEngine(tower)
        rule   = parse_rule("clear(?X) AND clear(?Y) => move(?X, ?Y)")
        assert [str(a) for a in engine.actions(rule, valid)] == [
            "move(a, c)", "move(a, floor)", "move(c, a)", "move(c, floor)",
        ]

    def test_constant_in_rule(self, tower, valid):
        engine = QueryEngine(tower)
        rule   = parse_rule("on(?X, b) => move(?X, ?Y)")
        assert [str(a) for a in engine.actions(rule, valid)] == ["move(a, c)", "move(a, floor)"]

    def test_negated_condition(self, tower, valid):
        engine = QueryEngine(tower)
        rule   = parse_rule("clear(?X) AND not on(?X, floor) => move(?X, ?Y)")
        assert {a.terms()[0] for a in engine.actions(rule, valid)} == {"a"}

    def test_no_firing(self, tower, valid):
        engine = QueryEngine(tower)
        assert engine.actions(parse_rule("highest(?X) => move(?X, ?Y)"), valid) == []
        assert engine.actions(parse_rule("clear(?X) => move(?X, ?Y)"), []) == []

    def test_goal_bindings(self, tower, valid):
        engine = QueryEngine(tower)
        rule   = parse_rule("clear(?G_0) => move(?X, ?G_0)")
        assert [str(a) for a in engine.actions(rule, valid, {"?G_0": "a"})] == ["move(c, a)"]

    def test_holds(self, tower):
        engine = QueryEngine(tower)
        assert engine.holds(_conds("on(a, b)"))
        assert not engine.holds(_conds("on(b, a)"))


class TestLoader:
    def test_string_and_dict_entries(self, blocks):
        state = state_from_dict({
            "domain": "blocks_world",
            "facts": ["on(a, b)", {"pred": "clear", "args": ["a"]}],
            "valid_actions": ["move(a, floor)", {"pred": "move", "args": ["a", "c"]}],
        }, blocks)
        assert state.domain == "blocks_world"
        assert [str(f) for f in state.facts] == ["on(a, b)", "clear(a)"]
        assert state.facts[0].arg_types == ("block", "thing")
        assert [str(a) for a in state.valid_actions["move"]] == ["move(a, floor)", "move(a, c)"]

    def test_numbers(self):
        state = state_from_dict({"facts": [{"pred": "height", "args": ["a", 3]}]})
        assert state.facts[0].args[1].value == 3.0
        assert state.domain == ""

    def test_invalid_entry(self):
        with pytest.raises(ParseError):
            state_from_dict({"facts": [42]})

    def test_undeclared_predicate(self, blocks):
        with pytest.raises(DomainError):
            state_from_dict({"facts": ["under(a, b)"]}, blocks)

    def test_load_file(self, tmp_path, blocks):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({
            "domain": "blocks_world",
            "facts": ["on(a, b)", "clear(a)", "clear(c)"],
            "valid_actions": ["move(a, c)", "move(b, c)"],
        }), encoding="utf-8")
        state = load_state_json(path, blocks)
        assert len(state.facts) == 3
        assert len(state.valid_actions["move"]) == 2

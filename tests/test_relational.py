"""
Tests for relational/: arguments, predicates, rules, parsing and errors.
"""

import math

import pytest

from relational.arguments import (
    ANONYMOUS,
    ArgumentType,
    NumericRange,
    action_variable,
    bound_variable,
    constant,
    goal_variable,
    number,
    number_range,
    parse_argument,
    unbound_variable,
)
from relational.errors import DomainError, ErrorCode, ParseError
from relational.parsing import parse_predicate, parse_rule
from relational.predicates import RelationalPredicate, fact
from relational.rules import RelationalRule, RuleArena, normalise_conditions


class TestArguments:
    """Typed arguments, their text form and ordering."""

    def test_action_variable_letters(self):
        assert [action_variable(i).name for i in range(5)] == ["?X", "?Y", "?Z", "?A", "?B"]

    def test_kind_order(self):
        args = [ANONYMOUS, unbound_variable(0), bound_variable(0),
                number_range(0, 1, 5), action_variable(0), goal_variable(0),
                number(3), constant("a")]
        assert [a.kind for a in sorted(args)] == list(ArgumentType)

    def test_parse_every_kind(self):
        assert parse_argument("a") == constant("a")
        assert parse_argument("3") == number(3)
        assert parse_argument("?G_1") == goal_variable(1)
        assert parse_argument("?Y") == action_variable(1)
        assert parse_argument("?Bnd_2") == bound_variable(2)
        assert parse_argument("?Unb_0") == unbound_variable(0)
        assert parse_argument("?") is ANONYMOUS

    def test_range_text_form(self):
        full = number_range(0, 1, 7)
        assert str(full) == "?#_0{1..7}"
        assert parse_argument("?#_0{1..7}") == full

        part = number_range(2, 0, 10, 0.25, 0.75)
        assert str(part) == "?#_2{0..10|0.25..0.75}"
        assert parse_argument(str(part)) == part
        assert part.numeric_bounds() == (2.5, 7.5)

    def test_invalid_argument(self):
        with pytest.raises(ParseError) as exc:
            parse_argument("a b")
        assert exc.value.code is ErrorCode.PARSE_ERROR

    def test_number_formatting(self):
        assert number(3.0).name == "3"
        assert number(0.5).name == "0.5"
        assert number(2).value == 2.0

    def test_value_of_non_number(self):
        with pytest.raises(TypeError):
            constant("a").value


class TestNumericRange:
    def test_sub_range_clipped_to_context(self):
        rng = NumericRange(0.0, 10.0)
        sub = rng.sub_range(-5.0, 5.0)
        assert sub.bounds() == (0.0, 5.0)
        assert sub.contains(2.0)
        assert not sub.contains(6.0)

    def test_widen(self):
        assert NumericRange(1.0, 3.0).widen(7.0).bounds() == (1.0, 7.0)


class TestPredicates:
    """RelationalPredicate behaviour."""

    def test_text_form(self):
        assert str(fact("on", "a", "b")) == "on(a, b)"
        assert str(fact("on", "a", "b", negated=True)) == "not on(a, b)"

    def test_sort_order(self, blocks):
        clear  = parse_predicate("clear(?X)", blocks)
        block  = parse_predicate("block(?X)", blocks)
        on     = parse_predicate("on(?X, ?Y)", blocks)
        not_on = parse_predicate("not on(?X, ?Y)", blocks)
        assert sorted([not_on, on, clear, block]) == [block, clear, on, not_on]

    def test_type_markers_not_compared(self, blocks):
        typed = parse_predicate("on(a, b)", blocks)
        plain = parse_predicate("on(a, b)")
        assert typed == plain
        assert typed.arg_types == ("block", "thing")
        assert plain.arg_types == ()

    def test_generalises(self):
        general  = parse_predicate("on(?X, ?)")
        specific = parse_predicate("on(?X, b)")
        assert general.generalises(specific)
        assert not specific.generalises(general)
        assert not general.generalises(specific.negate())

    def test_range_generalises_number(self):
        cond = parse_predicate("height(?X, ?#_0{1..5})")
        assert cond.generalises(parse_predicate("height(?X, 3)"))
        assert not cond.generalises(parse_predicate("height(?X, 9)"))

    def test_replace_arguments(self):
        pred = fact("dist", "a", 3)
        out  = pred.replace_arguments({constant("a"): action_variable(0)}, retain_others=False)
        assert str(out) == "dist(?X, 3)"
        out = fact("on", "a", "b").replace_arguments({constant("a"): action_variable(0)},
                                                     retain_others=False)
        assert str(out) == "on(?X, ?)"


class TestParsing:
    def test_rule_round_trip(self):
        text = "clear(?X) AND clear(?Y) => move(?X, ?Y)"
        assert str(parse_rule(text)) == text

    def test_empty_body(self):
        rule = parse_rule("=> move(?X, ?Y)")
        assert rule.conditions == ()
        assert str(rule) == "=> move(?X, ?Y)"

    def test_missing_arrow(self):
        with pytest.raises(ParseError):
            parse_rule("clear(?X) AND move(?X, ?Y)")

    def test_negated_action_rejected(self):
        with pytest.raises(ParseError):
            parse_rule("clear(?X) => not move(?X, ?Y)")

    def test_malformed_predicate(self):
        with pytest.raises(ParseError):
            parse_predicate("on(a, b")

    def test_unknown_predicate(self, blocks):
        with pytest.raises(DomainError) as exc:
            parse_predicate("under(a, b)", blocks)
        assert exc.value.code is ErrorCode.UNKNOWN_PREDICATE

    def test_arity_mismatch(self, blocks):
        with pytest.raises(DomainError) as exc:
            parse_predicate("on(a)", blocks)
        assert exc.value.code is ErrorCode.ARITY_MISMATCH
        assert exc.value.details == {"predicate": "on", "expected": 2, "got": 1}


class TestRules:
    """RelationalRule canonical form, identity and statistics."""

    def test_condition_set_is_canonical(self, make_rule):
        a = make_rule("clear(?Y) AND clear(?X) AND clear(?X) => move(?X, ?Y)")
        b = make_rule("clear(?X) AND clear(?Y) => move(?X, ?Y)")
        assert a == b
        assert hash(a) == hash(b)
        assert str(a) == "clear(?X) AND clear(?Y) => move(?X, ?Y)"

    def test_single_use_variables_become_anonymous(self):
        conds = normalise_conditions([
            parse_predicate("on(?X, ?Unb_3)"),
            parse_predicate("on(?Unb_4, ?Unb_5)"),
            parse_predicate("clear(?Unb_5)"),
        ])
        assert [str(c) for c in conds] == ["clear(?Bnd_0)", "on(?X, ?)", "on(?, ?Bnd_0)"]

    def test_fully_anonymous_conditions_dropped(self):
        rule = parse_rule("on(?, ?) AND clear(?X) => move(?X, ?Y)")
        assert str(rule) == "clear(?X) => move(?X, ?Y)"

    def test_set_conditions_resets_settledness(self, make_rule):
        rule = make_rule("clear(?X) => move(?X, ?Y)")
        for _ in range(3):
            rule.note_state(False)
        assert rule.states_seen == 3
        assert not rule.set_conditions(rule.conditions)
        assert rule.states_seen == 3
        assert rule.set_conditions([*rule.conditions, parse_predicate("highest(?X)")])
        assert rule.states_seen == 0

    def test_settled_after_threshold(self, make_rule):
        rule = make_rule("clear(?X) => move(?X, ?Y)")
        for _ in range(49):
            rule.note_state(False)
        assert not rule.is_settled()
        rule.note_state(False)
        assert rule.is_settled()
        rule.note_state(True)
        assert not rule.is_settled()

    def test_welford_statistics(self, make_rule):
        rule = make_rule("clear(?X) => move(?X, ?Y)")
        for value in (-3.0, -5.0, -4.0):
            rule.record_return(value)
        assert rule.return_count == 3
        assert rule.mean == pytest.approx(-4.0)
        assert rule.std == pytest.approx(1.0)

    def test_std_single_value(self, make_rule):
        rule = make_rule("clear(?X) => move(?X, ?Y)")
        rule.record_return(-2.0)
        assert rule.std == 0.0
        assert not math.isnan(rule.mean)

    def test_spawn_mutant(self, arena, make_rule):
        parent = arena.add(make_rule("clear(?X) => move(?X, ?Y)"))
        child  = parent.spawn_mutant([*parent.conditions, parse_predicate("highest(?X)")])
        assert child.mutant
        assert child.ancestry == 1
        assert child.parent_ids == [parent.rule_id]
        assert child.rule_id == -1

    def test_spawned_marker(self, make_rule):
        rule = make_rule("clear(?X) => move(?X, ?Y)")
        assert not rule.has_spawned(7)
        rule.mark_spawned(7)
        assert rule.has_spawned(7)
        assert not rule.has_spawned(8)


class TestRuleArena:
    def test_ids_are_stable_and_dedupe(self, arena, make_rule):
        first  = arena.add(make_rule("clear(?X) => move(?X, ?Y)"))
        second = arena.add(make_rule("highest(?X) => move(?X, ?Y)"))
        again  = arena.add(make_rule("clear(?X) => move(?X, ?Y)"))
        assert (first.rule_id, second.rule_id) == (0, 1)
        assert again is first
        assert len(arena) == 2

    def test_lineage_links(self, arena, make_rule):
        parent = arena.add(make_rule("clear(?X) => move(?X, ?Y)"))
        child  = arena.add(parent.spawn_mutant([*parent.conditions, parse_predicate("highest(?X)")]))
        assert arena.children(parent.rule_id) == [child]
        assert arena.parents(child.rule_id) == [parent]

        arena.remove(child.rule_id)
        assert arena.children(parent.rule_id) == []
        assert child.rule_id not in arena
        assert arena.remove(child.rule_id) is None

    def test_find(self, arena, make_rule):
        rule = arena.add(make_rule("clear(?X) => move(?X, ?Y)"))
        assert arena.find(RelationalRule(rule.conditions, rule.action)) is rule
        assert arena.find(make_rule("highest(?X) => move(?X, ?Y)")) is None


class TestPredicateEquality:
    def test_negation_distinguishes(self):
        assert fact("clear", "a") != fact("clear", "a", negated=True)
        assert fact("clear", "a").negate() == fact("clear", "a", negated=True)

    def test_hashable_in_sets(self):
        facts = {fact("clear", "a"), fact("clear", "a"), RelationalPredicate("clear", (constant("a"),))}
        assert len(facts) == 1

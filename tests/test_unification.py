"""
Tests for covering/unification.py — least-general unification of fact sets.
"""

from relational.arguments import ArgumentType, action_variable, constant
from relational.parsing import parse_predicate
from relational.predicates import fact
from covering.unification import Unifier, UnificationResult, unify


def _preds(*texts):
    return [parse_predicate(t) for t in texts]


def _strs(facts):
    return [str(f) for f in facts]


X, Y = action_variable(0), action_variable(1)


class TestUnify:
    """Tri-state result and the shape of the unified facts."""

    def test_identical_sets_unchanged(self):
        facts  = _preds("clear(?X)", "on(?X, ?)")
        result = unify(facts, facts, (X, Y), (X, Y))
        assert result.result is UnificationResult.UNCHANGED
        assert not result.changed and not result.failed
        assert _strs(result.facts) == ["clear(?X)", "on(?X, ?)"]

    def test_differing_action_terms_become_variables(self):
        old = [fact("clear", "a"), fact("on", "a", "b")]
        new = [fact("clear", "b"), fact("on", "b", "c")]
        result = unify(old, new, (constant("a"), constant("c")), (constant("b"), constant("c")))
        assert result.result is UnificationResult.CHANGED
        assert _strs(result.facts) == ["clear(?X)", "on(?X, ?)"]
        assert result.action_terms == (X, constant("c"))

    def test_two_different_variables_fail(self):
        result = unify(_preds("clear(?X)"), _preds("clear(?Y)"), (X,), (Y,))
        assert result.failed

    def test_arity_of_terms_must_match(self):
        assert unify([fact("clear", "a")], [fact("clear", "a")], (X,), ()).failed

    def test_nothing_survives(self):
        old    = [fact("clear", "a")]
        result = unify(old, [fact("on", "a", "b")])
        assert result.failed
        assert list(result.facts) == old

    def test_least_general_partner_chosen(self):
        result = unify([fact("on", "a", "b")], [fact("on", "a", "c"), fact("on", "a", "b")])
        assert result.result is UnificationResult.UNCHANGED

    def test_new_fact_used_once(self):
        result = unify([fact("on", "a", "b"), fact("on", "c", "b")], [fact("on", "a", "b")])
        assert result.changed
        assert _strs(result.facts) == ["on(a, b)"]

    def test_negated_facts_match_exactly(self):
        old = [fact("clear", "c", negated=True), fact("clear", "a")]
        new = [fact("clear", "d", negated=True), fact("clear", "a")]
        result = unify(old, new)
        assert result.changed
        assert _strs(result.facts) == ["clear(a)"]

        same = unify(old, old)
        assert same.result is UnificationResult.UNCHANGED

    def test_fully_anonymous_result_dropped(self):
        result = unify([fact("on", "a", "b"), fact("clear", "a")],
                       [fact("on", "c", "d"), fact("clear", "a")])
        assert _strs(result.facts) == ["clear(a)"]

    def test_zero_arity_facts(self):
        result = unify(_preds("handempty"), _preds("handempty"))
        assert result.result is UnificationResult.UNCHANGED


class TestNumericRanges:
    """Differing numbers merge into range variables."""

    def test_numbers_merge_into_range(self):
        unifier = Unifier()
        result  = unifier.unify([fact("height", "a", 1)], [fact("height", "a", 3)])
        assert result.changed
        (height,) = result.facts
        arg = height.args[1]
        assert arg.kind is ArgumentType.NUMBER_RANGE
        assert str(arg) == "?#_0{1..3}"

    def test_value_inside_range_is_unchanged(self):
        unifier = Unifier()
        merged  = unifier.unify([fact("height", "a", 1)], [fact("height", "a", 3)]).facts
        result  = unifier.unify(merged, [fact("height", "a", 2)])
        assert result.result is UnificationResult.UNCHANGED

    def test_range_widens_and_keeps_its_name(self):
        unifier = Unifier()
        merged  = unifier.unify([fact("height", "a", 1)], [fact("height", "a", 3)]).facts
        result  = unifier.unify(merged, [fact("height", "a", 5)])
        assert result.changed
        assert str(result.facts[0]) == "height(a, ?#_0{1..5})"

    def test_range_names_increase(self):
        unifier = Unifier()
        first  = unifier.unify([fact("height", "a", 1)], [fact("height", "a", 2)]).facts
        second = unifier.unify([fact("width", "a", 1)], [fact("width", "a", 2)]).facts
        assert first[0].args[1].name == "?#_0"
        assert second[0].args[1].name == "?#_1"

# tests/conftest.py
import random

import pytest

from domain.blocks_world import blocks_world_spec
from relational.arguments import constant
from relational.parsing import parse_rule
from relational.rules import RuleArena


@pytest.fixture
def blocks():
    """The blocks world domain declaration."""
    return blocks_world_spec()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def arena():
    return RuleArena()


@pytest.fixture
def make_fact(blocks):
    """Builds typed ground facts: make_fact("on", "a", "b")."""
    def _make(name, *terms, negated=False):
        return blocks.make(name, tuple(constant(t) for t in terms), negated)
    return _make


@pytest.fixture
def make_rule(blocks):
    """Parses a typed rule: make_rule("clear(?X) AND clear(?Y) => move(?X, ?Y)")."""
    def _make(text):
        return parse_rule(text, blocks)
    return _make

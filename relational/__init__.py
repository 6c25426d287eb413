"""
relational — term, predicate and rule model.

Public API:
  RelationalArgument, ArgumentType, NumericRange   typed arguments
  RelationalPredicate, fact(...)                   facts and conditions
  RelationalRule, RuleArena                        rules and their registry
  parse_predicate, parse_rule, format_rule         text boundary
  CerrlaError, ParseError, DomainError,
  PreGoalError, PolicyDepthError, ErrorCode        errors
"""

from .arguments  import (
    ANONYMOUS,
    ArgumentType,
    NumericRange,
    RelationalArgument,
    action_variable,
    bound_variable,
    constant,
    goal_variable,
    number,
    number_range,
    parse_argument,
    unbound_variable,
)
from .errors     import (
    CerrlaError,
    DomainError,
    ErrorCode,
    ParseError,
    PolicyDepthError,
    PreGoalError,
)
from .parsing    import format_rule, parse_predicate, parse_rule
from .predicates import RelationalPredicate, fact
from .rules      import RelationalRule, RuleArena, normalise_conditions

__all__ = [
    "ANONYMOUS",
    "ArgumentType",
    "NumericRange",
    "RelationalArgument",
    "action_variable",
    "bound_variable",
    "constant",
    "goal_variable",
    "number",
    "number_range",
    "parse_argument",
    "unbound_variable",
    "CerrlaError",
    "DomainError",
    "ErrorCode",
    "ParseError",
    "PolicyDepthError",
    "PreGoalError",
    "format_rule",
    "parse_predicate",
    "parse_rule",
    "RelationalPredicate",
    "fact",
    "RelationalRule",
    "RuleArena",
    "normalise_conditions",
]

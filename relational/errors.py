"""
relational/errors.py — error codes and the exception hierarchy.

CerrlaError — base class carrying a stable ErrorCode, a readable message
    and an optional details dict.
ParseError, DomainError — invalid input at the text or domain boundary
    (both are also ValueErrors).
PreGoalError — fatal pre-goal unification failure (also a RuntimeError).
PolicyDepthError — modular policy nested beyond the configured bound.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable error codes."""

    # parsing / serialization boundary
    PARSE_ERROR              = "E_PARSE_ERROR"
    CHECKPOINT_MISSING       = "E_CHECKPOINT_MISSING"
    CHECKPOINT_CORRUPT       = "E_CHECKPOINT_CORRUPT"

    # domain declarations
    UNKNOWN_DOMAIN           = "E_UNKNOWN_DOMAIN"
    UNKNOWN_PREDICATE        = "E_UNKNOWN_PREDICATE"
    ARITY_MISMATCH           = "E_ARITY_MISMATCH"

    # learning invariants
    PREGOAL_UNIFY_FAILED     = "E_PREGOAL_UNIFY_FAILED"
    POLICY_DEPTH_EXCEEDED    = "E_POLICY_DEPTH_EXCEEDED"


class CerrlaError(Exception):
    """Base exception with an ErrorCode and optional diagnostic details."""

    def __init__(
        self,
        code:    ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"[{code}] {message}")
        self.code    = code
        self.message = message
        self.details = details or {}


class ParseError(CerrlaError, ValueError):
    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(ErrorCode.PARSE_ERROR, message, {"text": text})


class DomainError(CerrlaError, ValueError):
    pass


class PreGoalError(CerrlaError, RuntimeError):
    """
    Raised when a new observation for an action shares no unifiable
    structure with the stored pre-goal of the same action.

    details:
      action   — the action predicate name
      pregoal  — the stored pre-goal facts (strings)
      observed — the newly observed facts (strings)
    """

    def __init__(self, action: str, pregoal: list[str], observed: list[str]) -> None:
        super().__init__(
            ErrorCode.PREGOAL_UNIFY_FAILED,
            f"Pre-goal states did not unify for action '{action}'",
            {"action": action, "pregoal": pregoal, "observed": observed},
        )


class PolicyDepthError(CerrlaError):
    def __init__(self, depth: int, limit: int) -> None:
        super().__init__(
            ErrorCode.POLICY_DEPTH_EXCEEDED,
            f"Modular policy depth {depth} exceeds the limit of {limit}",
            {"depth": depth, "limit": limit},
        )

"""Learner configuration — defaults overridable through environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "1" if default else "0").lower() in ("1", "true", "yes", "on")


@dataclass(slots=True)
class LearnerConfig:
    """
    - step_size:            α of the elite moving average
    - selection_ratio:      ρ, fraction of the population kept as elites
    - prune_threshold:      rule probability counted as negligible
    - pruning_iterations:   consecutive negligible updates before pruning
    - regeneration_kl_size: slots at or below this KL-size ask for mutants
    - converged_epsilon:    update size (per unit step) counted as no change
    - converged_updates:    consecutive small updates meaning convergence
    - min_population:       lower bound of the population heuristic
    - stale_factor:         elites older than stale_factor / ρ iterations go
    - slot_beta:            slot fixed when its best rule reaches 1 - β
    - absent_choice:        slots carry a "no rule" choice
    - inactivity_threshold: observations until a pre-goal settles
    - settled_rule_states:  unchanged states until a covered rule settles
    - max_policy_depth:     nesting bound of modular policies
    - seed:                 random seed (None → nondeterministic)
    """
    step_size:            float = 0.6
    selection_ratio:      float = 0.05
    prune_threshold:      float = 1e-3
    pruning_iterations:   int   = 3
    regeneration_kl_size: float = 1.5
    converged_epsilon:    float = 0.01
    converged_updates:    int   = 10
    min_population:       int   = 10
    stale_factor:         float = 1.0
    slot_beta:            float = 0.01
    absent_choice:        bool  = False
    inactivity_threshold: int   = 50
    settled_rule_states:  int   = 50
    max_policy_depth:     int   = 8
    seed:                 int | None = None

    def __post_init__(self) -> None:
        if not 0.0 < self.step_size <= 1.0:
            raise ValueError(f"step_size must be in (0, 1], got {self.step_size}")
        if not 0.0 < self.selection_ratio <= 1.0:
            raise ValueError(f"selection_ratio must be in (0, 1], got {self.selection_ratio}")
        if self.pruning_iterations < 1:
            raise ValueError("pruning_iterations must be >= 1")

    @property
    def stale_limit(self) -> int:
        """Iterations an elite sample stays in the archive."""
        return max(1, round(self.stale_factor / self.selection_ratio))

    @classmethod
    def from_env(cls) -> LearnerConfig:
        seed = os.getenv("CERRLA_SEED")
        return cls(
            step_size            = _env_float("CERRLA_STEP_SIZE",       0.6),
            selection_ratio      = _env_float("CERRLA_SELECTION_RATIO", 0.05),
            prune_threshold      = _env_float("CERRLA_PRUNE_THRESHOLD", 1e-3),
            pruning_iterations   = _env_int("CERRLA_PRUNING_ITERATIONS", 3),
            regeneration_kl_size = _env_float("CERRLA_REGENERATION_KL", 1.5),
            converged_epsilon    = _env_float("CERRLA_CONVERGED_EPSILON", 0.01),
            converged_updates    = _env_int("CERRLA_CONVERGED_UPDATES", 10),
            min_population       = _env_int("CERRLA_MIN_POPULATION",  10),
            stale_factor         = _env_float("CERRLA_STALE_FACTOR",  1.0),
            slot_beta            = _env_float("CERRLA_SLOT_BETA",     0.01),
            absent_choice        = _env_bool("CERRLA_ABSENT_CHOICE",  False),
            inactivity_threshold = _env_int("CERRLA_INACTIVITY_THRESHOLD", 50),
            settled_rule_states  = _env_int("CERRLA_SETTLED_RULE_STATES",  50),
            max_policy_depth     = _env_int("CERRLA_MAX_POLICY_DEPTH", 8),
            seed                 = int(seed) if seed else None,
        )

"""
covering — rule generalisation (covering), pre-goals and specialisation.

Public API:
  Unifier, unify, Unification, UnificationResult   LGG unification
  Covering                                         rules from observations
  PreGoalTracker, PreGoalInformation,
  PreGoalStatus, INACTIVITY_THRESHOLD              pre-goal state machine
  Specializer                                      single-step mutations
"""

from .unification  import Unification, UnificationResult, Unifier, unify
from .generalizer  import Covering
from .pregoal      import INACTIVITY_THRESHOLD, PreGoalInformation, PreGoalStatus, PreGoalTracker
from .specializer  import NUM_NUMERICAL_SPLITS, Specializer

__all__ = [
    "Unification",
    "UnificationResult",
    "Unifier",
    "unify",
    "Covering",
    "INACTIVITY_THRESHOLD",
    "PreGoalInformation",
    "PreGoalStatus",
    "PreGoalTracker",
    "NUM_NUMERICAL_SPLITS",
    "Specializer",
]

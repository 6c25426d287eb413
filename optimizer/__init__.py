"""
optimizer — distribution-based policy search over relational rules.

Public API:
  LearnerConfig                          tunables (env: CERRLA_*)
  ProbabilityDistribution, MIN_PROB      generic discrete distribution
  Slot, ABSENT                           per-action rule distribution
  Policy, PolicyDistribution             sampling of whole policies
  ModularPolicy                          sub-goal policy tree
  CrossEntropyUpdater, PolicyValue,
  select_elites, population_size         cross-entropy update
  CrossEntropyLearner                    covering + sampling + updating
  save_checkpoint, load_checkpoint,
  save_elites, load_elites               text persistence
"""

from .config       import LearnerConfig
from .distribution import MIN_PROB, ProbabilityDistribution
from .slot         import ABSENT, Slot
from .policy       import Policy, PolicyDistribution
from .modular      import ModularPolicy
from .updater      import (
    CrossEntropyUpdater,
    PolicyValue,
    UpdateReport,
    elite_count,
    population_size,
    select_elites,
)
from .learner      import CrossEntropyLearner
from .persistence  import (
    CheckpointLoad,
    load_checkpoint,
    load_elites,
    save_checkpoint,
    save_elites,
)

__all__ = [
    "LearnerConfig",
    "MIN_PROB",
    "ProbabilityDistribution",
    "ABSENT",
    "Slot",
    "Policy",
    "PolicyDistribution",
    "ModularPolicy",
    "CrossEntropyUpdater",
    "PolicyValue",
    "UpdateReport",
    "elite_count",
    "population_size",
    "select_elites",
    "CrossEntropyLearner",
    "CheckpointLoad",
    "load_checkpoint",
    "load_elites",
    "save_checkpoint",
    "save_elites",
]

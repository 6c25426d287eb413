"""
domain — domain declarations and environment simulators.

Public API:
  DomainSpec, PredicateDecl            domain declaration
  Environment, Observation             simulator interface
  register_domain, get_domain,
  available_domains                    registry by name
  BlocksWorld, blocks_world_spec       reference domain
"""

from .environment  import Environment, Observation
from .registry     import DomainEntry, available_domains, get_domain, register_domain
from .spec         import DomainSpec, PredicateDecl
from .blocks_world import BlocksWorld, blocks_world_spec

__all__ = [
    "Environment",
    "Observation",
    "DomainEntry",
    "available_domains",
    "get_domain",
    "register_domain",
    "DomainSpec",
    "PredicateDecl",
    "BlocksWorld",
    "blocks_world_spec",
]

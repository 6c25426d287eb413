"""
domain/registry.py — domains registered by name at import time.

  register_domain(name, spec_factory, env_factory, description)
  get_domain(name)     -> DomainEntry
  available_domains()  -> list[str]
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeAlias

from relational.errors import DomainError, ErrorCode

from .environment import Environment
from .spec import DomainSpec

SpecFactory: TypeAlias        = Callable[[], DomainSpec]
EnvironmentFactory: TypeAlias = Callable[..., Environment]


@dataclass(frozen=True, slots=True)
class DomainEntry:
    name:         str
    spec_factory: SpecFactory
    env_factory:  EnvironmentFactory | None = None
    description:  str = ""

    def spec(self) -> DomainSpec:
        return self.spec_factory()

    def environment(self, **kwargs) -> Environment:
        if self.env_factory is None:
            raise DomainError(
                ErrorCode.UNKNOWN_DOMAIN,
                f"Domain '{self.name}' has no environment simulator",
                {"domain": self.name},
            )
        return self.env_factory(**kwargs)


_REGISTRY: dict[str, DomainEntry] = {}


def register_domain(
    name:         str,
    spec_factory: SpecFactory,
    env_factory:  EnvironmentFactory | None = None,
    description:  str = "",
) -> DomainEntry:
    entry = DomainEntry(name, spec_factory, env_factory, description)
    _REGISTRY[name] = entry
    return entry


def get_domain(name: str) -> DomainEntry:
    try:
        return _REGISTRY[name]
    except KeyError:
        raise DomainError(
            ErrorCode.UNKNOWN_DOMAIN,
            f"Unknown domain '{name}' (available: {', '.join(available_domains()) or '-'})",
            {"domain": name},
        ) from None


def available_domains() -> list[str]:
    return sorted(_REGISTRY)

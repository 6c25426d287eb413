"""
optimizer/distribution.py — a discrete probability distribution over
arbitrary hashable elements (rule ids, slot ids).

Update rule (elite moving average):

    p_new = step * min(count / num_samples, 1) + (1 - step) * p_old

followed by clamping (≤ MIN_PROB → 0, ≥ 1 - MIN_PROB → 1) and
renormalisation. The returned update size is Σ|Δp| / (2 · step).
"""

from __future__ import annotations

import bisect
import math
import random
from collections.abc import Iterable, Iterator, Mapping
from typing import Generic, TypeVar

MIN_PROB = 1e-15

T = TypeVar("T")


class ProbabilityDistribution(Generic[T]):
    """Ordered element → probability map with sampling and EMA updates."""

    def __init__(self, items: Iterable[tuple[T, float]] = ()) -> None:
        self._probs: dict[T, float] = {}
        for element, prob in items:
            self._probs[element] = float(prob)

    def __len__(self) -> int:
        return len(self._probs)

    def __iter__(self) -> Iterator[T]:
        return iter(self._probs)

    def __contains__(self, element: object) -> bool:
        return element in self._probs

    def __str__(self) -> str:
        body = ", ".join(f"({e}:{p:.4f})" for e, p in self._probs.items())
        return "{" + body + "}"

    def items(self) -> list[tuple[T, float]]:
        return list(self._probs.items())

    def as_dict(self) -> dict[T, float]:
        return dict(self._probs)

    def probability(self, element: T) -> float:
        return self._probs.get(element, 0.0)

    def set_probability(self, element: T, prob: float) -> None:
        self._probs[element] = float(prob)

    def total(self) -> float:
        return math.fsum(self._probs.values())

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add(self, element: T, prob: float) -> None:
        self._probs[element] = float(prob)

    def add_new(self, element: T) -> None:
        """Adds element at 1/size, then renormalises."""
        self._probs[element] = 1.0 / (len(self._probs) + 1)
        self.normalise()

    def remove(self, element: T, normalise: bool = True) -> float:
        prob = self._probs.pop(element, 0.0)
        if normalise and self._probs:
            self.normalise()
        return prob

    def normalise(self) -> None:
        """Scales to sum 1; a zero-sum distribution becomes uniform."""
        if not self._probs:
            return
        total = self.total()
        if total <= 0.0:
            uniform = 1.0 / len(self._probs)
            for element in self._probs:
                self._probs[element] = uniform
            return
        for element, prob in self._probs.items():
            self._probs[element] = prob / total

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    @staticmethod
    def updated_value(old: float, count: float, num_samples: float, step: float) -> float:
        value = step * min(count / num_samples, 1.0) + (1.0 - step) * old
        if value <= MIN_PROB:
            return 0.0
        if value >= 1.0 - MIN_PROB:
            return 1.0
        return value

    def update(self, num_samples: float, counts: Mapping[T, float], step: float) -> float:
        """
        EMA update of every element towards its observed frequency (missing
        counts are 0), then renormalisation. No-op when num_samples is 0.

        Returns:
            Σ|p_new − p_old| / (2 · step).
        """
        if num_samples <= 0 or not self._probs:
            return 0.0
        before = dict(self._probs)
        for element, old in before.items():
            self._probs[element] = self.updated_value(
                old, counts.get(element, 0.0), num_samples, step
            )
        self.normalise()
        diff = math.fsum(abs(self._probs[e] - before[e]) for e in before)
        return diff / (2.0 * step)

    # ------------------------------------------------------------------
    # Measures
    # ------------------------------------------------------------------

    def kl_size(self) -> float:
        """
        Effective number of elements: size · (1 − KL(p‖uniform) / ln size),
        at least 1.
        """
        n = len(self._probs)
        if n <= 1:
            return 1.0
        uniform = 1.0 / n
        kl = math.fsum(p * math.log(p / uniform) for p in self._probs.values() if p > MIN_PROB)
        return max(n * (1.0 - kl / math.log(n)), 1.0)

    def kl_divergence(self, previous: Mapping[T, float]) -> float:
        """KL(current ‖ previous); elements new since previous use MIN_PROB."""
        return math.fsum(
            p * math.log(p / max(previous.get(e, 0.0), MIN_PROB))
            for e, p in self._probs.items()
            if p > MIN_PROB
        )

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def ordered(self) -> list[T]:
        """Elements by descending probability (insertion order breaks ties)."""
        return sorted(self._probs, key=lambda e: -self._probs[e])

    def best(self) -> T | None:
        ordered = self.ordered()
        return ordered[0] if ordered else None

    def sample(self, rng: random.Random, most_likely: bool = False) -> T | None:
        """
        Draws one element; with most_likely the best element. Elements at or
        below MIN_PROB are never drawn. None for an empty distribution.
        """
        if not self._probs:
            return None
        if most_likely:
            return self.best()

        elements:   list[T]     = []
        cumulative: list[float] = []
        running = 0.0
        for element, prob in self._probs.items():
            if prob <= MIN_PROB:
                continue
            running += prob
            elements.append(element)
            cumulative.append(running)
        if not elements:
            return self.best()

        idx = bisect.bisect_right(cumulative, rng.random() * running)
        return elements[min(idx, len(elements) - 1)]

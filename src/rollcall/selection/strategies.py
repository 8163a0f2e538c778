"""Selection strategies -- the pick algorithms behind a spin.

A closed set keyed by SelectionMethod:
- RandomStrategy: uniform draw over the eligible set.
- WeightedStrategy: draw biased toward under-selected participants.
  weight(p) = max_count - count(p) + 1, so every candidate keeps a
  strictly positive probability.
- ManualStrategy: no draw; hands the eligible set back for a human
  decision, which is later written through the direct record path.

The registry is checked against the enum at import time, so adding a
method without a strategy fails loudly. Randomness comes from an injected
random.Random so seeded runs are reproducible.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from src.rollcall.selection.schemas import Participant, SelectionMethod


@dataclass(frozen=True)
class StrategyDecision:
    """What a strategy decided for one spin.

    chosen is None when the decision is deferred to a human (manual).
    """

    method: SelectionMethod
    chosen: Participant | None
    eligible: list[Participant]

    @property
    def deferred(self) -> bool:
        return self.chosen is None


class SelectionStrategy(ABC):
    """Base class for the pick algorithms."""

    method: ClassVar[SelectionMethod]

    @abstractmethod
    def decide(self, eligible: list[Participant], rng: random.Random) -> StrategyDecision:
        """Pick from a non-empty eligible list (or defer)."""


class RandomStrategy(SelectionStrategy):
    method = SelectionMethod.RANDOM

    def decide(self, eligible: list[Participant], rng: random.Random) -> StrategyDecision:
        return StrategyDecision(self.method, rng.choice(eligible), eligible)


def selection_weights(eligible: list[Participant]) -> list[int]:
    """Weights favouring participants with fewer selections.

    The maximum is taken once over the whole eligible set.
    """
    max_count = max(p.selection_count for p in eligible)
    return [max_count - p.selection_count + 1 for p in eligible]


class WeightedStrategy(SelectionStrategy):
    method = SelectionMethod.WEIGHTED

    def decide(self, eligible: list[Participant], rng: random.Random) -> StrategyDecision:
        weights = selection_weights(eligible)
        threshold = rng.random() * sum(weights)

        cumulative = 0
        for participant, weight in zip(eligible, weights):
            cumulative += weight
            if cumulative >= threshold:
                return StrategyDecision(self.method, participant, eligible)
        # Float rounding guard; unreachable for integer weights
        return StrategyDecision(self.method, eligible[-1], eligible)


class ManualStrategy(SelectionStrategy):
    method = SelectionMethod.MANUAL

    def decide(self, eligible: list[Participant], rng: random.Random) -> StrategyDecision:
        return StrategyDecision(self.method, None, list(eligible))


_STRATEGIES: dict[SelectionMethod, SelectionStrategy] = {
    strategy.method: strategy
    for strategy in (RandomStrategy(), WeightedStrategy(), ManualStrategy())
}

_missing = set(SelectionMethod) - set(_STRATEGIES)
if _missing:
    raise RuntimeError(f"No strategy registered for: {sorted(m.value for m in _missing)}")


def get_strategy(method: SelectionMethod | str) -> SelectionStrategy:
    """Return the strategy for a method value.

    Raises:
        InvalidSelectionMethodError: For values outside SelectionMethod.
    """
    return _STRATEGIES[SelectionMethod.parse(method)]

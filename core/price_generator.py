"""Draw the frozen price effect a task contributes when completed."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from core.models import EASY, EXTREME, HARD, MEDIUM, round_price, validate_difficulty

# Per-task growth rate as (mean, standard deviation) of a normal distribution.
DIFFICULTY_DISTRIBUTION: dict[str, tuple[float, float]] = {
    EASY: (0.002, 0.001),
    MEDIUM: (0.003, 0.0015),
    HARD: (0.004, 0.002),
    EXTREME: (0.005, 0.003),
}

_DEFAULT_RNG = np.random.default_rng()


@dataclass(frozen=True)
class PriceChange:
    """Absolute and relative effect of one task on the owner's price."""

    price_change: float
    percent: float

    @property
    def percentage(self) -> float:
        """Percent units (0.3 means 0.3%) as stored on the task."""
        return self.percent * 100.0


def sample_rate(difficulty: str, rng: np.random.Generator | None = None) -> float:
    """Draw one non-negative growth rate for the difficulty tier."""
    mean, stddev = DIFFICULTY_DISTRIBUTION[validate_difficulty(difficulty)]
    generator = rng if rng is not None else _DEFAULT_RNG
    return abs(float(generator.normal(mean, stddev)))


def generate(difficulty: str, current_price: float, rng: np.random.Generator | None = None) -> PriceChange:
    """
    Draw a task's price effect at the given price.

    The percent is derived back from the rounded amount so both displayed
    numbers agree after rounding.

    Raises:
        ValidationError: Unknown difficulty.
        ValueError: Non-positive price.
    """
    if current_price <= 0:
        raise ValueError(f"Current price must be positive, got {current_price}")

    rate = sample_rate(difficulty, rng)
    price_change = round_price(current_price * rate)
    return PriceChange(price_change=price_change, percent=price_change / current_price)

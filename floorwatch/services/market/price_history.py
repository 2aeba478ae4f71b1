"""Bounded floor-price history and tick-to-tick trend."""

from __future__ import annotations

from collections import deque
from typing import Deque, List, Optional

from floorwatch.models.price_models import Trend


def compute_trend(previous: Optional[float], current: float) -> Trend:
    """Up if current > previous, Down if <, Flat if equal or there is no previous observation."""
    if previous is None:
        return Trend.FLAT
    if current > previous:
        return Trend.UP
    if current < previous:
        return Trend.DOWN
    return Trend.FLAT


class PriceHistory:
    """
    Most recent floor prices in observation order, oldest evicted first.
    """

    def __init__(self, max_size: int = 24) -> None:
        self._max = max(1, int(max_size))
        self._prices: Deque[float] = deque(maxlen=self._max)

    @property
    def max_size(self) -> int:
        return self._max

    @property
    def latest(self) -> Optional[float]:
        return self._prices[-1] if self._prices else None

    def append(self, price: float) -> Trend:
        """Record ``price`` and return its trend against the previous entry."""
        trend = compute_trend(self.latest, price)
        self._prices.append(float(price))
        return trend

    def values(self) -> List[float]:
        return list(self._prices)

    def __len__(self) -> int:
        return len(self._prices)

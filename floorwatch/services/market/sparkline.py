"""Text sparkline for the short price history."""

from __future__ import annotations

from typing import Iterable, List

BLOCKS = "▁▂▃▄▅▆▇█"


def normalize(prices: Iterable[float]) -> List[float]:
    """Scale prices into [0, 1]. Without spread every point sits at 0.5."""
    prices = list(prices)
    if not prices:
        return []
    lo = min(prices)
    hi = max(prices)
    if hi <= lo:
        return [0.5] * len(prices)
    return [(p - lo) / (hi - lo) for p in prices]


def render_sparkline(prices: Iterable[float]) -> str:
    top = len(BLOCKS) - 1
    return "".join(BLOCKS[int(round(v * top))] for v in normalize(prices))

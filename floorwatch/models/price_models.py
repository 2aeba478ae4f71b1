"""Price domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


@dataclass(frozen=True)
class PriceSnapshot:
    floor_price: float
    last_trade_price: float
    project_name: str
    observed_at: datetime


@dataclass
class AlertSettings:
    enabled: bool = True
    minimum_price: str = "120"  # user text, may not parse


@dataclass
class Session:
    """Login state. The password is only held in memory for the login call."""

    account: str = ""
    access_token: str = ""

    @property
    def is_logged_in(self) -> bool:
        return bool(self.access_token)


@dataclass
class PollerState:
    project_name: str
    floor_price: float = 0.0
    last_trade_price: float = 0.0
    last_updated: Optional[datetime] = None
    is_loading: bool = False
    is_logging_in: bool = False
    showing_error: bool = False
    error_message: str = ""
    trend: Trend = Trend.FLAT
    history: List[float] = field(default_factory=list)
    is_logged_in: bool = False
    currency_symbol: str = "¥"

    @property
    def floor_price_formatted(self) -> str:
        return format_price(self.floor_price, self.currency_symbol)

    @property
    def last_trade_price_formatted(self) -> str:
        return format_price(self.last_trade_price, self.currency_symbol)

    @property
    def status_text(self) -> str:
        if self.is_loading:
            return "Fetching..."
        if self.showing_error:
            return "Request failed, retry later"
        return "Running"


def format_price(value: float, currency_symbol: str = "¥") -> str:
    return f"{currency_symbol} {value:.2f}"

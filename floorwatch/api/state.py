# floorwatch/api/state.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from floorwatch.infrastructure.storage.sqlite_repository import SQLiteRepository
from floorwatch.services.poller.floor_price_poller import FloorPricePoller


@dataclass
class AppState:
    poller: FloorPricePoller
    repo: SQLiteRepository


_state: Optional[AppState] = None


def set_state(state: Optional[AppState]) -> None:
    global _state
    _state = state


def get_state() -> AppState:
    if _state is None:
        raise RuntimeError("API state not initialized. Start the poller first (or init state).")
    return _state

"""Low floor-price alert: threshold predicate + notification dispatch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from floorwatch.infrastructure.logging.logging import get_logger
from floorwatch.infrastructure.notify.notifier import Feedback, Notifier
from floorwatch.infrastructure.storage.sqlite_repository import AlertEventRow, SQLiteRepository
from floorwatch.infrastructure.utils.timeutils import utc_now
from floorwatch.models.marketplace_models import parse_number
from floorwatch.models.price_models import AlertSettings, format_price

ALERT_TITLE = "Floor price too low"


def parse_minimum_price(raw: Optional[str]) -> Optional[float]:
    """User text -> finite float, or None when it does not parse."""
    return parse_number(raw)


def should_alert(enabled: bool, minimum_price: Optional[str], floor_price: float) -> bool:
    if not enabled:
        return False
    minimum = parse_minimum_price(minimum_price)
    if minimum is None:
        return False
    return 0 < floor_price <= minimum


@dataclass
class AlertOutcome:
    fired: bool
    qualified: bool


class LowPriceAlert:
    """
    Decides whether a fresh floor price should alert, then notifies.

    mode "every_poll" fires on every qualifying poll.
    mode "on_cross" fires only when the previous evaluation did not qualify.
    """

    def __init__(
        self,
        notifier: Notifier,
        feedback: Feedback,
        *,
        mode: str = "every_poll",
        currency_symbol: str = "¥",
        project_id: str = "",
        repo: Optional[SQLiteRepository] = None,
    ) -> None:
        self._notifier = notifier
        self._feedback = feedback
        self._mode = mode
        self._currency = currency_symbol
        self._project_id = project_id
        self._repo = repo
        self._was_below = False
        self._log = get_logger("low_price_alert")

    def reset(self) -> None:
        self._was_below = False

    async def evaluate(self, settings: AlertSettings, floor_price: float) -> AlertOutcome:
        qualified = should_alert(settings.enabled, settings.minimum_price, floor_price)
        was_below = self._was_below
        self._was_below = qualified

        if not qualified:
            return AlertOutcome(fired=False, qualified=False)
        if self._mode == "on_cross" and was_below:
            self._log.debug("alert_suppressed_still_below", floor_price=floor_price)
            return AlertOutcome(fired=False, qualified=True)

        await self._fire(settings, floor_price)
        return AlertOutcome(fired=True, qualified=True)

    async def _fire(self, settings: AlertSettings, floor_price: float) -> None:
        body = f"Current price {format_price(floor_price, self._currency)}, below your threshold."
        self._log.warning(
            "alert_fired",
            floor_price=floor_price,
            minimum_price=settings.minimum_price,
            mode=self._mode,
        )

        # Delivery failures must never fail the poll that triggered them
        try:
            await self._notifier.notify(ALERT_TITLE, body)
        except Exception as e:
            self._log.error("notification_failed", error=str(e))
        try:
            self._feedback.warning()
        except Exception as e:
            self._log.error("feedback_failed", error=str(e))

        if self._repo is not None:
            self._repo.insert_alert_event(
                AlertEventRow(
                    ts=utc_now().isoformat(),
                    project_id=self._project_id,
                    floor_price=floor_price,
                    minimum_price=str(settings.minimum_price),
                    message=body,
                )
            )

"""Floor price poller.

Owns the refresh cadence and every piece of mutable price/session state.

- One worker task consumes a command queue (refresh / login); commands run one
  at a time, so results are applied in completion order and never interleave.
- A refresh requested while another refresh is still queued joins it.
- The scheduler only submits refresh commands; a manual refresh never re-arms it.
- stop() wakes the scheduler at its sleep boundary, lets the command in flight
  finish, then ends the worker.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Optional

from floorwatch.infrastructure.logging.logging import get_logger
from floorwatch.infrastructure.marketplace.api_client import MarketplaceClient, MarketplaceError
from floorwatch.infrastructure.notify.notifier import Notifier
from floorwatch.infrastructure.utils.timeutils import utc_now
from floorwatch.models.marketplace_models import ProjectRecord
from floorwatch.models.price_models import AlertSettings, PollerState, PriceSnapshot, Session
from floorwatch.services.alerts.low_price_alert import LowPriceAlert
from floorwatch.services.market.price_history import PriceHistory
from floorwatch.services.market.sparkline import render_sparkline
from floorwatch.services.preferences import PreferenceStore

IDLE = "idle"
RUNNING = "running"
STOPPED = "stopped"

MSG_NOT_FOUND = "Project not found in catalog"
MSG_MISSING_CREDENTIALS = "Enter account and password"
MSG_PERMISSION_FAILED = "Notification permission request failed"


class LoginValidationError(ValueError):
    pass


class PollerStoppedError(RuntimeError):
    pass


@dataclass
class _Command:
    kind: str  # "refresh" | "login"
    future: "asyncio.Future[bool]"
    account: str = ""
    password: str = field(default="", repr=False)


class FloorPricePoller:
    def __init__(
        self,
        client: MarketplaceClient,
        *,
        tab_id: str,
        project_id: str,
        notifier: Notifier,
        alert: LowPriceAlert,
        session: Optional[Session] = None,
        alert_settings: Optional[AlertSettings] = None,
        preferences: Optional[PreferenceStore] = None,
        interval_seconds: float = 180.0,
        history_size: int = 24,
        default_project_name: str = "",
        currency_symbol: str = "¥",
    ) -> None:
        self._log = get_logger("poller", project_id=project_id)
        self._client = client
        self._tab_id = tab_id
        self._project_id = project_id
        self._notifier = notifier
        self._alert = alert
        self._session = session or Session()
        self._alert_settings = alert_settings or AlertSettings()
        self._preferences = preferences
        self._interval = interval_seconds

        self._history = PriceHistory(history_size)
        self._state = PollerState(project_name=default_project_name, currency_symbol=currency_symbol)
        self._last_snapshot: Optional[PriceSnapshot] = None

        self._phase = IDLE
        self._stop_evt = asyncio.Event()
        self._queue: "asyncio.Queue[Optional[_Command]]" = asyncio.Queue()
        self._pending_refresh: Optional[_Command] = None
        self._worker_task: Optional["asyncio.Task[None]"] = None
        self._scheduler_task: Optional["asyncio.Task[None]"] = None

    # ---- read side ----
    @property
    def phase(self) -> str:
        return self._phase

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def last_snapshot(self) -> Optional[PriceSnapshot]:
        return self._last_snapshot

    @property
    def alert_settings(self) -> AlertSettings:
        return replace(self._alert_settings)

    @property
    def session(self) -> Session:
        return replace(self._session)

    def snapshot(self) -> PollerState:
        return replace(
            self._state,
            history=self._history.values(),
            is_logged_in=self._session.is_logged_in,
        )

    def sparkline(self) -> str:
        return render_sparkline(self._history.values())

    # ---- lifecycle ----
    async def start(self) -> None:
        if self._phase != IDLE:
            return
        self._phase = RUNNING
        self._stop_evt.clear()
        self._worker_task = asyncio.create_task(self._worker_loop())

        await self._request_notification_permission()
        await self.refresh_now()

        self._scheduler_task = asyncio.create_task(self._schedule_loop())
        self._log.info("poller_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        if self._phase == STOPPED:
            return
        was_running = self._phase == RUNNING
        self._phase = STOPPED
        self._stop_evt.set()
        if not was_running:
            return

        if self._scheduler_task is not None:
            await self._scheduler_task
        self._queue.put_nowait(None)
        if self._worker_task is not None:
            await self._worker_task
        self._log.info("poller_stopped")

    async def _request_notification_permission(self) -> None:
        try:
            granted = await self._notifier.request_permission()
        except Exception as e:
            self._log.error("notification_permission_failed", error=str(e))
            self._show_error(MSG_PERMISSION_FAILED)
            return
        if not granted:
            # For this run only: the stored preference is left as the user set it
            self._alert_settings.enabled = False
            self._log.warning("notification_permission_denied", alerting="disabled")

    async def _schedule_loop(self) -> None:
        while not self._stop_evt.is_set():
            try:
                await asyncio.wait_for(self._stop_evt.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            if self._stop_evt.is_set():
                break
            try:
                await self.refresh_now()
            except Exception as e:
                self._log.error("scheduled_refresh_error", error=str(e))

    # ---- commands ----
    async def refresh_now(self) -> bool:
        """Poll now. Returns True when the floor price was updated."""
        if self._phase == STOPPED:
            self._log.info("refresh_ignored", reason="poller_stopped")
            return False
        if self._phase == IDLE:
            return await self._poll()

        if self._pending_refresh is None:
            cmd = _Command(kind="refresh", future=asyncio.get_running_loop().create_future())
            self._pending_refresh = cmd
            self._queue.put_nowait(cmd)
        else:
            self._log.debug("refresh_coalesced")
        return await asyncio.shield(self._pending_refresh.future)

    async def login(self, account: str, password: str) -> bool:
        """Exchange credentials for a token, then poll with it. Returns True on success."""
        if not account or not password:
            self._show_error(MSG_MISSING_CREDENTIALS)
            raise LoginValidationError("account and password are required")
        if self._phase == STOPPED:
            raise PollerStoppedError("poller is stopped")
        if self._phase == IDLE:
            return await self._login(account, password)

        cmd = _Command(
            kind="login",
            future=asyncio.get_running_loop().create_future(),
            account=account,
            password=password,
        )
        self._queue.put_nowait(cmd)
        return await asyncio.shield(cmd.future)

    def update_alert_settings(
        self,
        *,
        enabled: Optional[bool] = None,
        minimum_price: Optional[str] = None,
    ) -> AlertSettings:
        if enabled is not None:
            self._alert_settings.enabled = enabled
        if minimum_price is not None:
            self._alert_settings.minimum_price = minimum_price
        self._alert.reset()
        if self._preferences is not None:
            self._preferences.save_alert_settings(self._alert_settings)
        self._log.info(
            "alert_settings_updated",
            enabled=self._alert_settings.enabled,
            minimum_price=self._alert_settings.minimum_price,
        )
        return self.alert_settings

    async def _worker_loop(self) -> None:
        while True:
            cmd = await self._queue.get()
            if cmd is None:
                self._queue.task_done()
                break
            if cmd is self._pending_refresh:
                self._pending_refresh = None

            result = False
            try:
                if cmd.kind == "refresh":
                    result = await self._poll()
                else:
                    result = await self._login(cmd.account, cmd.password)
            except Exception as e:
                self._log.exception("command_error", kind=cmd.kind)
                self._state.is_loading = False
                self._state.is_logging_in = False
                self._show_error(f"Unexpected error: {e}")
            finally:
                if not cmd.future.done():
                    cmd.future.set_result(result)
                self._queue.task_done()

    # ---- operations (worker side) ----
    async def _poll(self) -> bool:
        self._state.is_loading = True
        record: Optional[ProjectRecord] = None
        try:
            record = await self._client.fetch_floor_price(
                self._tab_id,
                self._project_id,
                self._session.access_token or None,
            )
        except MarketplaceError as e:
            self._log.error("poll_failed", error=str(e), error_type=type(e).__name__)
            self._show_error(f"Fetch failed: {e}")
            return False
        finally:
            self._state.is_loading = False

        if record is None:
            self._log.warning("poll_not_found", tab_id=self._tab_id)
            self._show_error(MSG_NOT_FOUND)
            return False

        snapshot = self._apply(record)
        await self._alert.evaluate(self._alert_settings, snapshot.floor_price)
        return True

    def _apply(self, record: ProjectRecord) -> PriceSnapshot:
        snapshot = PriceSnapshot(
            floor_price=record.floor_price_value,
            last_trade_price=record.last_trade_value,
            project_name=record.name,
            observed_at=utc_now(),
        )
        trend = self._history.append(snapshot.floor_price)

        s = self._state
        s.floor_price = snapshot.floor_price
        s.last_trade_price = snapshot.last_trade_price
        s.project_name = snapshot.project_name
        s.last_updated = snapshot.observed_at
        s.trend = trend
        s.showing_error = False
        s.error_message = ""
        self._last_snapshot = snapshot

        self._log.info(
            "poll_ok",
            name=snapshot.project_name,
            floor_price=snapshot.floor_price,
            last_trade_price=snapshot.last_trade_price,
            trend=trend.value,
            history=len(self._history),
            sparkline=render_sparkline(self._history.values()),
        )
        return snapshot

    async def _login(self, account: str, password: str) -> bool:
        self._state.is_logging_in = True
        try:
            data = await self._client.login(account, password)
        except MarketplaceError as e:
            self._log.error("login_failed", error=str(e), error_type=type(e).__name__)
            self._show_error(f"Login failed: {e}")
            return False
        finally:
            self._state.is_logging_in = False

        self._session.account = account
        self._session.access_token = data.access_token
        if self._preferences is not None:
            self._preferences.save_session(self._session)
        self._log.info("login_token_stored", account=account, expires_in=data.expires_in)

        await self._poll()
        return True

    def _show_error(self, message: str) -> None:
        self._state.error_message = message
        self._state.showing_error = True

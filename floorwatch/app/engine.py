"""Engine: wires config into components and runs the poller."""

from __future__ import annotations

import asyncio
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import uvicorn

from floorwatch.api.server import create_app
from floorwatch.api.state import AppState, set_state
from floorwatch.infrastructure.logging.logging import configure_logging, get_logger
from floorwatch.infrastructure.marketplace.api_client import MarketplaceClient
from floorwatch.infrastructure.notify.notifier import build_feedback, build_notifier
from floorwatch.infrastructure.storage.sqlite_repository import SQLiteRepository
from floorwatch.infrastructure.utils.config import FloorWatchConfig, load_config
from floorwatch.models.price_models import AlertSettings
from floorwatch.services.alerts.low_price_alert import LowPriceAlert
from floorwatch.services.poller.floor_price_poller import FloorPricePoller
from floorwatch.services.preferences import PreferenceStore


@dataclass
class Runtime:
    config: FloorWatchConfig
    repo: SQLiteRepository
    client: MarketplaceClient
    preferences: PreferenceStore
    poller: FloorPricePoller

    async def aclose(self) -> None:
        try:
            await self.poller.stop()
        finally:
            try:
                await self.client.aclose()
            finally:
                self.repo.close()


def build_runtime(config: FloorWatchConfig) -> Runtime:
    repo = SQLiteRepository(Path(config.storage.path))
    preferences = PreferenceStore(repo)

    mc = config.marketplace
    client = MarketplaceClient(
        mc.base_url,
        timeout=mc.request_timeout_seconds,
        dialing_code=mc.dialing_code,
        device=mc.device,
    )

    nc = config.notifications
    notifier = build_notifier(nc.backend, app_name=nc.app_name, timeout_seconds=nc.timeout_seconds)
    alert = LowPriceAlert(
        notifier,
        build_feedback(nc.bell),
        mode=config.alert.mode,
        currency_symbol=config.alert.currency_symbol,
        project_id=mc.project_id,
        repo=repo,
    )

    defaults = AlertSettings(enabled=config.alert.enabled, minimum_price=config.alert.minimum_price)
    poller = FloorPricePoller(
        client,
        tab_id=mc.tab_id,
        project_id=mc.project_id,
        notifier=notifier,
        alert=alert,
        session=preferences.load_session(),
        alert_settings=preferences.load_alert_settings(defaults),
        preferences=preferences,
        interval_seconds=config.poller.interval_seconds,
        history_size=config.poller.history_size,
        default_project_name=config.poller.default_project_name,
        currency_symbol=config.alert.currency_symbol,
    )
    return Runtime(config=config, repo=repo, client=client, preferences=preferences, poller=poller)


def _install_stop_handlers(stop_evt: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_evt.set)
        except NotImplementedError:
            # Windows event loops: fall back to KeyboardInterrupt
            pass


async def run_engine(config_path: Optional[Path] = None, *, serve_api: bool = False) -> None:
    config = load_config(config_path)
    configure_logging(config.log_level, config.log_renderer)
    log = get_logger("engine")
    log.info(
        "config_loaded",
        base_url=config.marketplace.base_url,
        project_id=config.marketplace.project_id,
        interval_seconds=config.poller.interval_seconds,
        notifications=config.notifications.backend,
    )

    runtime = build_runtime(config)
    set_state(AppState(poller=runtime.poller, repo=runtime.repo))

    stop_evt = asyncio.Event()
    _install_stop_handlers(stop_evt)

    try:
        await runtime.poller.start()
        log.info("engine_started", serve_api=serve_api, logged_in=runtime.poller.session.is_logged_in)

        if serve_api:
            server = uvicorn.Server(
                uvicorn.Config(
                    create_app(config.api.cors_origins),
                    host=config.api.host,
                    port=config.api.port,
                    log_level=config.log_level.lower(),
                )
            )
            api_task = asyncio.create_task(server.serve())
            stop_task = asyncio.create_task(stop_evt.wait())
            await asyncio.wait([api_task, stop_task], return_when=asyncio.FIRST_COMPLETED)
            server.should_exit = True
            stop_task.cancel()
            await api_task
        else:
            await stop_evt.wait()
    finally:
        await runtime.aclose()
        set_state(None)
        log.info("engine_stopped")

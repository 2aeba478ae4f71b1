"""Entrypoint.

Usage:
  python -m floorwatch.app.main run                 # poll forever, log every update
  python -m floorwatch.app.main api                 # poll forever + local FastAPI server
  python -m floorwatch.app.main once                # one poll, print a summary
  python -m floorwatch.app.main login --account A   # prompt for password, store token
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from pathlib import Path
from typing import List, Optional

from floorwatch.app.engine import build_runtime, run_engine
from floorwatch.infrastructure.logging.logging import configure_logging
from floorwatch.infrastructure.utils.config import load_config
from floorwatch.models.price_models import PollerState
from floorwatch.services.market.sparkline import render_sparkline
from floorwatch.services.poller.floor_price_poller import LoginValidationError


def format_summary(state: PollerState) -> str:
    lines = [
        state.project_name,
        f"  floor price : {state.floor_price_formatted} ({state.trend.value})",
        f"  last trade  : {state.last_trade_price_formatted}",
        f"  updated     : {state.last_updated.isoformat() if state.last_updated else '-'}",
        f"  history     : {render_sparkline(state.history) or '-'}",
        f"  status      : {state.status_text}",
    ]
    if state.showing_error:
        lines.append(f"  error       : {state.error_message}")
    return "\n".join(lines)


async def _once(config_path: Optional[Path]) -> int:
    config = load_config(config_path)
    configure_logging(config.log_level, config.log_renderer)
    runtime = build_runtime(config)
    try:
        ok = await runtime.poller.refresh_now()
        print(format_summary(runtime.poller.snapshot()))
        return 0 if ok else 1
    finally:
        await runtime.aclose()


async def _login(config_path: Optional[Path], account: str, password: str) -> int:
    config = load_config(config_path)
    configure_logging(config.log_level, config.log_renderer)
    runtime = build_runtime(config)
    try:
        try:
            ok = await runtime.poller.login(account, password)
        except LoginValidationError:
            print(runtime.poller.snapshot().error_message, file=sys.stderr)
            return 2
        state = runtime.poller.snapshot()
        if not ok:
            print(state.error_message, file=sys.stderr)
            return 1
        print("Logged in, token stored.")
        print(format_summary(state))
        return 0
    finally:
        await runtime.aclose()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser("floorwatch")
    parser.add_argument("command", choices=["run", "api", "once", "login"], help="What to run")
    parser.add_argument("--config", type=Path, default=None, help="YAML config path")
    parser.add_argument("--account", default="", help="Account (phone number) for login")
    args = parser.parse_args(argv)

    if args.command == "run":
        asyncio.run(run_engine(args.config))
        return

    if args.command == "api":
        asyncio.run(run_engine(args.config, serve_api=True))
        return

    if args.command == "once":
        sys.exit(asyncio.run(_once(args.config)))

    if args.command == "login":
        account = args.account or input("Account: ").strip()
        password = getpass.getpass("Password: ")
        sys.exit(asyncio.run(_login(args.config, account, password)))


if __name__ == "__main__":
    main()

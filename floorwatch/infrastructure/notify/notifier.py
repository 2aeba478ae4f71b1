"""Local notification delivery and warning feedback.

Back-ends:
- PlyerNotifier: desktop notification through plyer (runs in a worker thread).
- LogNotifier: writes the notification as a log line (headless hosts).
- DisabledNotifier: refuses permission, which turns alerting off for the run.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional, Protocol, TextIO

from plyer import notification

from floorwatch.infrastructure.logging.logging import get_logger


class Notifier(Protocol):
    async def request_permission(self) -> bool: ...

    async def notify(self, title: str, body: str) -> None: ...


class Feedback(Protocol):
    def warning(self) -> None: ...


class PlyerNotifier:
    def __init__(self, app_name: str = "floorwatch", timeout_seconds: int = 10) -> None:
        self._app_name = app_name
        self._timeout = timeout_seconds
        self._logger = get_logger("notifier", backend="plyer")

    async def request_permission(self) -> bool:
        # Desktop notification daemons have no authorization prompt.
        return True

    async def notify(self, title: str, body: str) -> None:
        await asyncio.to_thread(
            notification.notify,
            title=title[:100],
            message=body[:500],
            app_name=self._app_name,
            timeout=self._timeout,
        )
        self._logger.info("notification_sent", title=title)


class LogNotifier:
    def __init__(self) -> None:
        self._logger = get_logger("notifier", backend="log")

    async def request_permission(self) -> bool:
        return True

    async def notify(self, title: str, body: str) -> None:
        self._logger.warning("notification", title=title, body=body)


class DisabledNotifier:
    async def request_permission(self) -> bool:
        return False

    async def notify(self, title: str, body: str) -> None:
        return None


class TerminalBellFeedback:
    """Rings the terminal bell, the desktop stand-in for a haptic warning."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def warning(self) -> None:
        stream = self._stream or sys.stdout
        stream.write("\a")
        stream.flush()


class NoFeedback:
    def warning(self) -> None:
        return None


def build_notifier(backend: str, *, app_name: str = "floorwatch", timeout_seconds: int = 10) -> Notifier:
    if backend == "plyer":
        return PlyerNotifier(app_name=app_name, timeout_seconds=timeout_seconds)
    if backend == "log":
        return LogNotifier()
    return DisabledNotifier()


def build_feedback(bell: bool) -> Feedback:
    return TerminalBellFeedback() if bell else NoFeedback()

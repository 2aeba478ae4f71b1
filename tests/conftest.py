import sqlite3
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

import httpx
import pytest

from floorwatch.infrastructure.marketplace.api_client import ITEMS_PATH, LOGIN_PATH, MarketplaceClient
from floorwatch.infrastructure.storage.sqlite_repository import SQLiteRepository
from floorwatch.models.price_models import AlertSettings, Session
from floorwatch.services.alerts.low_price_alert import LowPriceAlert
from floorwatch.services.poller.floor_price_poller import FloorPricePoller
from floorwatch.services.preferences import PreferenceStore

BASE_URL = "https://market.test"
TAB_ID = "a8f56062-6a5e-4852-9ede-7377128d427e"
PROJECT_ID = "51413706-fa41-4577-b530-075d57d551b5"
OTHER_PROJECT_ID = "00000000-0000-0000-0000-000000000000"
DB_NAME = "floorwatch.db"

Factory = Callable[[httpx.Request], httpx.Response]


def tab_body(
    floor_price: Any = "150.00",
    last_trade_price: Any = "148.50",
    *,
    project_id: str = PROJECT_ID,
    name: str = "国文通卷",
) -> Dict[str, Any]:
    return {
        "isSuccess": True,
        "code": "0",
        "msg": "success",
        "data": {
            "projects": [
                {
                    "project_id": OTHER_PROJECT_ID,
                    "name": "other",
                    "img_url": "https://img.test/other.png",
                    "floor_price": "1.00",
                    "last_trade_price": "1.00",
                },
                {
                    "project_id": project_id,
                    "name": name,
                    "img_url": "https://img.test/p.png",
                    "floor_price": floor_price,
                    "last_trade_price": last_trade_price,
                },
            ],
            "total": 2,
        },
    }


def items(floor_price: Any = "150.00", **kwargs: Any) -> Factory:
    return lambda request: httpx.Response(200, json=tab_body(floor_price, **kwargs))


def login_ok(token: str = "tok123") -> Factory:
    body = {
        "isSuccess": True,
        "code": "0",
        "msg": "success",
        "data": {"userID": "u-1", "accessToken": token, "expiresIn": 86400},
    }
    return lambda request: httpx.Response(200, json=body)


def status(code: int) -> Factory:
    return lambda request: httpx.Response(code, json={"isSuccess": False, "code": str(code), "msg": "error"})


def malformed() -> Factory:
    return lambda request: httpx.Response(200, content=b"<html>not json</html>")


def connect_error() -> Factory:
    def _raise(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return _raise


def stored_keys(db_path: Path) -> List[str]:
    """Preference keys as they sit on disk, read through a separate connection."""
    conn = sqlite3.connect(str(db_path))
    try:
        return [row[0] for row in conn.execute("SELECT key FROM preferences ORDER BY key")]
    finally:
        conn.close()


class FakeMarketplace:
    """Routes requests by path; the last queued response for a path keeps repeating."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._routes: Dict[str, Deque[Factory]] = {ITEMS_PATH: deque(), LOGIN_PATH: deque()}
        self.http = httpx.AsyncClient(transport=httpx.MockTransport(self._handle))
        self.client = MarketplaceClient(BASE_URL, http_client=self.http)

    def push(self, path: str, *factories: Factory) -> "FakeMarketplace":
        self._routes[path].extend(factories)
        return self

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes[request.url.path]
        factory = queue.popleft() if len(queue) > 1 else queue[0]
        return factory(request)


class FakeNotifier:
    def __init__(self, granted: bool = True, fail_request: bool = False, fail_notify: bool = False) -> None:
        self.granted = granted
        self.fail_request = fail_request
        self.fail_notify = fail_notify
        self.permission_requests = 0
        self.sent: List[tuple] = []

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        if self.fail_request:
            raise RuntimeError("notification center unavailable")
        return self.granted

    async def notify(self, title: str, body: str) -> None:
        if self.fail_notify:
            raise RuntimeError("dbus is gone")
        self.sent.append((title, body))


class FakeFeedback:
    def __init__(self) -> None:
        self.warnings = 0

    def warning(self) -> None:
        self.warnings += 1


@pytest.fixture
def marketplace() -> FakeMarketplace:
    return FakeMarketplace()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def feedback() -> FakeFeedback:
    return FakeFeedback()


@pytest.fixture
def repo(tmp_path: Path):
    r = SQLiteRepository(tmp_path / DB_NAME)
    yield r
    r.close()


@pytest.fixture
def preferences(repo: SQLiteRepository) -> PreferenceStore:
    return PreferenceStore(repo)


@pytest.fixture
def make_poller(marketplace: FakeMarketplace, notifier: FakeNotifier, feedback: FakeFeedback):
    def _make(
        *,
        client: Any = None,
        notifier_: Optional[FakeNotifier] = None,
        mode: str = "every_poll",
        enabled: bool = True,
        minimum_price: str = "120",
        session: Optional[Session] = None,
        preferences: Optional[PreferenceStore] = None,
        repo: Optional[SQLiteRepository] = None,
        interval_seconds: float = 180.0,
        history_size: int = 24,
    ) -> FloorPricePoller:
        n = notifier_ or notifier
        alert = LowPriceAlert(n, feedback, mode=mode, project_id=PROJECT_ID, repo=repo)
        return FloorPricePoller(
            client or marketplace.client,
            tab_id=TAB_ID,
            project_id=PROJECT_ID,
            notifier=n,
            alert=alert,
            session=session,
            alert_settings=AlertSettings(enabled=enabled, minimum_price=minimum_price),
            preferences=preferences,
            interval_seconds=interval_seconds,
            history_size=history_size,
            default_project_name="国文通卷",
        )

    return _make

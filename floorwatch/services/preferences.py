"""Typed access to persisted user preferences.

Persisted: account, access token, minimum price, notifications flag.
Never persisted: the password.
"""

from __future__ import annotations

import os
from typing import Optional

from floorwatch.infrastructure.storage.sqlite_repository import SQLiteRepository
from floorwatch.models.price_models import AlertSettings, Session

ACCOUNT_KEY = "account"
ACCESS_TOKEN_KEY = "access_token"
MINIMUM_PRICE_KEY = "minimum_price"
NOTIFICATIONS_ENABLED_KEY = "notifications_enabled"

TOKEN_ENV_VAR = "FLOORWATCH_ACCESS_TOKEN"


def _to_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return str(raw).lower() in ("1", "true", "yes")


class PreferenceStore:
    def __init__(self, repo: SQLiteRepository) -> None:
        self._repo = repo

    def load_session(self) -> Session:
        token = os.getenv(TOKEN_ENV_VAR) or self._repo.get_preference(ACCESS_TOKEN_KEY, "") or ""
        return Session(
            account=self._repo.get_preference(ACCOUNT_KEY, "") or "",
            access_token=token,
        )

    def save_session(self, session: Session) -> None:
        self._repo.set_preference(ACCOUNT_KEY, session.account)
        if session.access_token:
            self._repo.set_preference(ACCESS_TOKEN_KEY, session.access_token)
        else:
            self._repo.delete_preference(ACCESS_TOKEN_KEY)

    def load_alert_settings(self, defaults: AlertSettings) -> AlertSettings:
        # An empty stored minimum is a user choice (alerting becomes a no-op), not a missing value
        minimum = self._repo.get_preference(MINIMUM_PRICE_KEY)
        return AlertSettings(
            enabled=_to_bool(self._repo.get_preference(NOTIFICATIONS_ENABLED_KEY), defaults.enabled),
            minimum_price=defaults.minimum_price if minimum is None else minimum,
        )

    def save_alert_settings(self, settings: AlertSettings) -> None:
        self._repo.set_preference(NOTIFICATIONS_ENABLED_KEY, "true" if settings.enabled else "false")
        self._repo.set_preference(MINIMUM_PRICE_KEY, settings.minimum_price)

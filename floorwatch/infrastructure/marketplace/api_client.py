"""Marketplace REST client using httpx.

Two calls:
- GET  /v1/nft/project/tab/items  -> floor price of one project in a catalog tab
- POST /v1/user/auth/login        -> bearer token

No retry, caching or rate limiting: every failure goes straight to the caller.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import ValidationError

from floorwatch.infrastructure.logging.logging import get_logger
from floorwatch.models.marketplace_models import (
    ClientInfo,
    LoginData,
    LoginRequest,
    LoginResponse,
    ProjectRecord,
    ProjectTabResponse,
)

ITEMS_PATH = "/v1/nft/project/tab/items"
LOGIN_PATH = "/v1/user/auth/login"

JSON_HEADERS = {
    "accept": "application/json",
    "content-type": "application/json",
}

_E = TypeVar("_E", ProjectTabResponse, LoginResponse)


class MarketplaceError(RuntimeError):
    pass


class BadURLError(MarketplaceError):
    pass


class BadServerResponse(MarketplaceError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(MarketplaceError):
    pass


class MarketplaceClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        dialing_code: str = "+86",
        device: str = "ios",
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._logger = get_logger("marketplace_client")
        try:
            url = httpx.URL(base_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise BadURLError(f"Invalid base URL: {base_url!r}") from e
        if not url.is_absolute_url:
            raise BadURLError(f"Base URL must be absolute: {base_url!r}")

        self._base_url = str(url).rstrip("/")
        self._dialing_code = dialing_code
        self._device = device
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def fetch_floor_price(
        self,
        tab_id: str,
        project_id: str,
        token: Optional[str] = None,
    ) -> Optional[ProjectRecord]:
        """Return the project record for ``project_id`` or None when the tab does not list it."""
        headers = dict(JSON_HEADERS)
        if token:
            headers["authorization"] = f"Bearer {token}"

        response = await self._send("GET", ITEMS_PATH, headers=headers, params={"tab_id": tab_id})
        envelope = self._decode(response, ProjectTabResponse)
        if envelope.data is None:
            raise DecodeError(f"Response carried no data: code={envelope.code} msg={envelope.msg}")

        for project in envelope.data.projects:
            if project.project_id == project_id:
                return project
        self._logger.info(
            "project_not_listed",
            tab_id=tab_id,
            project_id=project_id,
            listed=len(envelope.data.projects),
        )
        return None

    async def login(self, account: str, password: str) -> LoginData:
        payload = LoginRequest(
            account=account,
            password=password,
            dialing_code=self._dialing_code,
            captcha="",
            client_info=ClientInfo(device=self._device, device_id=str(uuid.uuid4()).upper()),
        )
        response = await self._send(
            "POST",
            LOGIN_PATH,
            headers=dict(JSON_HEADERS),
            json_body=payload.model_dump(by_alias=True),
        )
        envelope = self._decode(response, LoginResponse)
        if envelope.data is None:
            raise DecodeError(f"Response carried no data: code={envelope.code} msg={envelope.msg}")
        self._logger.info("login_ok", user_id=envelope.data.user_id, expires_in=envelope.data.expires_in)
        return envelope.data

    async def _send(
        self,
        method: str,
        path: str,
        *,
        headers: Dict[str, str],
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            response = await self._http.request(
                method,
                f"{self._base_url}{path}",
                headers=headers,
                params=params,
                json=json_body,
            )
        except httpx.HTTPError as e:
            self._logger.warning("request_failed", method=method, path=path, error=str(e))
            raise BadServerResponse(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            self._logger.warning("bad_status", method=method, path=path, status=response.status_code)
            raise BadServerResponse(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, model: Type[_E]) -> _E:
        try:
            return model.model_validate(response.json())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"Malformed JSON body: {e}") from e
        except ValidationError as e:
            raise DecodeError(f"Unexpected response shape: {e.error_count()} error(s)") from e

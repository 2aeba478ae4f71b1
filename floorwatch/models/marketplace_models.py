"""Marketplace wire models (JSON envelopes of the two endpoints)."""

from __future__ import annotations

import math
import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Plain decimal text only: no surrounding whitespace, no digit separators.
_NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_number(raw: Any) -> Optional[float]:
    """Decimal text -> finite float, or None when it does not parse."""
    if raw is None or not _NUMBER_RE.fullmatch(str(raw)):
        return None
    value = float(str(raw))
    return value if math.isfinite(value) else None


def parse_price(raw: Any) -> float:
    """Prices travel as strings; anything unparsable or non-finite reads as 0.0."""
    value = parse_number(raw)
    return 0.0 if value is None else value


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ProjectRecord(_Wire):
    project_id: str
    name: str
    img_url: str = ""
    floor_price: str
    last_trade_price: str

    @field_validator("floor_price", "last_trade_price", mode="before")
    @classmethod
    def _numbers_as_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def floor_price_value(self) -> float:
        return parse_price(self.floor_price)

    @property
    def last_trade_value(self) -> float:
        return parse_price(self.last_trade_price)


class ProjectTabData(_Wire):
    projects: List[ProjectRecord] = Field(default_factory=list)
    total: int = 0


class _Envelope(_Wire):
    is_success: bool = Field(alias="isSuccess")
    code: str
    msg: str = ""

    @field_validator("code", mode="before")
    @classmethod
    def _code_as_text(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class ProjectTabResponse(_Envelope):
    data: Optional[ProjectTabData] = None


class LoginData(_Wire):
    user_id: str = Field(alias="userID")
    access_token: str = Field(alias="accessToken")
    expires_in: int = Field(alias="expiresIn")

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id_as_text(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class LoginResponse(_Envelope):
    data: Optional[LoginData] = None


class ClientInfo(_Wire):
    device: str
    device_id: str


class LoginRequest(_Wire):
    account: str
    password: str
    dialing_code: str = Field(alias="dialingCode")
    captcha: str = ""
    client_info: ClientInfo = Field(alias="clientInfo")

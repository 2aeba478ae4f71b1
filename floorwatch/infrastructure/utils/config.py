"""Configuration management for floorwatch.

Rules:
- YAML provides defaults for non-secret config.
- Secrets (access token) never live in YAML; they come from the preference
  store or from the environment.
- We do NOT inject YAML into os.environ.
- The loaded config is passed explicitly to the components that need it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TAB_ID = "a8f56062-6a5e-4852-9ede-7377128d427e"
DEFAULT_PROJECT_ID = "51413706-fa41-4577-b530-075d57d551b5"


class MarketplaceConfig(BaseModel):
    """Marketplace REST API configuration."""

    base_url: str = Field(default="https://x.gwht.jscaee.cn", description="Marketplace base URL")
    tab_id: str = Field(default=DEFAULT_TAB_ID, description="Catalog (tab) identifier to list")
    project_id: str = Field(default=DEFAULT_PROJECT_ID, description="Project to watch inside the catalog")
    request_timeout_seconds: float = Field(default=10.0, gt=0, le=300)
    dialing_code: str = Field(default="+86")
    device: str = Field(default="ios", description="clientInfo.device sent on login")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = str(v).strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v

    @field_validator("tab_id", "project_id")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not str(v).strip():
            raise ValueError("identifier must not be empty")
        return str(v).strip()


class PollerConfig(BaseModel):
    interval_seconds: float = Field(default=180.0, ge=1, le=86400)
    history_size: int = Field(default=24, ge=2, le=1000)
    default_project_name: str = Field(default="国文通卷")


class AlertConfig(BaseModel):
    """Low price alert defaults. Values saved by the user in the preference store win."""

    enabled: bool = Field(default=True)
    minimum_price: str = Field(default="120", description="Kept as text, may fail to parse")
    mode: str = Field(default="every_poll", description="every_poll | on_cross")
    currency_symbol: str = Field(default="¥")

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        if str(v).lower() not in ("every_poll", "on_cross"):
            raise ValueError("alert mode must be 'every_poll' or 'on_cross'")
        return str(v).lower()


class NotificationsConfig(BaseModel):
    backend: str = Field(default="plyer", description="plyer | log | none")
    app_name: str = Field(default="floorwatch")
    timeout_seconds: int = Field(default=10, ge=1, le=120)
    bell: bool = Field(default=True, description="Ring the terminal bell as warning feedback")

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if str(v).lower() not in {"plyer", "log", "none"}:
            raise ValueError("notifications backend must be 'plyer', 'log' or 'none'")
        return str(v).lower()


class StorageConfig(BaseModel):
    path: str = Field(default="data/floorwatch.db")


class APIConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1024, le=65535)
    cors_origins: List[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])


class FloorWatchConfig(BaseSettings):
    """Main configuration class.

    YAML is parsed as base config, then selected env overrides are re-applied.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field(default="INFO")
    log_renderer: str = Field(default="json")

    marketplace: MarketplaceConfig = Field(default_factory=MarketplaceConfig)
    poller: PollerConfig = Field(default_factory=PollerConfig)
    alert: AlertConfig = Field(default_factory=AlertConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(v).upper() not in valid:
            raise ValueError(f"Log level must be one of: {sorted(valid)}")
        return str(v).upper()

    @field_validator("log_renderer")
    @classmethod
    def validate_log_renderer(cls, v: str) -> str:
        if str(v).lower() not in {"json", "console"}:
            raise ValueError("log_renderer must be 'json' or 'console'")
        return str(v).lower()

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "FloorWatchConfig":
        """Load configuration from YAML without polluting environment.

        Steps:
        1) Parse YAML -> base config dict
        2) Validate into model
        3) Apply env overrides on top
        """
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        try:
            base = cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Configuration validation error: {e}")

        return apply_env_overrides(base)


def apply_env_overrides(base: FloorWatchConfig) -> FloorWatchConfig:
    """Re-apply the env vars that must win over YAML, validating the result."""
    data = base.model_dump()

    if os.getenv("LOG_LEVEL"):
        data["log_level"] = os.getenv("LOG_LEVEL")

    if os.getenv("MARKETPLACE__BASE_URL"):
        data["marketplace"]["base_url"] = os.getenv("MARKETPLACE__BASE_URL")

    if os.getenv("ALERT__MINIMUM_PRICE") is not None:
        data["alert"]["minimum_price"] = os.getenv("ALERT__MINIMUM_PRICE")

    if os.getenv("POLLER__INTERVAL_SECONDS"):
        data["poller"]["interval_seconds"] = os.getenv("POLLER__INTERVAL_SECONDS")

    try:
        return FloorWatchConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Configuration validation error: {e}")


def load_config(config_path: Optional[Path] = None) -> FloorWatchConfig:
    """Load configuration from YAML + .env (env wins).

    Without a YAML file the built-in defaults are used.
    """
    load_dotenv(dotenv_path=Path(".env"))

    if config_path is None:
        possible_paths = [Path("config/default.yaml"), Path("config/config.yaml"), Path("config.yaml")]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break
        else:
            return apply_env_overrides(FloorWatchConfig.model_validate({}))

    return FloorWatchConfig.from_yaml(config_path)

"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class TwilioConfig(BaseSettings):
    account_sid: str = ""
    auth_token: str = ""
    api_base: str = "https://api.twilio.com/2010-04-01"
    timeout_seconds: float = 10.0

    model_config = {"env_prefix": "TWILIO_"}


class VapiConfig(BaseSettings):
    api_key: str = ""
    assistant_id: str = ""
    phone_number_id: str = ""
    api_base: str = "https://api.vapi.ai"
    timeout_seconds: float = 10.0

    model_config = {"env_prefix": "VAPI_"}


class DispatchDefaults(BaseSettings):
    """Fallbacks used when the system_config table has no value for a key."""

    response_timeout: int = 30
    auto_escalate: bool = True
    max_retries: int = 3
    include_attachments: bool = False


class SchedulerConfig(BaseSettings):
    enabled: bool = True
    sweep_interval_seconds: float = 60.0


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/dispatch.db"
    log_level: str = "INFO"
    twilio: TwilioConfig = Field(default_factory=TwilioConfig)
    vapi: VapiConfig = Field(default_factory=VapiConfig)
    dispatch: DispatchDefaults = Field(default_factory=DispatchDefaults)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    twilio = TwilioConfig(**y.get("twilio", {}))
    vapi = VapiConfig(**y.get("vapi", {}))
    dispatch = DispatchDefaults(**y.get("dispatch", {}))
    scheduler = SchedulerConfig(**y.get("scheduler", {}))
    db_url = y.get("database", {}).get("url", "sqlite+aiosqlite:///data/dispatch.db")
    return Settings(
        database_url=db_url,
        log_level=y.get("log_level", "INFO"),
        twilio=twilio,
        vapi=vapi,
        dispatch=dispatch,
        scheduler=scheduler,
    )

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class RuntimeEnv:
    api_key: str | None
    access_token: str | None
    remote_url: str | None


@dataclass
class AppConfig:
    local_db_path: str
    remote_url: str | None
    remote_timeout_seconds: float
    remote_read_retries: int
    export_directory: str
    owner_id: str | None
    migrate_on_sign_in: bool
    log_level: str
    log_consumers: list | None


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        local_db_path=str(config.get("LocalDbPath", ".chat_session_store/device.db")),
        remote_url=str(config.get("RemoteUrl", "")).strip() or None,
        remote_timeout_seconds=float(config.get("RemoteTimeoutSeconds", 30.0)),
        remote_read_retries=max(1, int(config.get("RemoteReadRetries", 3))),
        export_directory=str(config.get("ExportDirectory", ".")),
        owner_id=str(config.get("OwnerId", "")).strip() or None,
        migrate_on_sign_in=_to_bool(config.get("MigrateOnSignIn", True), default=True),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    return RuntimeEnv(
        api_key=os.environ.get("SESSION_STORE_API_KEY"),
        access_token=os.environ.get("SESSION_STORE_ACCESS_TOKEN"),
        remote_url=os.environ.get("SESSION_STORE_URL"),
    )

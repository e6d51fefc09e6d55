from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from chat_session_store.app_config import AppConfig, RuntimeEnv
from chat_session_store.engine import ReconciliationEngine
from chat_session_store.group_chats import RestGroupChatReader
from chat_session_store.logging_config import setup_logging
from chat_session_store.stores import (
    DeviceStorage,
    LocalStore,
    PostgrestClient,
    RestRemoteStore,
    create_http_client,
)


@dataclass
class AppRuntime:
    engine: ReconciliationEngine
    device_storage: DeviceStorage
    rest_client: PostgrestClient | None
    export_directory: Path
    migrate_on_sign_in: bool
    log_descriptions: list[str]

    async def close(self) -> None:
        if self.rest_client is not None:
            await self.rest_client.close()
        self.device_storage.close()


def _resolve_path(value: str) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> AppRuntime:
    db_path = _resolve_path(app.local_db_path)
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers, log_dir=db_path.parent)

    remote_url = env.remote_url or app.remote_url
    if remote_url and not env.api_key:
        raise ValueError("SESSION_STORE_API_KEY is required when a remote store URL is configured.")

    device_storage = DeviceStorage(str(db_path))
    local = LocalStore(device_storage)

    rest_client: PostgrestClient | None = None
    remote: RestRemoteStore | None = None
    group_chats: RestGroupChatReader | None = None
    if remote_url:
        rest_client = PostgrestClient(
            create_http_client(remote_url, env.api_key, timeout=app.remote_timeout_seconds)
        )
        rest_client.set_access_token(env.access_token)
        remote = RestRemoteStore(rest_client, read_attempts=app.remote_read_retries)
        group_chats = RestGroupChatReader(rest_client)
    else:
        logger.info("No remote store configured; sessions stay on this device")

    engine = ReconciliationEngine(local, remote, group_chats=group_chats)
    if app.owner_id and remote is not None:
        engine.sign_in(app.owner_id)

    return AppRuntime(
        engine=engine,
        device_storage=device_storage,
        rest_client=rest_client,
        export_directory=_resolve_path(app.export_directory),
        migrate_on_sign_in=app.migrate_on_sign_in,
        log_descriptions=log_descriptions,
    )

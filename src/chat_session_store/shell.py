from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path

from loguru import logger

from chat_session_store import codec
from chat_session_store.commands.router import CommandRouter
from chat_session_store.engine import ReconciliationEngine
from chat_session_store.errors import (
    AuthError,
    NetworkError,
    NoValidRecordsError,
    NotFoundError,
    SessionStoreError,
)
from chat_session_store.formatting import HistoryFormatter
from chat_session_store.models import PERSONAS, utc_now
from chat_session_store.stores import PostgrestClient

_HELP_LINES = [
    "/list [persona]           List chats, newest first (personas: default, girlie, pro)",
    "/groups                   List group chats you take part in",
    "/rename <id> <name>       Rename a chat",
    "/delete <id>              Delete a chat",
    "/export [path]            Export chat history to a JSON file",
    "/import <path>            Import chat history from a JSON file",
    "/migrate                  Move chats stored on this device to your account",
    "/login <owner-id> [token] Sign in",
    "/logout                   Sign out",
]


class HistoryShell:
    """Slash-command front end over the reconciliation engine."""

    def __init__(
        self,
        engine: ReconciliationEngine,
        *,
        export_directory: Path,
        rest_client: PostgrestClient | None = None,
        migrate_on_sign_in: bool = True,
        line_prefix: str = "history> ",
        output: Callable[[str], None] = print,
    ):
        self._engine = engine
        self._export_directory = export_directory
        self._rest_client = rest_client
        self._migrate_on_sign_in = migrate_on_sign_in
        self._line_prefix = line_prefix
        self._output = output
        self._formatter = HistoryFormatter(line_prefix=line_prefix)
        self._router = CommandRouter(
            on_help=self._handle_help,
            on_list=self._guarded(self._handle_list),
            on_groups=self._guarded(self._handle_groups),
            on_rename=self._guarded(self._handle_rename),
            on_delete=self._guarded(self._handle_delete),
            on_export=self._guarded(self._handle_export),
            on_import=self._guarded(self._handle_import),
            on_migrate=self._guarded(self._handle_migrate),
            on_login=self._guarded(self._handle_login),
            on_logout=self._guarded(self._handle_logout),
            on_unknown=self._handle_unknown,
        )

    async def handle(self, line: str) -> bool:
        return await self._router.try_handle(line)

    def _print(self, text: str) -> None:
        self._output(f"{self._line_prefix}{text}")

    def _guarded(self, handler: Callable[[str], Awaitable[None]]) -> Callable[[str], Awaitable[None]]:
        async def run(command: str) -> None:
            try:
                await handler(command)
            except AuthError as ex:
                logger.error(f"{command}: {ex}")
                if ex.migrated:
                    self._output(self._formatter.migration_feedback(ex.migrated))
                self._print("Your session has expired. Please sign in again.")
            except NetworkError as ex:
                logger.error(f"{command}: {ex}")
                self._print("Could not reach the chat history service. Please try again.")
            except NotFoundError as ex:
                self._print(f"No chat with id {ex.session_id}.")
            except NoValidRecordsError as ex:
                logger.error(f"{command}: {ex}")
                self._print("Failed to import chat history. Please check the file format.")
            except SessionStoreError as ex:
                logger.error(f"{command}: {ex}")
                self._print(f"Operation failed: {ex}")

        return run

    async def _handle_help(self) -> None:
        for line in _HELP_LINES:
            self._print(line)

    async def _handle_list(self, command: str) -> None:
        parts = command.split()
        sessions = await self._engine.load()
        if len(parts) > 1:
            persona = parts[1].lower()
            sessions = self._engine.sessions_for_persona(sessions, persona)
            heading = PERSONAS.get(persona, persona)
        else:
            heading = "Chats" if self._engine.is_authenticated else "Chats on this device"
        for line in self._formatter.format_session_list(sessions, heading=heading):
            self._output(line)

    async def _handle_groups(self, command: str) -> None:
        if not self._engine.is_authenticated:
            self._print("Sign in to see group chats.")
            return
        chats = await self._engine.list_group_chats()
        if not chats:
            self._print("No group chats.")
            return
        for chat in chats:
            self._output(self._formatter.format_group_chat_entry(chat))

    async def _handle_rename(self, command: str) -> None:
        parts = command.split(maxsplit=2)
        if len(parts) < 2:
            self._print("Usage: /rename <id> <name>")
            return
        new_name = parts[2] if len(parts) > 2 else ""
        renamed = await self._engine.rename(parts[1], new_name)
        self._print(f"Renamed to {renamed.display_name}.")

    async def _handle_delete(self, command: str) -> None:
        parts = command.split()
        if len(parts) != 2:
            self._print("Usage: /delete <id>")
            return
        await self._engine.delete(parts[1])
        self._print("Chat deleted.")

    async def _handle_export(self, command: str) -> None:
        parts = command.split(maxsplit=1)
        if len(parts) > 1:
            target = Path(parts[1].strip())
        else:
            target = self._export_directory / codec.export_filename(utc_now())
        document = await self._engine.export_json()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(document, encoding="utf-8")
        except OSError as ex:
            logger.error(f"{command}: {ex}")
            self._print(f"Could not write {target}: {ex.strerror or ex}")
            return
        self._print(f"Chat history exported successfully to {target}")

    async def _handle_import(self, command: str) -> None:
        parts = command.split(maxsplit=1)
        if len(parts) < 2:
            self._print("Usage: /import <path>")
            return
        source = Path(parts[1].strip())
        try:
            content = source.read_text(encoding="utf-8")
        except OSError as ex:
            self._print(f"Could not read {source}: {ex.strerror or ex}")
            return
        count = await self._engine.import_document(content)
        self._output(self._formatter.import_feedback(count))

    async def _handle_migrate(self, command: str) -> None:
        if not self._engine.is_authenticated:
            self._print("Sign in before migrating chats.")
            return
        count = await self._engine.migrate_to_remote()
        self._output(self._formatter.migration_feedback(count))

    async def _handle_login(self, command: str) -> None:
        parts = command.split()
        if len(parts) < 2:
            self._print("Usage: /login <owner-id> [token]")
            return
        if self._rest_client is not None and len(parts) > 2:
            self._rest_client.set_access_token(parts[2])
        try:
            self._engine.sign_in(parts[1])
        except ValueError as ex:
            self._print(str(ex))
            return
        self._print(f"Signed in as {parts[1]}.")
        if self._migrate_on_sign_in and self._engine.has_local_sessions():
            count = await self._engine.migrate_to_remote()
            self._output(self._formatter.migration_feedback(count))

    async def _handle_logout(self, command: str) -> None:
        if self._rest_client is not None:
            self._rest_client.set_access_token(None)
        self._engine.sign_out()
        self._print("Signed out.")

    def _handle_unknown(self, command: str) -> None:
        self._print(f"Unknown command: {command}. Type /help for commands.")

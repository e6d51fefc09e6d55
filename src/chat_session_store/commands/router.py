from __future__ import annotations

from collections.abc import Awaitable, Callable

Handler = Callable[[str], Awaitable[None]]


class CommandRouter:
    def __init__(
        self,
        *,
        on_help: Callable[[], Awaitable[None]],
        on_list: Handler,
        on_groups: Handler,
        on_rename: Handler,
        on_delete: Handler,
        on_export: Handler,
        on_import: Handler,
        on_migrate: Handler,
        on_login: Handler,
        on_logout: Handler,
        on_unknown: Callable[[str], None],
    ) -> None:
        self._on_help = on_help
        self._handlers: dict[str, Handler] = {
            "/list": on_list,
            "/groups": on_groups,
            "/rename": on_rename,
            "/delete": on_delete,
            "/export": on_export,
            "/import": on_import,
            "/migrate": on_migrate,
            "/login": on_login,
            "/logout": on_logout,
        }
        self._on_unknown = on_unknown

    async def try_handle(self, user_message: str) -> bool:
        trimmed = user_message.strip()
        if not trimmed.startswith("/"):
            return False

        if trimmed == "/help":
            await self._on_help()
            return True

        command = trimmed.split(maxsplit=1)[0]
        handler = self._handlers.get(command)
        if handler is None:
            self._on_unknown(trimmed)
            return True

        await handler(trimmed)
        return True

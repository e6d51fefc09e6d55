from __future__ import annotations

from chat_session_store.models import PERSONAS, GroupChatSummary, SessionRecord


class HistoryFormatter:
    def __init__(self, *, line_prefix: str, short_id_len: int = 8):
        self._line_prefix = line_prefix
        self._short_id_len = short_id_len

    def short_id(self, value: str) -> str:
        if len(value) <= self._short_id_len:
            return value
        return value[: self._short_id_len]

    def persona_label(self, persona: str) -> str:
        return PERSONAS.get(persona, persona)

    def format_session_entry(self, session: SessionRecord) -> str:
        return (
            f"{self._line_prefix}- {session.display_name} [{self.short_id(session.id)}] (id={session.id}) "
            f"({self.persona_label(session.persona)}, messages={len(session.messages)}, "
            f"updated={session.last_modified})"
        )

    def format_group_chat_entry(self, chat: GroupChatSummary) -> str:
        return (
            f"{self._line_prefix}- {chat.name} [{self.short_id(chat.id)}] "
            f"{chat.participant_count} participants - by {chat.owner_nickname} - {chat.updated_at}"
        )

    def format_session_list(self, sessions: list[SessionRecord], *, heading: str) -> list[str]:
        if not sessions:
            return [f"{self._line_prefix}{heading}: no chats yet."]
        lines = [f"{self._line_prefix}{heading} ({len(sessions)}):"]
        lines.extend(self.format_session_entry(session) for session in sessions)
        return lines

    def migration_feedback(self, count: int) -> str:
        if count > 0:
            return f"{self._line_prefix}Migrated {count} chat(s) to cloud!"
        return f"{self._line_prefix}No local chats to migrate."

    def import_feedback(self, count: int) -> str:
        if count > 0:
            return f"{self._line_prefix}Successfully imported {count} chat session(s)!"
        return f"{self._line_prefix}Import finished; all chats were already up to date."

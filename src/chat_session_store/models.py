from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

LOCAL_SCOPE = "local"

PERSONAS: dict[str, str] = {
    "default": "TimeMachine Air",
    "girlie": "TimeMachine Girlie",
    "pro": "TimeMachine PRO",
}
DEFAULT_PERSONA = "default"
DEFAULT_HEAT_LEVEL = 2


def utc_now() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp or date. Naive values are read as UTC."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid timestamp: {value!r}")
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def default_session_name(created_at: str) -> str:
    return f"Chat {created_at[:16].replace('T', ' ')}"


def _require_text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Missing or empty field: {key}")
    return value


@dataclass(frozen=True)
class SessionRecord:
    id: str
    name: str
    persona: str
    created_at: str
    last_modified: str
    owner_scope: str = LOCAL_SCOPE
    messages: list[dict[str, Any]] = field(default_factory=list)
    heat_level: int | None = None

    @property
    def is_local(self) -> bool:
        return self.owner_scope == LOCAL_SCOPE

    @property
    def display_name(self) -> str:
        if self.name.strip():
            return self.name.strip()
        return default_session_name(self.created_at)

    @property
    def last_modified_at(self) -> datetime:
        return parse_timestamp(self.last_modified)

    @property
    def created_at_dt(self) -> datetime:
        return parse_timestamp(self.created_at)

    def is_newer_than(self, other: SessionRecord) -> bool:
        return self.last_modified_at > other.last_modified_at

    def with_scope(self, owner_scope: str) -> SessionRecord:
        return replace(self, owner_scope=owner_scope)

    def touched(self, now: str) -> SessionRecord:
        # last_modified never drops below created_at, even with a skewed clock
        if parse_timestamp(now) < self.created_at_dt:
            now = self.created_at
        return replace(self, last_modified=now)

    def renamed(self, name: str, now: str) -> SessionRecord:
        cleaned = name.strip() or default_session_name(self.created_at)
        return replace(self, name=cleaned).touched(now)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "persona": self.persona,
            "messages": self.messages,
            "createdAt": self.created_at,
            "lastModified": self.last_modified,
        }
        if self.heat_level is not None:
            payload["heat_level"] = self.heat_level
        return payload

    @classmethod
    def from_dict(cls, payload: Any, owner_scope: str = LOCAL_SCOPE) -> SessionRecord:
        """Build a record from its wire form (camelCase keys plus ``heat_level``).

        Raises ValueError when a required field is missing or malformed.
        Unknown keys are ignored.
        """
        if not isinstance(payload, dict):
            raise ValueError("Session entry is not an object")

        session_id = _require_text(payload, "id")
        name = _require_text(payload, "name")
        persona = _require_text(payload, "persona")
        created_at = _require_text(payload, "createdAt")
        last_modified = _require_text(payload, "lastModified")
        if parse_timestamp(last_modified) < parse_timestamp(created_at):
            raise ValueError(f"lastModified precedes createdAt for session {session_id}")

        messages = payload.get("messages")
        if not isinstance(messages, list):
            raise ValueError(f"Messages missing or not a list for session {session_id}")
        if not all(isinstance(message, dict) for message in messages):
            raise ValueError(f"Malformed message entry in session {session_id}")

        heat_level = payload.get("heat_level", payload.get("heatLevel"))
        if not isinstance(heat_level, int) or isinstance(heat_level, bool):
            heat_level = None

        return cls(
            id=session_id,
            name=name,
            persona=persona,
            created_at=created_at,
            last_modified=last_modified,
            owner_scope=owner_scope,
            messages=messages,
            heat_level=heat_level,
        )


@dataclass(frozen=True)
class GroupChatSummary:
    id: str
    name: str
    persona: str
    owner_nickname: str
    participant_count: int
    updated_at: str


def has_content(message: dict[str, Any]) -> bool:
    content = message.get("content")
    if isinstance(content, str):
        return bool(content.strip())
    return bool(content)


def sort_most_recent_first(records: list[SessionRecord]) -> list[SessionRecord]:
    return sorted(records, key=lambda record: record.last_modified_at, reverse=True)

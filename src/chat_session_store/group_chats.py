from __future__ import annotations

from typing import Protocol, runtime_checkable

from loguru import logger

from chat_session_store.errors import NetworkError
from chat_session_store.models import GroupChatSummary
from chat_session_store.stores.rest_client import PostgrestClient


@runtime_checkable
class GroupChatReader(Protocol):
    async def list_for_user(self, owner_id: str) -> list[GroupChatSummary]:
        """Return active group chats the user participates in, newest first."""
        ...


class RestGroupChatReader:
    def __init__(self, client: PostgrestClient):
        self._client = client

    async def list_for_user(self, owner_id: str) -> list[GroupChatSummary]:
        response = await self._client.request(
            "GET",
            "/group_chat_participants",
            params={"select": "group_chat_id", "user_id": f"eq.{owner_id}"},
        )
        participations = response.json()
        if not isinstance(participations, list) or not participations:
            return []

        chat_ids = sorted({str(p["group_chat_id"]) for p in participations if isinstance(p, dict) and p.get("group_chat_id")})
        if not chat_ids:
            return []

        response = await self._client.request(
            "GET",
            "/group_chats",
            params={
                "select": "id,name,persona,owner_nickname,updated_at,group_chat_participants(count)",
                "id": f"in.({','.join(chat_ids)})",
                "is_active": "eq.true",
                "order": "updated_at.desc",
            },
        )
        chats = response.json()
        if not isinstance(chats, list):
            raise NetworkError("Remote store returned a non-list group chat payload")

        summaries = [self._to_summary(chat) for chat in chats if isinstance(chat, dict)]
        logger.debug(f"Fetched {len(summaries)} group chat(s) for {owner_id}")
        return summaries

    def _to_summary(self, chat: dict) -> GroupChatSummary:
        counts = chat.get("group_chat_participants") or []
        participant_count = 0
        if counts and isinstance(counts[0], dict):
            participant_count = int(counts[0].get("count", 0))
        return GroupChatSummary(
            id=str(chat.get("id", "")),
            name=str(chat.get("name", "")),
            persona=str(chat.get("persona", "")),
            owner_nickname=str(chat.get("owner_nickname", "")),
            participant_count=participant_count,
            updated_at=str(chat.get("updated_at", "")),
        )

from __future__ import annotations

import json

from loguru import logger

from chat_session_store.errors import CorruptionError
from chat_session_store.models import LOCAL_SCOPE, SessionRecord
from chat_session_store.stores.device_storage import DeviceStorage

LOCAL_SESSIONS_KEY = "chatSessions"


class LocalStore:
    """Anonymous-scope sessions, kept as one JSON array under a fixed key."""

    def __init__(self, storage: DeviceStorage, *, key: str = LOCAL_SESSIONS_KEY):
        self._storage = storage
        self._key = key

    def load(self) -> list[SessionRecord]:
        raw = self._storage.get_item(self._key)
        if raw is None:
            return []
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as ex:
            raise CorruptionError(f"Local sessions are not valid JSON: {ex}") from ex
        if not isinstance(entries, list):
            raise CorruptionError("Local sessions are not stored as an array")

        records: list[SessionRecord] = []
        for entry in entries:
            try:
                records.append(SessionRecord.from_dict(entry, LOCAL_SCOPE))
            except ValueError as ex:
                raise CorruptionError(f"Local session entry is malformed: {ex}") from ex
        return records

    def replace_all(self, records: list[SessionRecord]) -> None:
        payload = json.dumps([record.to_dict() for record in records], ensure_ascii=True)
        self._storage.set_item(self._key, payload)
        logger.debug(f"Local store now holds {len(records)} session(s)")

    def save(self, record: SessionRecord) -> None:
        records = self.load()
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = record
                break
        else:
            records.append(record)
        self.replace_all(records)

    def delete_one(self, session_id: str) -> None:
        records = self.load()
        remaining = [record for record in records if record.id != session_id]
        if len(remaining) == len(records):
            return
        self.replace_all(remaining)

    def clear(self) -> None:
        self._storage.remove_item(self._key)

from __future__ import annotations

from collections import defaultdict

from chat_session_store.errors import ConflictError, NotFoundError, SessionStoreError
from chat_session_store.models import SessionRecord, utc_now


class InMemoryRemoteStore:
    """In-process RemoteStore with the same error semantics as the REST store.

    Failures can be scripted per operation with ``fail_next`` to simulate
    network or auth trouble. Session ids are global, as they are in the
    ``chat_sessions`` table where ``id`` is the primary key: creating an id
    that any owner already holds raises ConflictError.
    """

    def __init__(self) -> None:
        self._records: dict[str, SessionRecord] = {}
        self._failures: dict[str, list[SessionStoreError]] = defaultdict(list)
        self.calls: list[tuple[str, str]] = []

    def fail_next(self, operation: str, error: SessionStoreError, *, times: int = 1) -> None:
        self._failures[operation].extend([error] * times)

    def seed(self, record: SessionRecord) -> None:
        self._records[record.id] = record

    def all_records(self) -> list[SessionRecord]:
        return list(self._records.values())

    def _check(self, operation: str, key: str) -> None:
        self.calls.append((operation, key))
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    async def list_by_owner(self, owner_id: str) -> list[SessionRecord]:
        self._check("list_by_owner", owner_id)
        return [record for record in self._records.values() if record.owner_scope == owner_id]

    async def create(self, record: SessionRecord, owner_id: str) -> None:
        self._check("create", record.id)
        if record.id in self._records:
            raise ConflictError(record.id)
        self._records[record.id] = record.with_scope(owner_id)

    async def upsert(self, record: SessionRecord, owner_id: str) -> None:
        self._check("upsert", record.id)
        self._records[record.id] = record.with_scope(owner_id)

    async def rename(self, session_id: str, new_name: str) -> SessionRecord:
        self._check("rename", session_id)
        existing = self._records.get(session_id)
        if existing is None:
            raise NotFoundError(session_id)
        renamed = existing.renamed(new_name, utc_now())
        self._records[session_id] = renamed
        return renamed

    async def delete(self, session_id: str) -> None:
        self._check("delete", session_id)
        self._records.pop(session_id, None)

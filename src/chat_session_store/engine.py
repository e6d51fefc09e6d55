from __future__ import annotations

from collections.abc import Callable
from typing import Any
from uuid import uuid4

from loguru import logger

from chat_session_store import codec
from chat_session_store.errors import (
    AuthError,
    ConflictError,
    CorruptionError,
    NetworkError,
    NotFoundError,
    RemoteStoreError,
)
from chat_session_store.group_chats import GroupChatReader
from chat_session_store.models import (
    DEFAULT_PERSONA,
    LOCAL_SCOPE,
    GroupChatSummary,
    SessionRecord,
    default_session_name,
    has_content,
    sort_most_recent_first,
    utc_now,
)
from chat_session_store.stores.local_store import LocalStore
from chat_session_store.stores.remote_store import RemoteStore


class ReconciliationEngine:
    """Routes session operations to the store that currently owns them.

    Anonymous (no owner id): every operation reads and writes the LocalStore.
    Authenticated: every operation reads and writes the RemoteStore. Local
    records reach the remote store only through ``migrate_to_remote``.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore | None = None,
        *,
        group_chats: GroupChatReader | None = None,
        owner_id: str | None = None,
        clock: Callable[[], str] = utc_now,
    ):
        self._local = local
        self._remote = remote
        self._group_chats = group_chats
        self._owner_id = owner_id
        self._clock = clock

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    @property
    def is_authenticated(self) -> bool:
        return self._owner_id is not None

    @property
    def scope(self) -> str:
        return self._owner_id or LOCAL_SCOPE

    def sign_in(self, owner_id: str) -> None:
        if self._remote is None:
            raise ValueError("No remote store is configured; cannot sign in")
        if not owner_id.strip():
            raise ValueError("Owner id must not be empty")
        self._owner_id = owner_id.strip()
        logger.info(f"Signed in as {self._owner_id}")

    def sign_out(self) -> None:
        self._owner_id = None
        logger.info("Signed out; using local device storage")

    def _remote_store(self) -> RemoteStore:
        if self._remote is None:
            raise ValueError("No remote store is configured")
        return self._remote

    def _load_local(self) -> list[SessionRecord]:
        try:
            return self._local.load()
        except CorruptionError as ex:
            logger.warning(f"Local sessions unreadable, treating as empty: {ex}")
            return []

    def _delete_local(self, session_id: str) -> None:
        try:
            self._local.delete_one(session_id)
        except CorruptionError as ex:
            logger.warning(f"Local sessions unreadable, nothing to delete for {session_id}: {ex}")

    def _save_local(self, record: SessionRecord) -> None:
        try:
            self._local.save(record)
        except CorruptionError as ex:
            logger.warning(f"Local sessions unreadable, starting over with session {record.id}: {ex}")
            self._local.replace_all([record])

    async def _load_current(self) -> list[SessionRecord]:
        if self._owner_id is not None:
            return await self._remote_store().list_by_owner(self._owner_id)
        return self._load_local()

    # -- load --

    async def load(self) -> list[SessionRecord]:
        return sort_most_recent_first(await self._load_current())

    def has_local_sessions(self) -> bool:
        return bool(self._load_local())

    # -- migrate --

    async def migrate_to_remote(self) -> int:
        """Move every local session to the signed-in owner's remote store.

        Returns how many sessions were created remotely in this pass. A
        session the remote already holds counts as migrated and is removed
        locally without being counted. A network failure ends the pass early;
        untouched sessions stay local for the next invocation. A session the
        remote rejects outright stays local and the pass moves on. An
        AuthError is re-raised with ``migrated`` set to the count so far.
        """
        if self._owner_id is None:
            logger.info("Migration skipped: no signed-in user")
            return 0

        remote = self._remote_store()
        pending = self._load_local()
        if not pending:
            return 0

        migrated = 0
        for record in pending:
            try:
                await remote.create(record.with_scope(self._owner_id), self._owner_id)
                migrated += 1
            except ConflictError:
                # TODO: compare last_modified with the remote copy before discarding the local one
                logger.info(f"Session {record.id} already present remotely; removing local copy")
            except NetworkError as ex:
                logger.warning(f"Migration interrupted after {migrated} session(s), remainder stays local: {ex}")
                break
            except AuthError as ex:
                logger.warning(f"Migration stopped by auth failure after {migrated} session(s): {ex}")
                ex.migrated = migrated
                raise
            except RemoteStoreError as ex:
                logger.warning(f"Session {record.id} rejected by remote store, keeping it local: {ex}")
                continue
            self._delete_local(record.id)

        logger.info(f"Migrated {migrated} session(s) to {self._owner_id}")
        return migrated

    # -- rename / delete --

    async def rename(self, session_id: str, new_name: str) -> SessionRecord:
        if self._owner_id is not None:
            remote = self._remote_store()
            name = new_name.strip()
            if not name:
                existing = await self._find_remote(session_id)
                name = default_session_name(existing.created_at)
            return await remote.rename(session_id, name)

        records = self._load_local()
        for index, record in enumerate(records):
            if record.id == session_id:
                renamed = record.renamed(new_name, self._clock())
                records[index] = renamed
                self._local.replace_all(records)
                return renamed
        raise NotFoundError(session_id)

    async def _find_remote(self, session_id: str) -> SessionRecord:
        for record in await self._remote_store().list_by_owner(self.scope):
            if record.id == session_id:
                return record
        raise NotFoundError(session_id)

    async def delete(self, session_id: str) -> None:
        if self._owner_id is not None:
            await self._remote_store().delete(session_id)
        else:
            self._delete_local(session_id)
        logger.info(f"Deleted session {session_id} from {self.scope} store")

    # -- save / create --

    def new_session(self, persona: str = DEFAULT_PERSONA, name: str = "") -> SessionRecord:
        now = self._clock()
        return SessionRecord(
            id=str(uuid4()),
            name=name.strip() or default_session_name(now),
            persona=persona,
            created_at=now,
            last_modified=now,
            owner_scope=self.scope,
        )

    async def save_session(self, record: SessionRecord) -> SessionRecord | None:
        """Persist a session after a message exchange.

        Blank messages (streaming placeholders) are dropped; a session left
        with no messages is not saved and None is returned.
        """
        messages = [message for message in record.messages if has_content(message)]
        if not messages:
            logger.debug(f"Session {record.id} has no content to save")
            return None

        to_save = SessionRecord(
            id=record.id,
            name=record.display_name,
            persona=record.persona,
            created_at=record.created_at,
            last_modified=record.last_modified,
            owner_scope=self.scope,
            messages=messages,
            heat_level=record.heat_level,
        ).touched(self._clock())

        if self._owner_id is not None:
            await self._remote_store().upsert(to_save, self._owner_id)
        else:
            self._save_local(to_save)
        return to_save

    # -- export / import --

    async def export_document(self) -> dict[str, Any]:
        return codec.encode(await self.load(), exported_at=self._clock())

    async def export_json(self) -> str:
        return codec.dumps(await self.export_document())

    async def import_document(self, document: dict[str, Any] | str | bytes) -> int:
        """Merge an export document into the current scope.

        Per session id the record with the strictly newer lastModified wins;
        on a tie the existing record is kept. Returns the number of sessions
        added or replaced.
        """
        candidates = codec.decode(document, self.scope).records
        existing = await self._load_current()

        merged: dict[str, SessionRecord] = {record.id: record for record in existing}
        changed: dict[str, SessionRecord] = {}
        for candidate in candidates:
            current = merged.get(candidate.id)
            if current is None or candidate.is_newer_than(current):
                merged[candidate.id] = candidate
                changed[candidate.id] = candidate

        if not changed:
            logger.info("Import contained nothing newer than the current sessions")
            return 0

        if self._owner_id is not None:
            remote = self._remote_store()
            for record in changed.values():
                await remote.upsert(record, self._owner_id)
        else:
            self._local.replace_all(list(merged.values()))

        logger.info(f"Imported {len(changed)} session(s) into {self.scope} store")
        return len(changed)

    # -- grouping --

    @staticmethod
    def sessions_for_persona(sessions: list[SessionRecord], persona: str) -> list[SessionRecord]:
        return [session for session in sessions if session.persona == persona]

    async def list_group_chats(self) -> list[GroupChatSummary]:
        if self._owner_id is None or self._group_chats is None:
            return []
        return await self._group_chats.list_for_user(self._owner_id)

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from chat_session_store.errors import NetworkError, NotFoundError
from chat_session_store.models import DEFAULT_HEAT_LEVEL, SessionRecord, utc_now
from chat_session_store.stores.rest_client import PostgrestClient, parse_content_range_total

SESSIONS_TABLE = "/chat_sessions"
LIST_PAGE_SIZE = 1000


@runtime_checkable
class RemoteStore(Protocol):
    async def list_by_owner(self, owner_id: str) -> list[SessionRecord]:
        """Return every session for the owner. Raises rather than return a partial list."""
        ...

    async def create(self, record: SessionRecord, owner_id: str) -> None:
        """Insert a new session. Raises ConflictError if the id already exists.

        Ids are unique across owners, so the conflict also fires for an id
        another owner holds.
        """
        ...

    async def upsert(self, record: SessionRecord, owner_id: str) -> None: ...

    async def rename(self, session_id: str, new_name: str) -> SessionRecord:
        """Rename and bump lastModified. Raises NotFoundError if absent."""
        ...

    async def delete(self, session_id: str) -> None:
        """Remove a session. Deleting an absent id is a no-op."""
        ...


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = str(exc) if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.1f}s (attempt {attempt})...")


def record_to_row(record: SessionRecord, owner_id: str) -> dict[str, Any]:
    return {
        "id": record.id,
        "user_id": owner_id,
        "name": record.name,
        "persona": record.persona,
        "heat_level": record.heat_level if record.heat_level is not None else DEFAULT_HEAT_LEVEL,
        "messages": record.messages,
        "created_at": record.created_at,
        "updated_at": record.last_modified,
    }


def row_to_record(row: Any, owner_id: str | None = None) -> SessionRecord:
    if not isinstance(row, dict):
        raise ValueError("Remote row is not an object")
    return SessionRecord.from_dict(
        {
            "id": row.get("id"),
            "name": row.get("name"),
            "persona": row.get("persona"),
            "messages": row.get("messages") if row.get("messages") is not None else [],
            "createdAt": row.get("created_at"),
            "lastModified": row.get("updated_at"),
            "heat_level": row.get("heat_level"),
        },
        owner_id or str(row.get("user_id") or ""),
    )


class RestRemoteStore:
    """RemoteStore backed by a PostgREST ``chat_sessions`` table."""

    def __init__(
        self,
        client: PostgrestClient,
        *,
        read_attempts: int = 3,
        backoff_seconds: float = 0.5,
        page_size: int = LIST_PAGE_SIZE,
    ):
        self._client = client
        self._page_size = max(1, page_size)
        self._read_attempts = max(1, read_attempts)
        self._backoff_seconds = max(0.0, backoff_seconds)

    async def list_by_owner(self, owner_id: str) -> list[SessionRecord]:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(NetworkError),
            wait=wait_exponential(multiplier=self._backoff_seconds, max=8),
            stop=stop_after_attempt(self._read_attempts),
            before_sleep=_on_retry,
            reraise=True,
        ):
            with attempt:
                return await self._fetch_owner_rows(owner_id)
        return []

    async def _fetch_owner_rows(self, owner_id: str) -> list[SessionRecord]:
        # responses are capped at the server max-rows; pages must add up to the reported total
        records: list[SessionRecord] = []
        total: int | None = None
        while True:
            start = len(records)
            response = await self._client.request(
                "GET",
                SESSIONS_TABLE,
                params={"select": "*", "user_id": f"eq.{owner_id}", "order": "updated_at.desc,id.asc"},
                headers={
                    "Prefer": "count=exact",
                    "Range-Unit": "items",
                    "Range": f"{start}-{start + self._page_size - 1}",
                },
            )
            rows = response.json()
            if not isinstance(rows, list):
                raise NetworkError("Remote store returned a non-list session payload")

            page_total = parse_content_range_total(response.headers.get("Content-Range"))
            if total is None:
                total = page_total
            elif page_total is not None and page_total != total:
                raise NetworkError(f"Session list changed while paging: {total} became {page_total}")

            for row in rows:
                try:
                    records.append(row_to_record(row, owner_id))
                except ValueError as ex:
                    raise NetworkError(f"Remote store returned a malformed session: {ex}") from ex

            if not rows:
                break
            if total is None and len(rows) < self._page_size:
                break
            if total is not None and len(records) >= total:
                break

        if total is not None and total != len(records):
            raise NetworkError(f"Partial session list: received {len(records)} of {total}")
        logger.debug(f"Fetched {len(records)} remote session(s) for {owner_id}")
        return records

    async def create(self, record: SessionRecord, owner_id: str) -> None:
        await self._client.request(
            "POST",
            SESSIONS_TABLE,
            json=record_to_row(record, owner_id),
            headers={"Prefer": "return=minimal"},
            session_id=record.id,
        )

    async def upsert(self, record: SessionRecord, owner_id: str) -> None:
        await self._client.request(
            "POST",
            SESSIONS_TABLE,
            params={"on_conflict": "id"},
            json=record_to_row(record, owner_id),
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            session_id=record.id,
        )

    async def rename(self, session_id: str, new_name: str) -> SessionRecord:
        response = await self._client.request(
            "PATCH",
            SESSIONS_TABLE,
            params={"id": f"eq.{session_id}"},
            json={"name": new_name, "updated_at": utc_now()},
            headers={"Prefer": "return=representation"},
            session_id=session_id,
        )
        rows = response.json()
        if not isinstance(rows, list) or not rows:
            raise NotFoundError(session_id)
        try:
            return row_to_record(rows[0])
        except ValueError as ex:
            raise NetworkError(f"Remote store returned a malformed session: {ex}") from ex

    async def delete(self, session_id: str) -> None:
        try:
            await self._client.request(
                "DELETE",
                SESSIONS_TABLE,
                params={"id": f"eq.{session_id}"},
                headers={"Prefer": "return=minimal"},
                session_id=session_id,
            )
        except NotFoundError:
            logger.debug(f"Remote delete of absent session {session_id} ignored")

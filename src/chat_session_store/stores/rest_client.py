from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from chat_session_store.errors import (
    AuthError,
    ConflictError,
    NetworkError,
    NotFoundError,
    RemoteStoreError,
)

_DEFAULT_TIMEOUT_SECONDS = 30.0
_UNIQUE_VIOLATION = "23505"
_TRANSIENT_STATUS_CODES = {408, 425, 429}


def create_http_client(
    base_url: str,
    api_key: str,
    *,
    timeout: float = _DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers={
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        },
        timeout=timeout,
        transport=transport,
    )


def parse_content_range_total(header: str | None) -> int | None:
    """Return the total from a ``Content-Range: 0-24/25`` header, if known."""
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        return None
    return int(total)


class PostgrestClient:
    """Thin PostgREST transport that maps HTTP failures onto the store error taxonomy."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    def set_access_token(self, access_token: str | None) -> None:
        api_key = self._client.headers.get("apikey", "")
        self._client.headers["Authorization"] = f"Bearer {access_token or api_key}"

    async def close(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        session_id: str | None = None,
    ) -> httpx.Response:
        logger.debug(f"{method} {path} params={params}")
        try:
            response = await self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.TimeoutException as ex:
            raise NetworkError(f"Timed out calling remote store: {method} {path}") from ex
        except httpx.TransportError as ex:
            raise NetworkError(f"Could not reach remote store: {ex}") from ex

        if response.status_code >= 400:
            self._raise_for_status(response, session_id)
        return response

    def _raise_for_status(self, response: httpx.Response, session_id: str | None) -> None:
        status = response.status_code
        code, message = self._error_details(response)
        detail = f"HTTP {status} from remote store" + (f": {message}" if message else "")

        if status in (401, 403):
            raise AuthError(detail)
        if status == 409 or code == _UNIQUE_VIOLATION:
            raise ConflictError(session_id or "", detail)
        if status == 404:
            raise NotFoundError(session_id or "", detail)
        if status >= 500 or status in _TRANSIENT_STATUS_CODES:
            raise NetworkError(detail)
        raise RemoteStoreError(detail, status_code=status)

    def _error_details(self, response: httpx.Response) -> tuple[str, str]:
        try:
            body = response.json()
        except ValueError:
            return "", response.text.strip()
        if isinstance(body, dict):
            return str(body.get("code") or ""), str(body.get("message") or "")
        return "", ""

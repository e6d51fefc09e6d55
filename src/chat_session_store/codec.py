"""Versioned export documents for chat session history.

A document looks like::

    {"exportDate": "<ISO-8601>", "version": "1.0", "sessions": [...]}

Decoding is lenient: unknown fields are ignored and malformed session
entries are dropped one by one. Only a document with no usable session
at all is rejected.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from chat_session_store.errors import InvalidDocumentError, NoValidRecordsError
from chat_session_store.models import LOCAL_SCOPE, SessionRecord, utc_now

FORMAT_VERSION = "1.0"
EXPORT_MIME_TYPE = "application/json"
EXPORT_FILENAME_PREFIX = "timemachine_chat_history"


@dataclass(frozen=True)
class DecodeResult:
    records: list[SessionRecord] = field(default_factory=list)
    total: int = 0

    @property
    def dropped(self) -> int:
        return self.total - len(self.records)


def export_filename(exported_at: str | None = None) -> str:
    stamp = (exported_at or utc_now())[:10]
    return f"{EXPORT_FILENAME_PREFIX}_{stamp}.json"


def encode(records: list[SessionRecord], exported_at: str | None = None) -> dict[str, Any]:
    return {
        "exportDate": exported_at or utc_now(),
        "version": FORMAT_VERSION,
        "sessions": [record.to_dict() for record in records],
    }


def dumps(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def decode(document: dict[str, Any] | str | bytes, owner_scope: str = LOCAL_SCOPE) -> DecodeResult:
    """Validate a document and return the session records it carries.

    Raises InvalidDocumentError when the document is unreadable and
    NoValidRecordsError when every session entry is malformed.
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as ex:
            raise InvalidDocumentError(f"Import document is not valid JSON: {ex}") from ex

    if not isinstance(document, dict):
        raise InvalidDocumentError("Import document is not a JSON object")
    entries = document.get("sessions")
    if not isinstance(entries, list):
        raise InvalidDocumentError("Import document has no sessions array")

    version = document.get("version")
    if version != FORMAT_VERSION:
        logger.info(f"Decoding export document with version {version!r}; unknown fields are ignored")

    records: list[SessionRecord] = []
    for index, entry in enumerate(entries):
        try:
            records.append(SessionRecord.from_dict(entry, owner_scope))
        except ValueError as ex:
            logger.debug(f"Dropping session entry {index}: {ex}")

    result = DecodeResult(records=records, total=len(entries))
    if not result.records:
        raise NoValidRecordsError(total=result.total)
    if result.dropped:
        logger.warning(f"Dropped {result.dropped} of {result.total} malformed session(s) from import")
    return result

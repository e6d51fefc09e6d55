import re
import sys
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

DEFAULT_LOG_DIR = Path(".chat_session_store")

# bearer tokens and JWTs can reach messages through /login lines and HTTP details
_BEARER = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)
_JWT = re.compile(r"\beyJ[\w-]*\.[\w-]+\.[\w-]+")
_MASK = "[redacted]"


def mask_credentials(text: str) -> str:
    return _JWT.sub(_MASK, _BEARER.sub(rf"\g<1>{_MASK}", text))


def _mask_record(record: dict) -> None:
    record["message"] = mask_credentials(record["message"])


@runtime_checkable
class LogConsumer(Protocol):
    def register(self, level: str) -> None: ...
    def describe(self, level: str) -> str: ...


class ConsoleLogConsumer:
    """Short console lines on stderr; stdout belongs to the history shell."""

    def register(self, level: str) -> None:
        logger.add(sys.stderr, level=level, format="<level>{level:<8}</level> | {message}")

    def describe(self, level: str) -> str:
        return f"console (stderr, {level})"


class FileLogConsumer:
    """Rotating log file. Relative paths live in the session data directory."""

    def __init__(
        self,
        path: str = "session-store.log",
        rotation: str = "5 MB",
        retention: int = 5,
        *,
        log_dir: Path = DEFAULT_LOG_DIR,
    ):
        file_path = Path(path)
        self._path = file_path if file_path.is_absolute() else log_dir / file_path
        self._rotation = rotation
        self._retention = retention

    @property
    def path(self) -> Path:
        return self._path

    def register(self, level: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self._path),
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{line} - {message}",
            rotation=self._rotation,
            retention=self._retention,
            encoding="utf-8",
        )

    def describe(self, level: str) -> str:
        return f"file ({self._path}, {level})"


_DEFAULT_CONSUMERS = [
    {"type": "console", "level": "WARNING"},
    {"type": "file"},
]


def _build_consumer(sink_type: str, options: dict[str, Any], log_dir: Path) -> LogConsumer | None:
    if sink_type == "console":
        return ConsoleLogConsumer()
    if sink_type == "file":
        return FileLogConsumer(**options, log_dir=log_dir)
    return None


def setup_logging(
    level: str = "INFO",
    consumers: list[dict[str, Any]] | None = None,
    *,
    log_dir: Path = DEFAULT_LOG_DIR,
) -> list[str]:
    """Replace loguru's default sink with the configured consumers.

    Each entry is ``{"type": "console" | "file", "level": ..., **options}``; a
    missing level falls back to ``level``. File paths that are not absolute
    are placed under ``log_dir``, the directory that holds the device
    database. Bearer tokens and JWTs are masked in every sink.
    """
    logger.remove()
    logger.configure(patcher=_mask_record)

    if consumers is None:
        consumers = _DEFAULT_CONSUMERS

    descriptions: list[str] = []
    for config in consumers:
        sink_type = config.get("type", "")
        options = {k: v for k, v in config.items() if k not in ("type", "level")}
        consumer = _build_consumer(sink_type, options, log_dir)
        if consumer is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue

        sink_level = config.get("level", level)
        consumer.register(sink_level)
        descriptions.append(consumer.describe(sink_level))

    return descriptions

"""Log sinks for liftoff.

liftoff stays silent until a ``[logging]`` section is configured or
setup_logging() is called. Only records emitted by liftoff reach the
sinks, and AWS access key ids in messages are masked down to their
last four characters before anything is written.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from loguru import logger

from liftoff.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from loguru import Record

logger.disable("liftoff")

LEVELS: Final[tuple[str, ...]] = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

CONSOLE_FORMAT: Final[str] = (
    "<dim>{time:HH:mm:ss}</dim> <level>{level: <7}</level> "
    "<cyan>{module}</cyan> {message}"
)
FILE_FORMAT: Final[str] = "{time:YYYY-MM-DD HH:mm:ss.SSS} {level: <7} {name}:{line} {message}"

_FILE_ROTATION: Final[str] = "10 MB"
_FILE_RETENTION: Final[int] = 5
_ACCESS_KEY_ID = re.compile(r"\b(AKIA|ASIA)[A-Z0-9]{12}([A-Z0-9]{4})\b")


def mask_access_keys(text: str) -> str:
    return _ACCESS_KEY_ID.sub(lambda m: f"{m[1]}{'*' * 12}{m[2]}", text)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """The ``[logging]`` section.

    ``level`` applies to the console. The file sink always records DEBUG
    and above, so a log attached to a bug report carries every refresh.
    """

    level: str = "INFO"
    file: Path | None = None
    console: bool = True

    def __post_init__(self) -> None:
        if self.level not in LEVELS:
            raise ConfigurationError(f"[logging] level must be one of {', '.join(LEVELS)}, got {self.level!r}")

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> LogConfig:
        unknown = set(raw) - {"level", "file", "console"}
        if unknown:
            raise ConfigurationError(f"Unknown [logging] key(s): {', '.join(sorted(unknown))}")
        console = raw.get("console", True)
        if not isinstance(console, bool):
            raise ConfigurationError(f"[logging] console must be true or false, got {console!r}")
        file = raw.get("file")
        return cls(
            level=str(raw.get("level", "INFO")).upper(),
            file=Path(file).expanduser() if file else None,
            console=console,
        )


def _liftoff_records(record: Record) -> bool:
    name = record["name"]
    if name is None or not (name == "liftoff" or name.startswith("liftoff.")):
        return False
    record["message"] = mask_access_keys(record["message"])
    return True


def setup_logging(config: LogConfig) -> list[int]:
    """Enable liftoff logging. Returns the handler ids to pass to teardown_logging()."""
    logger.enable("liftoff")
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(
            logger.add(sys.stderr, level=config.level, format=CONSOLE_FORMAT, filter=_liftoff_records)
        )

    if config.file is not None:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                format=FILE_FORMAT,
                rotation=_FILE_ROTATION,
                retention=_FILE_RETENTION,
                diagnose=False,
                enqueue=True,
                filter=_liftoff_records,
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("liftoff")


__all__ = [
    "LEVELS",
    "LogConfig",
    "mask_access_keys",
    "setup_logging",
    "teardown_logging",
]

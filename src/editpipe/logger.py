from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Deque, Dict, List, Optional

import structlog

if TYPE_CHECKING:
    from editpipe.settings import LoggingSettings

PACKAGE_LOGGER = "editpipe"


@dataclass(frozen=True)
class LogRecordEntry:
    name: str
    level: int
    message: str
    timestamp: float

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)


class LogManager(logging.Handler):
    """
    Logging handler that keeps the most recent editpipe records in memory so
    callers (retry loops, telemetry) can inspect what a run reported.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        super().__init__()
        self._entries: Deque[LogRecordEntry] = deque(maxlen=max_entries)

    def emit(self, record: logging.LogRecord) -> None:
        self._entries.append(
            LogRecordEntry(
                name=record.name,
                level=record.levelno,
                message=record.getMessage(),
                timestamp=record.created,
            )
        )

    def get_records(self, min_level: int = logging.NOTSET) -> List[LogRecordEntry]:
        return [e for e in self._entries if e.level >= min_level]

    def clear(self) -> None:
        self._entries.clear()


_manager: Optional[LogManager] = None


def init_log_manager(max_entries: Optional[int] = None) -> LogManager:
    """Create the shared manager on first use and attach it to the editpipe logger."""
    global _manager
    if _manager is None:
        _manager = LogManager(max_entries=max_entries)
    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    if _manager not in pkg_logger.handlers:
        pkg_logger.addHandler(_manager)
    return _manager


def get_log_manager() -> Optional[LogManager]:
    return _manager


_LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "disabled": logging.CRITICAL + 1,
}


def apply_logging_settings(settings: "LoggingSettings") -> None:
    default_level = _LEVELS.get(settings.default_level.value, logging.INFO)
    logging.getLogger(PACKAGE_LOGGER).setLevel(default_level)

    for logger_name, level in settings.enabled_loggers.items():
        logging.getLogger(logger_name).setLevel(_LEVELS.get(level.value, default_level))


structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
    processors=[
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        structlog.dev.ConsoleRenderer(colors=False),
    ],
)

logger: structlog.BoundLogger = structlog.get_logger(PACKAGE_LOGGER)

from __future__ import annotations

import logging

from editpipe import EditStreamProcessor, InMemoryFileOps, Settings
from editpipe.edits import EditBlock, FullContent
from editpipe.logger import LogManager, apply_logging_settings, get_log_manager, init_log_manager
from editpipe.settings import LoggingSettings, LogLevel


def _record(msg: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("editpipe", level, __file__, 1, msg, None, None)


def test_log_manager_trims_to_max_entries() -> None:
    manager = LogManager(max_entries=2)
    for i in range(3):
        manager.handle(_record(f"m{i}"))

    assert [r.message for r in manager.get_records()] == ["m1", "m2"]
    manager.clear()
    assert manager.get_records() == []


def test_log_manager_filters_by_level() -> None:
    manager = LogManager()
    manager.handle(_record("quiet", logging.DEBUG))
    manager.handle(_record("loud", logging.WARNING))

    assert [r.message for r in manager.get_records(min_level=logging.INFO)] == ["loud"]
    assert [r.level_name for r in manager.get_records()] == ["DEBUG", "WARNING"]


def test_log_manager_captures_pipeline_events() -> None:
    manager = init_log_manager(max_entries=None)
    assert get_log_manager() is manager
    manager.clear()
    apply_logging_settings(LoggingSettings(default_level=LogLevel.debug))
    try:
        proc = EditStreamProcessor(InMemoryFileOps())
        proc.process_block(EditBlock("a.txt", FullContent("x\n")))
    finally:
        apply_logging_settings(LoggingSettings())

    messages = [r.message for r in manager.get_records()]
    assert any("pipeline.block" in m and "a.txt" in m for m in messages)


def test_apply_logging_settings_levels() -> None:
    settings = LoggingSettings(
        default_level=LogLevel.disabled,
        enabled_loggers={"editpipe.test": LogLevel.error},
    )
    apply_logging_settings(settings)
    try:
        assert logging.getLogger("editpipe").level > logging.CRITICAL
        assert logging.getLogger("editpipe.test").level == logging.ERROR
    finally:
        apply_logging_settings(LoggingSettings())

    assert logging.getLogger("editpipe").level == logging.INFO


def test_processor_applies_logging_settings() -> None:
    settings = Settings(logging=LoggingSettings(default_level=LogLevel.warning))
    try:
        EditStreamProcessor(InMemoryFileOps(), settings)
        assert logging.getLogger("editpipe").level == logging.WARNING
    finally:
        apply_logging_settings(LoggingSettings())

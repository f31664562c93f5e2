import json
import logging

import pytest

from agent_loop.logging import (
    DEFAULT_LIBRARY_LEVELS,
    LogConfig,
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    get_logger,
    reset_context,
    run_context,
)
from agent_loop.logging.processors import inject_context, truncate_long_values


@pytest.fixture
def restore_logging():
    yield
    # Closes any file handler a test installed
    configure_logging()


def read_json_lines(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_run_context_restores_previous_values() -> None:
    clear_context()
    outer = bind_context(session_id="outer")

    with run_context(trace_id="t-1", session_id="inner") as bound:
        assert bound == {"trace_id": "t-1", "session_id": "inner"}
        with run_context(trace_id="t-2", session_id="nested"):
            assert get_context()["trace_id"] == "t-2"
        assert get_context() == {"trace_id": "t-1", "session_id": "inner"}

    assert get_context() == {"session_id": "outer"}
    reset_context(outer)
    assert get_context() == {}


def test_run_context_is_reset_when_block_raises() -> None:
    clear_context()
    with pytest.raises(RuntimeError):
        with run_context(trace_id="t-1", session_id="s-1"):
            raise RuntimeError("boom")
    assert get_context() == {}


def test_inject_context_keeps_explicit_values() -> None:
    clear_context()
    with run_context(trace_id="bound", session_id="s"):
        event = inject_context(None, "info", {"event": "x", "trace_id": "explicit"})
    assert event == {"event": "x", "trace_id": "explicit", "session_id": "s"}


def test_truncate_long_values() -> None:
    processor = truncate_long_values(10)
    event = processor(None, "info", {"event": "e" * 50, "output": "x" * 25, "count": 3})
    assert event["event"] == "e" * 50
    assert event["output"] == "x" * 10 + "... [15 chars truncated]"
    assert event["count"] == 3


def test_json_log_file_carries_run_context(tmp_path, restore_logging) -> None:
    log_file = tmp_path / "logs" / "agent.jsonl"
    configure_logging(LogConfig(level=LogLevel.DEBUG, format=LogFormat.JSON, log_file=log_file))
    clear_context()

    with run_context(trace_id="trace-1", session_id="session-1"):
        get_logger("agent_loop.tests.file").info("tool_started", tool_name="echo")
        # Provider adapters log through the stdlib module
        logging.getLogger("agent_loop.providers.fake").warning("request failed")
    get_logger("agent_loop.tests.file").info("after_run")

    records = read_json_lines(log_file)
    by_event = {record["event"]: record for record in records}

    assert by_event["tool_started"]["trace_id"] == "trace-1"
    assert by_event["tool_started"]["session_id"] == "session-1"
    assert by_event["tool_started"]["tool_name"] == "echo"
    assert by_event["tool_started"]["level"] == "info"
    assert by_event["request failed"]["trace_id"] == "trace-1"
    assert by_event["request failed"]["logger"] == "agent_loop.providers.fake"
    assert "trace_id" not in by_event["after_run"]


def test_log_file_respects_level_and_truncation(tmp_path, restore_logging) -> None:
    log_file = tmp_path / "agent.jsonl"
    configure_logging(LogConfig(
        level=LogLevel.WARNING,
        format=LogFormat.JSON,
        log_file=log_file,
        max_value_length=8,
    ))

    logger = get_logger("agent_loop.tests.levels")
    logger.info("dropped")
    logger.warning("tool_output", output="x" * 20)

    records = read_json_lines(log_file)
    assert [record["event"] for record in records] == ["tool_output"]
    assert records[0]["output"] == "x" * 8 + "... [12 chars truncated]"


def test_library_loggers_are_quieted(restore_logging) -> None:
    configure_logging(LogConfig(level=LogLevel.DEBUG))
    for name, level in DEFAULT_LIBRARY_LEVELS.items():
        assert logging.getLogger(name).level == level.to_int()

    configure_logging(LogConfig(level=LogLevel.DEBUG, library_levels={"httpx": LogLevel.DEBUG}))
    assert logging.getLogger("httpx").level == logging.DEBUG


def test_reconfiguring_replaces_handlers(tmp_path, restore_logging) -> None:
    configure_logging(LogConfig(log_file=tmp_path / "agent.log"))
    assert len(logging.getLogger().handlers) == 2

    configure_logging()
    assert len(logging.getLogger().handlers) == 1

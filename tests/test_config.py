from pathlib import Path

import pytest

from agent_loop.config import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_SYSTEM_PROMPT,
    AgentSettings,
    RetryPolicy,
)
from agent_loop.logging import LogFormat, LogLevel


def test_defaults() -> None:
    settings = AgentSettings.from_env(environ={})
    assert settings.max_iterations == DEFAULT_MAX_ITERATIONS == 10
    assert settings.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert settings.retry == RetryPolicy()
    assert settings.log_level == LogLevel.INFO
    assert settings.log_format == LogFormat.PLAIN


def test_values_read_from_environment() -> None:
    settings = AgentSettings.from_env(environ={
        "AGENT_MAX_ITERATIONS": "4",
        "AGENT_SYSTEM_PROMPT": "Answer in French.",
        "AGENT_RETRY_ENABLED": "false",
        "AGENT_RETRY_MAX_RETRIES": "5",
        "AGENT_RETRY_BASE_DELAY_MS": "200",
        "AGENT_RETRY_MAX_DELAY_MS": "3000",
        "AGENT_RETRY_ENABLE_JITTER": "no",
        "AGENT_LOG_LEVEL": "debug",
        "AGENT_LOG_FORMAT": "JSON",
    })
    assert settings.max_iterations == 4
    assert settings.system_prompt == "Answer in French."
    assert settings.retry == RetryPolicy(
        enabled=False, max_retries=5, base_delay_ms=200, max_delay_ms=3000, enable_jitter=False
    )
    assert settings.log_level == LogLevel.DEBUG
    assert settings.log_format == LogFormat.JSON


def test_blank_values_fall_back_to_defaults() -> None:
    settings = AgentSettings.from_env(environ={"AGENT_MAX_ITERATIONS": " ", "AGENT_SYSTEM_PROMPT": ""})
    assert settings.max_iterations == DEFAULT_MAX_ITERATIONS
    assert settings.system_prompt == DEFAULT_SYSTEM_PROMPT


@pytest.mark.parametrize(
    "env",
    [
        {"AGENT_MAX_ITERATIONS": "ten"},
        {"AGENT_MAX_ITERATIONS": "0"},
        {"AGENT_RETRY_ENABLED": "maybe"},
        {"AGENT_RETRY_BASE_DELAY_MS": "500", "AGENT_RETRY_MAX_DELAY_MS": "100"},
    ],
)
def test_invalid_values_raise(env) -> None:
    with pytest.raises(ValueError):
        AgentSettings.from_env(environ=env)


def test_reads_process_environment(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_MAX_ITERATIONS", "6")
    settings = AgentSettings.from_env(load_dotenv_file=False)
    assert settings.max_iterations == 6


def test_log_settings_build_log_config() -> None:
    settings = AgentSettings.from_env(environ={
        "AGENT_LOG_LEVEL": "warning",
        "AGENT_LOG_FORMAT": "json",
        "AGENT_LOG_FILE": "logs/agent.jsonl",
    })
    config = settings.log_config()
    assert config.level == LogLevel.WARNING
    assert config.format == LogFormat.JSON
    assert config.log_file == Path("logs/agent.jsonl")
    assert AgentSettings.from_env(environ={}).log_config().log_file is None

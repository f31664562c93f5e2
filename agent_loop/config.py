"""Agent configuration.

Settings resolve in the order constructor argument, :class:`AgentSettings`,
built-in default. ``AgentSettings.from_env()`` reads ``AGENT_*`` variables,
after loading a ``.env`` file if one is present.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .logging import LogConfig, LogFormat, LogLevel


DEFAULT_MAX_ITERATIONS = 10
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant that should help the user with their questions."

DEFAULT_RETRY_ENABLED = True
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 10000
DEFAULT_ENABLE_JITTER = True

ENV_PREFIX = "AGENT_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RetryPolicy:
    """Retry behaviour for model calls. Immutable once an agent is built.

    Attributes:
        enabled: When False, every call is attempted exactly once.
        max_retries: Retries after the first attempt.
        base_delay_ms: Delay before the first retry; doubles per retry.
        max_delay_ms: Upper bound of the computed backoff.
        enable_jitter: Use full jitter, a uniform delay in ``[0, backoff]``.
    """
    enabled: bool = DEFAULT_RETRY_ENABLED
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    enable_jitter: bool = DEFAULT_ENABLE_JITTER

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= base_delay_ms ({self.base_delay_ms})"
            )


@dataclass(frozen=True)
class AgentSettings:
    """Process-level defaults for agents."""
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.PLAIN
    log_file: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")

    def log_config(self) -> LogConfig:
        """Logging configuration matching these settings."""
        return LogConfig(level=self.log_level, format=self.log_format, log_file=self.log_file)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        load_dotenv_file: bool = True,
    ) -> "AgentSettings":
        """Build settings from ``AGENT_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.
            load_dotenv_file: Load ``.env`` into ``os.environ`` first.

        Raises:
            ValueError: If a variable holds a value of the wrong shape.
        """
        if load_dotenv_file and environ is None:
            load_dotenv()
        env = os.environ if environ is None else environ

        retry = RetryPolicy(
            enabled=_get_bool(env, "RETRY_ENABLED", DEFAULT_RETRY_ENABLED),
            max_retries=_get_int(env, "RETRY_MAX_RETRIES", DEFAULT_MAX_RETRIES),
            base_delay_ms=_get_int(env, "RETRY_BASE_DELAY_MS", DEFAULT_BASE_DELAY_MS),
            max_delay_ms=_get_int(env, "RETRY_MAX_DELAY_MS", DEFAULT_MAX_DELAY_MS),
            enable_jitter=_get_bool(env, "RETRY_ENABLE_JITTER", DEFAULT_ENABLE_JITTER),
        )
        return cls(
            max_iterations=_get_int(env, "MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS),
            system_prompt=env.get(ENV_PREFIX + "SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
            retry=retry,
            log_level=LogLevel(env.get(ENV_PREFIX + "LOG_LEVEL", LogLevel.INFO.value).upper()),
            log_format=LogFormat(env.get(ENV_PREFIX + "LOG_FORMAT", LogFormat.PLAIN.value).lower()),
            log_file=Path(env[ENV_PREFIX + "LOG_FILE"]) if env.get(ENV_PREFIX + "LOG_FILE") else None,
        )


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{key} must be an integer, got {raw!r}") from None


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{ENV_PREFIX}{key} must be a boolean, got {raw!r}")

"""Structured error types and error classification.

Every failure that can end an agent run is reduced to an :class:`AgentErrorCode`.
Provider SDK exceptions from ``anthropic`` and ``openai`` are classified by type
and HTTP status; anything else falls back to keyword matching on the message.
The keyword pass is a best-effort heuristic: providers phrase errors
differently and a message that matches nothing is reported as ``UNKNOWN``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import anthropic
import openai


class AgentErrorCode(str, Enum):
    """Error kinds surfaced to callers of the agent."""
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    CONTEXT_LENGTH_EXCEEDED = "CONTEXT_LENGTH_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    MAX_ITERATIONS_EXCEEDED = "MAX_ITERATIONS_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ABORTED = "ABORTED"
    UNKNOWN = "UNKNOWN"


class ToolErrorCode(str, Enum):
    """Error kinds a tool may report in a structured failure."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    IO_ERROR = "IO_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RATE_LIMITED = "RATE_LIMITED"
    NOT_FOUND = "NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


# Transient kinds the RetryExecutor is allowed to retry.
RETRYABLE_ERROR_CODES = frozenset({
    AgentErrorCode.RATE_LIMITED,
    AgentErrorCode.NETWORK_ERROR,
    AgentErrorCode.TIMEOUT,
})


@dataclass
class ProviderErrorMetadata:
    """Context about the provider call that produced an error."""
    provider: Optional[str] = None
    model: Optional[str] = None
    status_code: Optional[int] = None
    retry_after_ms: Optional[int] = None
    original_error: Optional[BaseException] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for key in ("provider", "model", "status_code", "retry_after_ms"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.original_error is not None:
            payload["original_error"] = repr(self.original_error)
        return payload


@dataclass
class AgentErrorResponse:
    """Terminal failure of an agent run.

    Built once where the run fails, handed once to ``on_error`` and folded
    once into the run result. It is a report, never something to retry.
    """
    error: AgentErrorCode
    message: str
    metadata: Optional[ProviderErrorMetadata] = None
    success: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "error": self.error.value,
            "message": self.message,
        }
        if self.metadata is not None:
            payload["metadata"] = self.metadata.to_dict()
        return payload


def error_response(
    code: AgentErrorCode,
    message: str,
    metadata: Optional[ProviderErrorMetadata] = None,
) -> AgentErrorResponse:
    """Create an :class:`AgentErrorResponse`."""
    return AgentErrorResponse(error=code, message=message, metadata=metadata)


class ModelError(Exception):
    """A classified failure of a model provider call.

    Attributes:
        code: The classified error kind.
        message: Human-readable message from the underlying failure.
        retry_after_ms: Explicit delay requested by the provider, if any.
        status_code: HTTP status of the failed call, if known.
        original_error: The exception that was classified.
    """

    def __init__(
        self,
        code: AgentErrorCode,
        message: str,
        retry_after_ms: Optional[int] = None,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.retry_after_ms = retry_after_ms
        self.status_code = status_code
        self.original_error = original_error

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_ERROR_CODES

    def __repr__(self) -> str:
        return f"ModelError(code={self.code.value}, message={self.message!r})"


class ToolError(Exception):
    """Raised by a tool to report a structured failure with a ToolErrorCode."""

    def __init__(self, code: ToolErrorCode | str, message: str):
        super().__init__(message)
        self.code = ToolErrorCode(code)
        self.message = message


class RunAborted(Exception):
    """Raised at a suspension point when the run's abort signal fired."""

    def __init__(self, message: str = "Run aborted"):
        super().__init__(message)
        self.message = message


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------

_TIMEOUT_ERRORS: tuple[type[BaseException], ...] = (
    anthropic.APITimeoutError,
    openai.APITimeoutError,
    asyncio.TimeoutError,
    TimeoutError,
)

# APITimeoutError subclasses APIConnectionError in both SDKs, so timeouts
# must be checked first.
_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    anthropic.APIConnectionError,
    openai.APIConnectionError,
    ConnectionError,
)

_STATUS_ERRORS: tuple[type[BaseException], ...] = (
    anthropic.APIStatusError,
    openai.APIStatusError,
)

_CONTEXT_LENGTH_KEYWORDS = ("context length", "context_length", "too long", "token limit", "maximum context")


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def classify_message(message: str) -> AgentErrorCode:
    """Classify a free-form error message by keyword."""
    text = message.lower()

    if _contains_any(text, ("api key", "authentication", "unauthorized")):
        return AgentErrorCode.AUTHENTICATION_ERROR
    if _contains_any(text, ("rate limit", "429", "too many requests")):
        return AgentErrorCode.RATE_LIMITED
    if "model" in text and "not found" in text:
        return AgentErrorCode.MODEL_NOT_FOUND
    if _contains_any(text, _CONTEXT_LENGTH_KEYWORDS):
        return AgentErrorCode.CONTEXT_LENGTH_EXCEEDED
    if _contains_any(text, ("timeout", "timed out")):
        return AgentErrorCode.TIMEOUT
    if _contains_any(text, (
        "network",
        "econnrefused",
        "econnreset",
        "enotfound",
        "etimedout",
        "epipe",
        "socket hang up",
        "fetch failed",
        "connection refused",
        "dns",
    )):
        return AgentErrorCode.NETWORK_ERROR
    # 5xx responses are transient
    if _contains_any(text, (
        "500",
        "502",
        "503",
        "internal server error",
        "bad gateway",
        "service unavailable",
    )):
        return AgentErrorCode.NETWORK_ERROR
    return AgentErrorCode.UNKNOWN


def _classify_status(status_code: int, message: str) -> AgentErrorCode:
    text = message.lower()
    if status_code in (401, 403):
        return AgentErrorCode.AUTHENTICATION_ERROR
    if status_code == 429:
        return AgentErrorCode.RATE_LIMITED
    if status_code == 404:
        return AgentErrorCode.MODEL_NOT_FOUND if "model" in text else AgentErrorCode.UNKNOWN
    if status_code in (408, 504):
        return AgentErrorCode.TIMEOUT
    if status_code == 413:
        return AgentErrorCode.CONTEXT_LENGTH_EXCEEDED
    if status_code in (400, 422):
        if _contains_any(text, _CONTEXT_LENGTH_KEYWORDS):
            return AgentErrorCode.CONTEXT_LENGTH_EXCEEDED
        return AgentErrorCode.VALIDATION_ERROR
    if status_code >= 500:
        return AgentErrorCode.NETWORK_ERROR
    return classify_message(message)


def parse_retry_after(headers: Any) -> Optional[int]:
    """Read a provider's retry hint from response headers, in milliseconds.

    ``retry-after-ms`` wins over ``retry-after``. HTTP-date values are ignored.
    """
    if headers is None:
        return None

    raw_ms = headers.get("retry-after-ms")
    if raw_ms is not None:
        try:
            return max(0, int(float(raw_ms)))
        except (TypeError, ValueError):
            pass

    raw = headers.get("retry-after")
    if raw is not None:
        try:
            return max(0, int(float(raw) * 1000))
        except (TypeError, ValueError):
            return None
    return None


def to_model_error(error: BaseException) -> ModelError:
    """Convert any exception into a classified :class:`ModelError`."""
    if isinstance(error, ModelError):
        return error

    message = str(error) or type(error).__name__

    if isinstance(error, _TIMEOUT_ERRORS):
        return ModelError(AgentErrorCode.TIMEOUT, message, original_error=error)

    if isinstance(error, _CONNECTION_ERRORS):
        return ModelError(AgentErrorCode.NETWORK_ERROR, message, original_error=error)

    if isinstance(error, _STATUS_ERRORS):
        status_code = error.status_code
        response = getattr(error, "response", None)
        retry_after_ms = parse_retry_after(getattr(response, "headers", None))
        return ModelError(
            _classify_status(status_code, message),
            message,
            retry_after_ms=retry_after_ms,
            status_code=status_code,
            original_error=error,
        )

    return ModelError(classify_message(message), message, original_error=error)


def classify_error(error: BaseException) -> AgentErrorCode:
    """Map an exception to an :class:`AgentErrorCode`."""
    return to_model_error(error).code


_TOOL_TO_AGENT_CODE: dict[ToolErrorCode, AgentErrorCode] = {
    ToolErrorCode.VALIDATION_ERROR: AgentErrorCode.VALIDATION_ERROR,
    ToolErrorCode.RATE_LIMITED: AgentErrorCode.RATE_LIMITED,
    ToolErrorCode.NOT_FOUND: AgentErrorCode.NOT_FOUND,
    ToolErrorCode.TIMEOUT: AgentErrorCode.TIMEOUT,
}


def map_tool_error_code(code: ToolErrorCode) -> AgentErrorCode:
    """Map a ToolErrorCode onto the agent taxonomy (UNKNOWN when no counterpart)."""
    return _TOOL_TO_AGENT_CODE.get(code, AgentErrorCode.UNKNOWN)


def get_user_friendly_message(
    code: AgentErrorCode,
    metadata: Optional[ProviderErrorMetadata] = None,
) -> str:
    """Render a user-facing explanation for an error code."""
    provider = (metadata.provider if metadata else None) or "the provider"

    if code == AgentErrorCode.AUTHENTICATION_ERROR:
        return f"Authentication failed with {provider}. Please check your API key."
    if code == AgentErrorCode.RATE_LIMITED:
        if metadata is not None and metadata.retry_after_ms is not None:
            seconds = metadata.retry_after_ms / 1000
            return f"Rate limited by {provider}. Retry after {seconds:g} seconds."
        return f"Rate limited by {provider}. Please wait before retrying."
    if code == AgentErrorCode.MODEL_NOT_FOUND:
        if metadata is not None and metadata.model:
            return f"Model '{metadata.model}' not found on {provider}."
        return f"The requested model was not found on {provider}."
    if code == AgentErrorCode.CONTEXT_LENGTH_EXCEEDED:
        return f"Input exceeds the context length limit for {provider}."
    if code == AgentErrorCode.NETWORK_ERROR:
        return f"Network error connecting to {provider}. Please check your connection."
    if code == AgentErrorCode.TIMEOUT:
        return f"Request to {provider} timed out. Please try again."
    if code == AgentErrorCode.MAX_ITERATIONS_EXCEEDED:
        return "Maximum iterations exceeded. The query may be too complex."
    if code == AgentErrorCode.VALIDATION_ERROR:
        return "Invalid input parameters provided."
    if code == AgentErrorCode.NOT_FOUND:
        return "The requested resource was not found."
    if code == AgentErrorCode.ABORTED:
        return "The run was cancelled."
    return "An unexpected error occurred."

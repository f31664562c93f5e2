"""structlog processors used by the agent_loop logging pipeline."""
from typing import Any

from .context import get_context


def inject_context(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Copy run context (trace_id, session_id, ...) into the event.

    Explicit event values win over bound context values.
    """
    for key, value in get_context().items():
        event_dict.setdefault(key, value)
    return event_dict


def add_logger_name(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add a ``logger`` field naming the module that produced the event."""
    record = event_dict.get("_record")
    if record is not None:
        event_dict["logger"] = record.name
    elif hasattr(logger, "name"):
        event_dict["logger"] = logger.name
    return event_dict


def truncate_long_values(max_length: int = 500):
    """Build a processor that shortens oversized string fields.

    Prompts and tool outputs can be arbitrarily large; log lines should not be.
    """

    def processor(
        logger: Any,
        method_name: str,
        event_dict: dict[str, Any],
    ) -> dict[str, Any]:
        for key, value in event_dict.items():
            if key == "event" or not isinstance(value, str):
                continue
            if len(value) > max_length:
                event_dict[key] = value[:max_length] + f"... [{len(value) - max_length} chars truncated]"
        return event_dict

    return processor

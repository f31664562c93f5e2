"""Span contexts for correlating callbacks and log lines.

Follows OpenTelemetry id sizes: 128-bit trace ids and 64-bit span ids, hex
encoded. A root context is created per run, a child per LLM call and per
tool call. Contexts carry no resources and never influence control flow.
"""

import secrets
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SpanContext:
    trace_id: str
    span_id: str
    parent_span_id: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.parent_span_id is None


def create_span_context() -> SpanContext:
    """Create a root span context with fresh trace and span ids."""
    return SpanContext(trace_id=secrets.token_hex(16), span_id=secrets.token_hex(8))


def create_child_span_context(parent: SpanContext) -> SpanContext:
    """Create a child of ``parent``: same trace id, new span id."""
    return SpanContext(
        trace_id=parent.trace_id,
        span_id=secrets.token_hex(8),
        parent_span_id=parent.span_id,
    )

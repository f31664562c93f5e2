"""OpenTelemetry tracing of agent runs, following the GenAI semantic conventions."""

from .tracing import TRACER_NAME, AgentTracer, with_tracing

__all__ = [
    'TRACER_NAME',
    'AgentTracer',
    'with_tracing',
]

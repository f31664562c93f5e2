"""Relay of provider response streams.

:func:`relay_stream` re-yields every chunk of a provider stream while
reporting text deltas to ``on_chunk`` and firing ``on_end(usage)`` exactly
once, whether the stream finishes, raises, or is closed early by the consumer.
Errors are re-raised after ``on_end`` so consumers can still tell a clean end
from a failure.

Usage snapshots supersede each other: the usage passed to ``on_end`` is the
one carried by the last chunk that had any.
"""

from typing import Any, AsyncIterator, Callable, Optional

from ..logging import get_logger
from .types import StreamChunk, TokenUsage

logger = get_logger(__name__)


def _safe_call(callback: Optional[Callable[..., Any]], name: str, *args: Any) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.warning("stream_callback_failed", callback=name, exc_info=True)


async def relay_stream(
    stream: AsyncIterator[StreamChunk],
    on_chunk: Optional[Callable[[str], Any]] = None,
    on_end: Optional[Callable[[Optional[TokenUsage]], Any]] = None,
) -> AsyncIterator[StreamChunk]:
    """Wrap ``stream``, reporting chunks and a single terminal event.

    Args:
        stream: Provider chunk stream.
        on_chunk: Called with each non-empty text delta.
        on_end: Called once with the last usage snapshot (or None).

    Yields:
        The provider's chunks, unchanged.
    """
    usage: Optional[TokenUsage] = None
    chunk_count = 0
    try:
        async for chunk in stream:
            chunk_count += 1
            if chunk.usage is not None:
                usage = chunk.usage
            if chunk.content:
                _safe_call(on_chunk, "on_chunk", chunk.content)
            yield chunk
    finally:
        logger.debug("stream_finished", chunk_count=chunk_count, has_usage=usage is not None)
        _safe_call(on_end, "on_end", usage)


class StreamRelay:
    """Holds relay callbacks so several streams can be wrapped the same way."""

    def __init__(
        self,
        on_chunk: Optional[Callable[[str], Any]] = None,
        on_end: Optional[Callable[[Optional[TokenUsage]], Any]] = None,
    ):
        self.on_chunk = on_chunk
        self.on_end = on_end

    def wrap(self, stream: AsyncIterator[StreamChunk]) -> AsyncIterator[StreamChunk]:
        return relay_stream(stream, on_chunk=self.on_chunk, on_end=self.on_end)

"""Tests for stream relaying."""

import asyncio
from contextlib import aclosing

import pytest

from agent_loop.core.streaming import StreamRelay, relay_stream
from agent_loop.core.types import StreamChunk, TokenUsage


async def make_stream(items):
    for item in items:
        if isinstance(item, BaseException):
            raise item
        yield item


def test_chunks_pass_through_and_end_fires_once():
    seen, ends = [], []
    usage_a = TokenUsage(1, 1, 2, 1)
    usage_b = TokenUsage(5, 3, 8, 1)
    items = [
        StreamChunk(content="a", usage=usage_a),
        StreamChunk(content=""),
        StreamChunk(content="b", usage=usage_b),
    ]

    async def run():
        return [c async for c in relay_stream(make_stream(items), on_chunk=seen.append, on_end=ends.append)]

    chunks = asyncio.run(run())

    assert chunks == items
    assert seen == ["a", "b"]
    # Later usage snapshots replace earlier ones
    assert ends == [usage_b]


def test_end_fires_on_error_and_error_is_reraised():
    ends = []

    async def run():
        async for _ in relay_stream(make_stream([StreamChunk(content="a"), ValueError("boom")]), on_end=ends.append):
            pass

    with pytest.raises(ValueError):
        asyncio.run(run())
    assert ends == [None]


def test_end_fires_when_consumer_stops_early():
    ends = []

    async def run():
        relay = relay_stream(make_stream([StreamChunk(content=str(i)) for i in range(5)]), on_end=ends.append)
        async with aclosing(relay) as chunks:
            async for chunk in chunks:
                if chunk.content == "1":
                    break

    asyncio.run(run())
    assert ends == [None]


def test_end_fires_for_empty_stream():
    ends = []

    async def run():
        return [c async for c in relay_stream(make_stream([]), on_end=ends.append)]

    assert asyncio.run(run()) == []
    assert ends == [None]


def test_throwing_chunk_callback_does_not_break_stream():
    def explode(text):
        raise RuntimeError("observer bug")

    relay = StreamRelay(on_chunk=explode)

    async def run():
        return [c.content async for c in relay.wrap(make_stream([StreamChunk(content="x")]))]

    assert asyncio.run(run()) == ["x"]

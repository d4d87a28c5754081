"""
Unit Tests — Progress registry and SSE framing
═══════════════════════════════════════════════
Tests for:
  • ProgressRegistry — subscribe / publish / release, no-op without subscriber
  • ProgressChannel  — bounded queue drops the oldest note
  • sse_stream       — connected event, message frames, keepalive, close on RESULT_READY
"""

from __future__ import annotations

import asyncio
import json

import pytest

from agent_workspace.agent.progress import (
    KEEPALIVE_COMMENT,
    RESULT_READY,
    ProgressChannel,
    ProgressEvent,
    ProgressRegistry,
    _sse_event,
    sse_stream,
)


def _data_of(frame: str) -> dict:
    line = next(ln for ln in frame.split("\n") if ln.startswith("data: "))
    return json.loads(line[len("data: "):])


@pytest.mark.unit
@pytest.mark.agent
class TestProgressRegistry:

    async def test_publish_reaches_subscriber(self):
        registry = ProgressRegistry()
        channel  = registry.subscribe("abc")

        registry.publish("abc", "Planner: routing")
        event = await channel.get(timeout=1)

        assert event.text == "Planner: routing"
        assert event.ts > 0
        assert event.result is None

    def test_publish_without_subscriber_is_noop(self):
        registry = ProgressRegistry()

        registry.publish("nobody", "hello")
        registry.publish(None, "hello")

        assert len(registry) == 0

    async def test_publish_result_is_terminal(self):
        registry = ProgressRegistry()
        channel  = registry.subscribe("abc")

        registry.publish_result("abc", {"kind": "answer", "answer": "hi"})
        event = await channel.get(timeout=1)

        assert event.text == RESULT_READY
        assert event.is_terminal
        assert event.result == {"kind": "answer", "answer": "hi"}

    def test_release_keeps_newer_subscriber(self):
        """A stale stream closing must not unregister the client's newer stream."""
        registry = ProgressRegistry()
        old = registry.subscribe("abc")
        new = registry.subscribe("abc")

        registry.release("abc", old)

        assert registry.get("abc") is new
        registry.release("abc", new)
        assert registry.get("abc") is None


@pytest.mark.unit
@pytest.mark.agent
class TestProgressChannel:

    async def test_full_queue_drops_oldest(self):
        channel = ProgressChannel("abc", maxsize=2)
        for text in ("one", "two", "three"):
            channel.put(ProgressEvent(text=text, ts=1))

        first  = await channel.get(timeout=1)
        second = await channel.get(timeout=1)

        assert [first.text, second.text] == ["two", "three"]

    async def test_get_times_out(self):
        channel = ProgressChannel("abc")

        with pytest.raises(asyncio.TimeoutError):
            await channel.get(timeout=0.01)


@pytest.mark.unit
@pytest.mark.agent
class TestSseStream:

    def test_event_framing(self):
        frame = _sse_event("message", {"text": "hi", "ts": 1})

        assert frame == 'event: message\ndata: {"text": "hi", "ts": 1}\n\n'

    async def test_stream_sends_connected_then_messages_and_closes(self):
        registry = ProgressRegistry()
        stream   = sse_stream(registry, "abc", keepalive=1)

        connected = await stream.__anext__()
        registry.publish("abc", "Thinking...")
        registry.publish_result("abc", {"kind": "answer", "answer": "hi"})
        frames = [f async for f in stream]

        assert connected.startswith("event: connected\n")
        assert _data_of(connected)["req_id"] == "abc"
        assert _data_of(frames[0])["text"]   == "Thinking..."
        assert "result" not in _data_of(frames[0])
        assert _data_of(frames[1])["result"] == {"kind": "answer", "answer": "hi"}
        assert len(frames) == 2
        assert len(registry) == 0

    async def test_idle_channel_sends_keepalive(self):
        registry = ProgressRegistry()
        stream   = sse_stream(registry, "abc", keepalive=0.01)

        await stream.__anext__()                 # connected
        keepalive = await stream.__anext__()
        await stream.aclose()

        assert keepalive == KEEPALIVE_COMMENT
        assert len(registry) == 0

    async def test_unstarted_stream_registers_nothing(self):
        registry = ProgressRegistry()
        stream   = sse_stream(registry, "abc", keepalive=1)

        registry.publish("abc", "Thinking...")
        await stream.aclose()

        assert len(registry) == 0
        assert registry.get("abc") is None

    async def test_subscribed_from_first_frame(self):
        registry = ProgressRegistry()
        stream   = sse_stream(registry, "abc", keepalive=1)

        await stream.__anext__()
        subscribed = registry.get("abc") is not None
        await stream.aclose()

        assert subscribed
        assert len(registry) == 0

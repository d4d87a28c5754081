"""
Progress channel between an agent run and its SSE subscriber.

  run (publisher) ── ProgressRegistry.publish(req_id, note) ──► asyncio.Queue
                                                                   │
  GET /agent/stream (subscriber) ◄── sse_stream(req_id) ───────────┘

Publishing to a request id nobody subscribed to is a no-op. The queue is
bounded; when a slow client lets it fill up, the oldest note is dropped
so the RESULT_READY event always gets through.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator

from pydantic import BaseModel

logger = logging.getLogger(__name__)

RESULT_READY = "RESULT_READY"
QUEUE_SIZE   = 256


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProgressEvent(BaseModel):
    text:   str
    ts:     int
    result: dict[str, Any] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.text == RESULT_READY


class ProgressChannel:

    def __init__(self, req_id: str, maxsize: int = QUEUE_SIZE) -> None:
        self.req_id = req_id
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=maxsize)

    def put(self, event: ProgressEvent) -> None:
        if self._queue.full():
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
        self._queue.put_nowait(event)

    async def get(self, timeout: float | None = None) -> ProgressEvent:
        """Raises asyncio.TimeoutError when nothing arrives within `timeout`."""
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)


class ProgressRegistry:
    """Request id → open channel. One subscriber per request id."""

    def __init__(self) -> None:
        self._channels: dict[str, ProgressChannel] = {}

    def subscribe(self, req_id: str) -> ProgressChannel:
        channel = ProgressChannel(req_id)
        self._channels[req_id] = channel
        logger.debug("Progress | subscribed req_id=%s open=%d", req_id, len(self._channels))
        return channel

    def get(self, req_id: str | None) -> ProgressChannel | None:
        if not req_id:
            return None
        return self._channels.get(req_id)

    def release(self, req_id: str, channel: ProgressChannel | None = None) -> None:
        # Only drop the entry if it still belongs to this subscriber
        current = self._channels.get(req_id)
        if current is not None and (channel is None or current is channel):
            del self._channels[req_id]
            logger.debug("Progress | released req_id=%s open=%d", req_id, len(self._channels))

    def publish(self, req_id: str | None, text: str, result: dict | None = None) -> None:
        channel = self.get(req_id)
        if channel is None:
            return
        channel.put(ProgressEvent(text=text, ts=_now_ms(), result=result))

    def publish_result(self, req_id: str | None, result: dict) -> None:
        self.publish(req_id, RESULT_READY, result=result)

    def __len__(self) -> int:
        return len(self._channels)


# ---------------------------------------------------------------------------
# SSE framing
# ---------------------------------------------------------------------------

def _sse_event(event: str, data: str | dict) -> str:
    """
    Serialise a Server-Sent Event.

    Format::
        event: <event>\\n
        data: <payload>\\n
        \\n
    """
    if isinstance(data, dict):
        payload = json.dumps(data, ensure_ascii=False)
    else:
        payload = data
    return f"event: {event}\ndata: {payload}\n\n"


KEEPALIVE_COMMENT = ": keepalive\n\n"


async def sse_stream(
    registry:  ProgressRegistry,
    req_id:    str,
    keepalive: float,
) -> AsyncIterator[str]:
    """
    Subscribe to `req_id` and yield SSE frames until RESULT_READY has been sent.

    The subscription only exists while the generator runs, so a client that
    disconnects before the first frame leaves nothing registered. The channel
    is released in every case once iteration has started.
    """
    channel = registry.subscribe(req_id)
    try:
        yield _sse_event("connected", {"req_id": channel.req_id, "ts": _now_ms()})
        while True:
            try:
                event = await channel.get(timeout=keepalive)
            except asyncio.TimeoutError:
                yield KEEPALIVE_COMMENT
                continue

            yield _sse_event("message", event.model_dump(exclude_none=True))
            if event.is_terminal:
                break
    finally:
        registry.release(channel.req_id, channel)

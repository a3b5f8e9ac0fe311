"""Server-sent event channels bridging the event bus to HTTP clients.

Each open stream owns one ``EventStreamChannel``. The channel subscribes
itself to the bus under its topic key and turns every delivered payload into
a text/event-stream frame. Publishers may run on any thread; frames are
handed to the event loop with ``call_soon_threadsafe`` and buffered in a
per-channel FIFO queue, so a slow client only ever delays itself.

Lifecycle: CONNECTING -> OPEN -> CLOSED. ``close`` runs its cleanup exactly
once no matter how many paths trigger it (client abort, server shutdown,
iterator exhaustion) and cancels every task the channel owns.

A channel opened with ``hold_live`` buffers bus deliveries until
``start_live`` puts the initial snapshot on the wire, so nothing published
while the snapshot is read can overtake it. Heartbeats and error frames are
never held.
"""

import asyncio
import json
import logging
import threading
from collections.abc import AsyncIterator, Callable, Coroutine
from enum import Enum
from typing import Any

from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from core.exceptions import StateError, ValidationError
from pubsub.bus import EventBus

logger = logging.getLogger(__name__)

EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
EVENT_STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_CLOSED = object()


def _encode(data: dict[str, Any]) -> str:
    return json.dumps(data, separators=(",", ":"), default=str)


def format_data_frame(payload: dict[str, Any]) -> str:
    """One SSE frame for a payload; ``type == "error"`` becomes an ``error`` event."""
    if payload.get("type") == "error":
        body = {key: value for key, value in payload.items() if key != "type"}
        return f"event: error\ndata: {_encode(body)}\n\n"
    return f"data: {_encode(payload)}\n\n"


def format_comment_frame(comment: str) -> str:
    return f": {comment}\n\n"


class ChannelState(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class EventStreamChannel:
    """One client's live view of a topic."""

    def __init__(
        self,
        bus: EventBus,
        topic_key: str,
        heartbeat_interval: float = 15.0,
        heartbeat_comment: str = "keep-alive",
        max_queue_size: int = 100,
        hold_live: bool = False,
        on_close: Callable[["EventStreamChannel"], None] | None = None,
    ) -> None:
        self.topic_key = topic_key
        self.heartbeat_interval = heartbeat_interval
        self.heartbeat_comment = heartbeat_comment
        self.max_queue_size = max_queue_size
        self.state = ChannelState.CONNECTING
        self.dropped_frames = 0
        self._bus = bus
        self._on_close = on_close
        # Capacity is enforced in _enqueue so the close sentinel always fits
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._held: list[str] | None = [] if hold_live else None
        self._tasks: set[asyncio.Task[None]] = set()
        self._close_lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.state is ChannelState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state is ChannelState.CLOSED

    def open(self) -> None:
        """Subscribe to the bus and start heartbeats. Must run on the event loop."""
        if not self.topic_key:
            raise ValidationError("Stream topic key required")
        if self.state is not ChannelState.CONNECTING:
            raise StateError(f"Cannot open a channel in state {self.state.value}")

        self._loop = asyncio.get_running_loop()
        self.state = ChannelState.OPEN
        self._bus.subscribe(self.topic_key, self)
        self.spawn(self._heartbeat())
        logger.debug(f"Stream opened on {self.topic_key}")

    def deliver(self, payload: dict[str, Any]) -> None:
        """Bus callback; safe to call from any thread, ignored once closed."""
        if self.state is not ChannelState.OPEN:
            return
        self._submit(format_data_frame(payload), live=True)

    def send_error(self, data: dict[str, Any]) -> None:
        if self.state is not ChannelState.OPEN:
            return
        self._submit(format_data_frame({"type": "error", **data}))

    def spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        """Run ``coro`` on the loop for as long as the channel stays open."""
        if self._loop is None:
            raise StateError("Channel is not open")
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def start_live(self, first: dict[str, Any] | None = None) -> None:
        """Send ``first`` (if any), then the held deliveries, then go live. Loop thread only."""
        if self.state is not ChannelState.OPEN or self._held is None:
            return
        held, self._held = self._held, None
        if first is not None:
            self._enqueue(format_data_frame(first))
        for frame in held:
            self._enqueue(frame)

    def _submit(self, frame: str, live: bool = False) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._enqueue, frame, live)
        except RuntimeError:
            # Loop shut down between the check and the call
            return

    def _enqueue(self, frame: str, live: bool = False) -> None:
        if self.state is not ChannelState.OPEN:
            return
        buffered = self._held if live and self._held is not None else None
        size = len(buffered) if buffered is not None else self._queue.qsize()
        if size >= self.max_queue_size:
            self.dropped_frames += 1
            logger.warning(
                f"Stream queue full on {self.topic_key}, dropped frame "
                f"({self.dropped_frames} dropped so far)"
            )
            return
        if buffered is not None:
            buffered.append(frame)
        else:
            self._queue.put_nowait(frame)

    async def _heartbeat(self) -> None:
        frame = format_comment_frame(self.heartbeat_comment)
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            self._enqueue(frame)

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames until the channel closes; closes it on exit or cancellation."""
        try:
            while True:
                frame = await self._queue.get()
                if frame is _CLOSED:
                    break
                yield frame
        finally:
            self.close()

    def close(self) -> bool:
        """Release the channel. Returns False when it was already closed."""
        with self._close_lock:
            if self.state is ChannelState.CLOSED:
                return False
            self.state = ChannelState.CLOSED

        for task in list(self._tasks):
            task.cancel()
        self._bus.unsubscribe(self.topic_key, self)
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)
        logger.debug(f"Stream closed on {self.topic_key}")
        return True


class StreamManager:
    """Tracks open stream channels so shutdown can close them all."""

    def __init__(self, bus: EventBus, max_queue_size: int = 100) -> None:
        self.bus = bus
        self.max_queue_size = max_queue_size
        self.active_channels: set[EventStreamChannel] = set()

    def open(
        self,
        topic_key: str,
        heartbeat_interval: float,
        heartbeat_comment: str,
        hold_live: bool = False,
    ) -> EventStreamChannel:
        channel = EventStreamChannel(
            self.bus,
            topic_key,
            heartbeat_interval=heartbeat_interval,
            heartbeat_comment=heartbeat_comment,
            max_queue_size=self.max_queue_size,
            hold_live=hold_live,
            on_close=self.release,
        )
        channel.open()
        self.active_channels.add(channel)
        return channel

    def release(self, channel: EventStreamChannel) -> None:
        self.active_channels.discard(channel)

    def close_all(self) -> int:
        channels = list(self.active_channels)
        for channel in channels:
            channel.close()
        if channels:
            logger.info(f"Closed {len(channels)} open stream(s)")
        return len(channels)


class EventStreamResponse(StreamingResponse):
    """Streams a channel's frames and closes the channel however the response ends."""

    def __init__(self, channel: EventStreamChannel) -> None:
        super().__init__(
            channel.frames(),
            media_type=EVENT_STREAM_MEDIA_TYPE,
            headers=EVENT_STREAM_HEADERS,
        )
        self.channel = channel

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.channel.close()


def event_stream_response(channel: EventStreamChannel) -> EventStreamResponse:
    return EventStreamResponse(channel)

"""
Per-run progress channel and server-sent-event framing.

One writer (the run) and one reader (the HTTP stream). Events come out in
the order they went in; after the terminal event the channel is closed and
any further write raises ChannelClosedError.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from .errors import ChannelClosedError
from .models import ProgressEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class ProgressChannel:
    def __init__(self, run_id: str = ""):
        self.run_id = run_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._last_progress = 0
        self.terminal_event: Optional[ProgressEvent] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ProgressEvent) -> None:
        if self._closed:
            raise ChannelClosedError(f"[{self.run_id}] progress channel is closed")
        if self.terminal_event is not None:
            raise ChannelClosedError(f"[{self.run_id}] terminal event already emitted")
        if event.progress is not None:
            if event.progress < self._last_progress:
                raise ValueError(
                    f"progress went backwards: {event.progress} < {self._last_progress}"
                )
            self._last_progress = event.progress
        if event.is_terminal:
            self.terminal_event = event

        logger.debug(f"[{self.run_id}] emit {event.status.value} {event.progress}")
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            raise ChannelClosedError(f"[{self.run_id}] progress channel already closed")
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


def format_sse(event: ProgressEvent) -> str:
    """One `data:` frame per event, double-newline terminated."""
    return f"data: {event.to_json()}\n\n"


async def sse_stream(channel: ProgressChannel) -> AsyncIterator[str]:
    async for event in channel:
        yield format_sse(event)

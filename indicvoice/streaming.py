"""
indicvoice/streaming.py
========================
Streaming Result Channel — IndicVoice

Responsibility:
    - Deliver final VoiceResults from the streaming pipeline to one consumer
      as an async iterator
    - Buffer results published while the consumer is not waiting
    - End iteration once the channel is closed and drained

Single-producer / single-consumer. The producer is the pipeline's flush
path; the consumer is whoever iterates ``async for result in channel``.

This module does NOT:
    - Transcribe or reorder results (they arrive in flush order)
    - Support multiple concurrent consumers
"""

import asyncio
import logging
from collections import deque

from indicvoice.schemas import VoiceResult

logger = logging.getLogger("indicvoice.streaming")

_END_OF_STREAM = object()


class ResultChannel:
    """
    Async iterator over final transcription results.

    Args:
        maxsize: Optional bound on queued results. When the bound is hit the
                 oldest queued result is dropped. ``None`` means unbounded.
    """

    def __init__(self, maxsize: int | None = None) -> None:
        if maxsize is not None and maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self.maxsize = maxsize
        self._queue: deque[VoiceResult] = deque()
        self._waiter: asyncio.Future | None = None
        self._closed = False
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, result: VoiceResult) -> None:
        """Hand a result to the waiting consumer, or queue it."""
        if self._closed:
            logger.debug("Result published after close — dropped.")
            return

        waiter = self._waiter
        if waiter is not None and not waiter.done():
            self._waiter = None
            waiter.set_result(result)
            return

        if self.maxsize is not None and len(self._queue) >= self.maxsize:
            self._queue.popleft()
            self.dropped += 1
            logger.warning(
                "Result channel full (%d) — dropped oldest result.", self.maxsize
            )
        self._queue.append(result)

    def close(self) -> None:
        """Mark end-of-stream. Queued results are still delivered."""
        if self._closed:
            return
        self._closed = True
        waiter = self._waiter
        self._waiter = None
        if waiter is not None and not waiter.done():
            waiter.set_result(_END_OF_STREAM)

    def __aiter__(self) -> "ResultChannel":
        return self

    async def __anext__(self) -> VoiceResult:
        if self._queue:
            return self._queue.popleft()
        if self._closed:
            raise StopAsyncIteration
        if self._waiter is not None and not self._waiter.done():
            raise RuntimeError("ResultChannel supports a single consumer.")

        waiter = asyncio.get_running_loop().create_future()
        self._waiter = waiter
        try:
            result = await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None
        if result is _END_OF_STREAM:
            raise StopAsyncIteration
        return result

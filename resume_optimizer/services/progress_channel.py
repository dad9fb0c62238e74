"""
One-way progress stream bound to a single optimization run.

The producer (the orchestrator) calls ``send``/``close`` and polls
``is_cancelled`` between steps. The consumer (an HTTP streaming response,
or a test) iterates ``events()``. Heartbeats are produced by an independent
task so they keep flowing while a long generation call is in flight.
"""
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional

from resume_optimizer.core.config import settings
from resume_optimizer.core.exceptions import ErrorCode
from resume_optimizer.schemas.events import error_event, heartbeat_event, is_terminal_event

logger = logging.getLogger(__name__)

_CLOSED = object()


class ProgressChannel:
    def __init__(
        self,
        heartbeat_seconds: Optional[float] = None,
        max_lifetime_seconds: Optional[float] = None,
    ):
        self.heartbeat_seconds = settings.stream.heartbeat_seconds if heartbeat_seconds is None else heartbeat_seconds
        self.max_lifetime_seconds = (
            settings.stream.max_lifetime_seconds if max_lifetime_seconds is None else max_lifetime_seconds
        )
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._cancelled = asyncio.Event()
        self._closed = False
        self._terminal = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def reached_terminal(self) -> bool:
        return self._terminal

    def cancel(self, reason: str = "client disconnected") -> None:
        if not self._cancelled.is_set():
            logger.info(f"Progress channel cancelled: {reason}")
            self._cancelled.set()

    async def send(self, event: Dict[str, Any]) -> None:
        if self._closed:
            logger.debug(f"Dropping event on closed channel: {event.get('status') or event.get('type')}")
            return
        if is_terminal_event(event):
            self._terminal = True
        await self._queue.put(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def _heartbeat(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.heartbeat_seconds)
            if self._closed:
                break
            self._queue.put_nowait(heartbeat_event())

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """
        Yield events until the channel closes or its lifetime cap expires.
        Leaving the iteration early (client gone) is treated as cancellation.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_lifetime_seconds
        heartbeat = asyncio.create_task(self._heartbeat())
        try:
            while True:
                remaining = deadline - loop.time()
                try:
                    if remaining <= 0:
                        raise asyncio.TimeoutError()
                    item = await asyncio.wait_for(self._queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    if not self._terminal:
                        logger.warning(f"Progress stream exceeded {self.max_lifetime_seconds}s without finishing")
                        self._terminal = True
                        self.cancel("stream lifetime exceeded")
                        yield error_event(
                            "Optimization timed out. Please try again.",
                            ErrorCode.TIMEOUT_ERROR.value,
                        )
                    self.close()
                    return
                if item is _CLOSED:
                    return
                yield item
        finally:
            heartbeat.cancel()
            if not self._closed:
                self._closed = True
                self.cancel()

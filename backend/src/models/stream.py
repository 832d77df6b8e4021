import asyncio
import logging
from typing import AsyncIterator, Callable, Dict, List, Optional

from utilities import SUBSCRIBER_QUEUE_SIZE

logger = logging.getLogger(__name__)

# queued by end(); the body iterator stops when it reaches it
_END = None


class StreamClosedError(Exception):
    pass


class EventStream:
    '''
    Response body of one SSE client.

    The channel writes text chunks into a bounded queue and the HTTP layer
    drains it through `body()`. Writes never block: when the queue is full
    the oldest chunk is dropped so a slow client cannot stall a publisher.
    Close callbacks fire exactly once, when the body is drained, cancelled
    by a client disconnect, or torn down by an error.
    '''

    def __init__(self, client_host: Optional[str] = None, last_event_id: Optional[str] = None,
                 maxsize: int = SUBSCRIBER_QUEUE_SIZE):
        self.client_host = client_host
        self.last_event_id = last_event_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.status_code: Optional[int] = None
        self.headers: Dict[str, str] = {}
        self.dropped = 0
        self.ended = False       # no more writes accepted
        self.finished = False    # body done, close callbacks fired
        self._close_callbacks: List[Callable[[], None]] = []

    def write_head(self, status_code: int, headers: Dict[str, str]) -> None:
        self.status_code = status_code
        self.headers.update(headers)

    def write(self, chunk: str) -> None:
        if self.ended:
            raise StreamClosedError(f"write after end ({self.client_host or 'unknown'})")
        self._put(chunk)

    def end(self) -> None:
        if self.ended:
            return
        self.ended = True
        self._put(_END)

    def _put(self, item) -> None:
        if self.queue.full():
            try:
                _ = self.queue.get_nowait()
                self.dropped += 1
            except asyncio.QueueEmpty:
                pass
            logger.warning("Slow consumer %s: oldest queued chunk dropped", self.client_host or "unknown")
        self.queue.put_nowait(item)

    def on_close(self, callback: Callable[[], None]) -> None:
        if self.finished:
            callback()
            return
        self._close_callbacks.append(callback)

    def finish(self) -> None:
        if self.finished:
            return
        self.finished = True
        # wakes a body() still waiting on the queue
        self.end()
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Close callback failed for %s", self.client_host or "unknown")

    async def body(self) -> AsyncIterator[str]:
        try:
            while True:
                chunk = await self.queue.get()
                if chunk is _END:
                    break
                yield chunk
        finally:
            self.finish()

    def __aiter__(self) -> AsyncIterator[str]:
        return self.body()

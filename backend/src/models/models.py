import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, List, Optional, Set

from models.stream import EventStream
from schemas import ChannelOptions
from utilities import (
    PING_OUTPUT,
    SSE_HEADERS,
    EventMatcher,
    matches_event,
    parse_last_event_id,
    render_message,
    render_retry,
)

logger = logging.getLogger(__name__)


# ------------ In-memory structures ------------
@dataclass(frozen=True)
class Message:
    id: int
    event_name: str
    output: str  # fully rendered wire block, replayed verbatim


class Connection:
    ''' One subscribed client stream and its optional event filter.'''

    def __init__(self, stream: EventStream, events: Optional[Iterable[EventMatcher]] = None):
        self.stream = stream
        self.events = list(events) if events else None
        # one-shot max-duration timer
        self.expiry: Optional[asyncio.TimerHandle] = None
        self.released = False

    @property
    def client(self) -> str:
        return self.stream.client_host or "unknown"

    def release(self) -> bool:
        ''' Mark the connection released; False if it already was.'''
        if self.released:
            return False
        self.released = True
        if self.expiry is not None:
            self.expiry.cancel()
            self.expiry = None
        return True


class Channel:
    '''
    Broadcast channel for SSE clients.

    Published messages get a monotonically increasing id, are rendered to
    their wire form once, kept in a bounded history for replay and written
    to every connection whose event filter matches. Publish, subscribe and
    close serialize on `self.lock`; unsubscribe is a plain set mutation so it
    can run from timer callbacks and stream close hooks.
    '''

    def __init__(self, options: Optional[ChannelOptions] = None, name: str = "default",
                 verbose: bool = False):
        self.name = name
        self.options = options or ChannelOptions()
        self.verbose = verbose
        self.next_id = self.options.start_id
        self.connections: Set[Connection] = set()
        self.history: Deque[Message] = deque(maxlen=self.options.history_size)
        self.active = True
        self.lock = asyncio.Lock()
        # stats
        self.messages_published = 0

        self.ping_task: Optional[asyncio.Task] = None
        self._start_keepalive()

    # -------------- keepalive --------------
    def _start_keepalive(self):
        if not self.options.ping_interval or self.ping_task is not None or not self.active:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # built outside the event loop; first subscribe starts it
            return
        self.ping_task = loop.create_task(self._keepalive_loop())

    async def _keepalive_loop(self):
        interval = self.options.ping_interval / 1000
        while self.active:
            await asyncio.sleep(interval)
            await self.publish()

    # -------------- publish / subscribe --------------
    async def publish(self, data: Any = None, event_name: Optional[str] = None) -> Optional[int]:
        if self.verbose:
            logger.info("Channel %s: publish %s (%d clients)",
                        self.name, event_name or "[ping]", len(self.connections))
        if not self.active:
            logger.warning("Channel %s: publish after close ignored", self.name)
            return None

        message_id = None
        async with self.lock:
            # close() may have run while we waited on the lock
            if not self.active:
                logger.warning("Channel %s: publish after close ignored", self.name)
                return None
            if (data is None or data == "") and not event_name:
                # no history entry for a ping nobody will receive
                if not self.connections:
                    return None
                event_name = ""
                output = PING_OUTPUT
            else:
                message_id = self.next_id
                self.next_id += 1
                event_name = event_name or ""
                output = render_message(message_id, event_name, data)
                self.history.append(Message(message_id, event_name, output))
                self.messages_published += 1
            recipients = [c for c in self.connections if matches_event(c.events, event_name)]

        # fan-out outside lock
        for conn in recipients:
            self._write(conn, output)
        return message_id

    async def subscribe(self, stream: EventStream,
                        events: Optional[Iterable[EventMatcher]] = None) -> Connection:
        conn = Connection(stream, events)
        if self.verbose:
            logger.info("Channel %s: subscribe from %s", self.name, conn.client)
        if not self.active:
            return self._reject(conn)

        stream.write_head(200, SSE_HEADERS)
        body = render_retry(self.options.client_retry_interval)

        # replay and registration are atomic with respect to publish and close
        async with self.lock:
            if not self.active:
                return self._reject(conn)
            body += "".join(m.output for m in self._replay(conn, stream.last_event_id))
            self._write(conn, body)
            self.connections.add(conn)

        self._start_keepalive()
        if self.options.max_stream_duration:
            loop = asyncio.get_running_loop()
            conn.expiry = loop.call_later(self.options.max_stream_duration / 1000, self._expire, conn)
        stream.on_close(lambda: self._stream_closed(conn))
        return conn

    def _replay(self, conn: Connection, last_event_id: Optional[str]) -> List[Message]:
        '''
        History a new connection should see before going live.

        With a Last-Event-ID the depth counts every message published since
        that id, so the window is cut before filtering and never reaches back
        past it. Without one, the default rewind is the last N messages the
        connection's filter accepts.
        '''
        last_id = parse_last_event_id(last_event_id)
        if last_id is None:
            if self.options.rewind <= 0:
                return []
            matching = [m for m in self.history if matches_event(conn.events, m.event_name)]
            return matching[-self.options.rewind:]
        depth = self.next_id - 1 - last_id
        if depth <= 0:
            return []
        window = list(self.history)[-depth:]
        return [m for m in window if matches_event(conn.events, m.event_name)]

    def _reject(self, conn: Connection) -> Connection:
        logger.warning("Channel %s: subscribe after close ignored", self.name)
        conn.release()
        conn.stream.end()
        return conn

    def _write(self, conn: Connection, output: str):
        # one broken client must not stop delivery to the rest
        try:
            conn.stream.write(output)
        except Exception:
            logger.warning("Channel %s: write to %s failed", self.name, conn.client, exc_info=True)

    # -------------- teardown --------------
    def _expire(self, conn: Connection):
        conn.expiry = None
        if self.verbose:
            logger.info("Channel %s: unsubscribe %s via timeout", self.name, conn.client)
        self.unsubscribe(conn)

    def _stream_closed(self, conn: Connection):
        if self.verbose:
            logger.info("Channel %s: unsubscribe %s via stream close", self.name, conn.client)
        self.unsubscribe(conn)

    def unsubscribe(self, conn: Connection) -> None:
        if not conn.release():
            return
        if self.verbose:
            logger.info("Channel %s: unsubscribe %s", self.name, conn.client)
        conn.stream.end()
        self.connections.discard(conn)

    async def close(self) -> None:
        async with self.lock:
            if not self.active:
                return
            self.active = False
            connections = list(self.connections)
            self.connections.clear()
            self.history.clear()
            ping_task, self.ping_task = self.ping_task, None

        for conn in connections:
            self.unsubscribe(conn)

        if ping_task is not None and ping_task is not asyncio.current_task():
            ping_task.cancel()
            try:
                await ping_task
            except asyncio.CancelledError:
                pass
        logger.info("Channel %s closed (%d clients ended)", self.name, len(connections))

    # -------------- observability --------------
    def list_clients(self) -> Dict[str, int]:
        rollup: Dict[str, int] = {}
        for conn in list(self.connections):
            rollup[conn.client] = rollup.get(conn.client, 0) + 1
        return rollup

    def get_subscriber_count(self) -> int:
        return len(self.connections)

    def stats(self) -> Dict[str, Any]:
        return {
            "active": self.active,
            "subscribers": len(self.connections),
            "history": len(self.history),
            "next_id": self.next_id,
            "messages_published": self.messages_published,
        }

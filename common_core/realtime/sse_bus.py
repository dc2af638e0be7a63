from __future__ import annotations

import asyncio
import itertools
import json
import logging
import threading
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional

log = logging.getLogger("firedispatch.realtime")


@dataclass
class SseEvent:
    id: str
    event: str
    data_json: str
    room: Optional[str] = None  # None = broadcast to every listener


@dataclass(eq=False)
class _Subscriber:
    rooms: frozenset[str]
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue
    closed: bool = False

    def accepts(self, ev: SseEvent) -> bool:
        return ev.room is None or ev.room in self.rooms


class SseBus:
    """
    In-process fan-out for server-sent events.

    Listeners subscribe with a set of rooms (``station-<id>``) and always
    receive broadcast events as well. ``publish`` may be called from any
    thread: sync route handlers run in the threadpool, while subscribers
    live on the event loop, so delivery goes through
    ``call_soon_threadsafe``.

    Each listener queue holds at most ``queue_size`` undelivered events; a
    listener that falls further behind is dropped and its stream ends.
    """

    def __init__(self, maxlen: int = 5000, queue_size: int = 1000):
        self._events: list[SseEvent] = []
        self._maxlen = maxlen
        self._queue_size = queue_size
        self._subs: set[_Subscriber] = set()
        self._lock = threading.Lock()
        self._seq = itertools.count(1)

    def publish(self, event: str, data: dict, room: Optional[str] = None) -> SseEvent:
        with self._lock:
            ev = SseEvent(
                id=str(next(self._seq)),
                event=event,
                data_json=json.dumps(data, ensure_ascii=False, default=str),
                room=room,
            )
            self._events.append(ev)
            if len(self._events) > self._maxlen:
                self._events = self._events[-self._maxlen :]
            subs = [s for s in self._subs if s.accepts(ev)]

        for sub in subs:
            try:
                sub.loop.call_soon_threadsafe(self._deliver, sub, ev)
            except RuntimeError:
                # listener's loop already closed
                with self._lock:
                    self._subs.discard(sub)
        return ev

    def _deliver(self, sub: _Subscriber, ev: SseEvent) -> None:
        # runs on the listener's loop
        if sub.closed:
            return
        try:
            sub.queue.put_nowait(ev)
        except asyncio.QueueFull:
            sub.closed = True
            with self._lock:
                self._subs.discard(sub)
            log.warning("sse_listener_dropped", extra={"event_id": ev.id})
            while not sub.queue.empty():
                sub.queue.get_nowait()
            sub.queue.put_nowait(None)

    def broadcast(self, event: str, data: dict) -> SseEvent:
        return self.publish(event, data, room=None)

    def emit_to(self, room: str, event: str, data: dict) -> SseEvent:
        return self.publish(event, data, room=room)

    def listener_count(self) -> int:
        with self._lock:
            return len(self._subs)

    async def subscribe(
        self, rooms: Iterable[str] = (), last_event_id: Optional[str] = None
    ) -> AsyncIterator[SseEvent]:
        sub = _Subscriber(
            rooms=frozenset(rooms),
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        with self._lock:
            # unknown or expired ids replay nothing
            backlog: list[SseEvent] = []
            if last_event_id:
                for i, ev in enumerate(self._events):
                    if ev.id == last_event_id:
                        backlog = [e for e in self._events[i + 1 :] if sub.accepts(e)]
                        break
            self._subs.add(sub)

        try:
            for ev in backlog:
                yield ev
            while True:
                ev = await sub.queue.get()
                if ev is None:
                    return
                yield ev
        finally:
            with self._lock:
                self._subs.discard(sub)

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from common_core.realtime.sse_bus import SseEvent


def format_event(ev: SseEvent) -> str:
    return f"id: {ev.id}\nevent: {ev.event}\ndata: {ev.data_json}\n\n"


async def with_heartbeat(it: AsyncIterator[SseEvent], interval_s: float = 15.0) -> AsyncIterator[str]:
    # Keep one pending __anext__ across heartbeats; cancelling it on timeout
    # would close the underlying subscription.
    pending = asyncio.ensure_future(it.__anext__())
    try:
        while True:
            done, _ = await asyncio.wait({pending}, timeout=interval_s)
            if not done:
                yield ": hb\n\n"
                continue
            try:
                ev = pending.result()
            except StopAsyncIteration:
                return
            yield format_event(ev)
            pending = asyncio.ensure_future(it.__anext__())
    finally:
        if not pending.done():
            pending.cancel()

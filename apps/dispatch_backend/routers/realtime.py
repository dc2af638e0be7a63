from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from apps.dispatch_backend.runtime import sse_bus
from apps.dispatch_backend.services.notify import station_room
from common_core.config import settings
from common_core.realtime.sse_heartbeat import with_heartbeat

router = APIRouter(prefix="/realtime", tags=["realtime"])


@router.get("/events")
async def events(request: Request, station_id: Optional[int] = None):
    # a console joins its station's room; broadcasts reach every listener
    rooms = [station_room(station_id)] if station_id is not None else []
    last_id = request.headers.get("Last-Event-ID") or request.query_params.get("lastEventId")
    sub = sse_bus.subscribe(rooms=rooms, last_event_id=last_id)

    async def gen():
        async for chunk in with_heartbeat(sub, interval_s=settings.sse_heartbeat_seconds):
            if await request.is_disconnected():
                break
            yield chunk

    return StreamingResponse(
        gen(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )

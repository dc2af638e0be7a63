from __future__ import annotations

from common_core.config import settings
from common_core.realtime.sse_bus import SseBus

sse_bus = SseBus(maxlen=settings.notify_buffer_size, queue_size=settings.sse_client_queue_size)

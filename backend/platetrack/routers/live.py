import asyncio

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..deps import get_broadcaster
from ..live import LiveBroadcaster, format_sse

router = APIRouter(prefix="/api/v1", tags=["live"])

HEARTBEAT_SECONDS = 15


@router.get("/live")
async def live_feed(request: Request, broadcaster: LiveBroadcaster = Depends(get_broadcaster)):
    """
    Server-Sent Events stream of newly stored plate reads.

    Emits `plate_read` events and a comment heartbeat every 15 seconds.
    """
    queue = broadcaster.subscribe()

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_SECONDS)
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
                    continue
                yield format_sse(message)
        finally:
            broadcaster.unsubscribe(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )

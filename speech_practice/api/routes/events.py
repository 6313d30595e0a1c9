import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from speech_practice.api.deps import get_practice
from speech_practice.services.context import PracticeContext
from speech_practice.services.events import event_to_dict

router = APIRouter(prefix="/api/v1", tags=["events"])
logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_SEC = 15.0


@router.get("/events/stream")
async def event_stream(request: Request, practice: PracticeContext = Depends(get_practice)):
    """Поток событий практики через Server-Sent Events"""
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = practice.bus.subscribe(queue.put_nowait)

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_INTERVAL_SEC)
                except asyncio.TimeoutError:
                    # Heartbeat keeps the connection alive
                    yield ": heartbeat\n\n"
                    continue
                yield f"data: {json.dumps(event_to_dict(event), ensure_ascii=False)}\n\n"
        finally:
            unsubscribe()
            logger.debug("SSE client disconnected")

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from carefile.database import get_db
from carefile.services import records
from carefile.services.event_bus import event_bus

logger = logging.getLogger(__name__)
router = APIRouter()

PING_INTERVAL = 10.0


@router.websocket("/ws/cases/{case_id}")
async def case_events_ws(websocket: WebSocket, case_id: str):
    """Push updates for one case (analysis_complete, analysis_failed, case_updated).

    A ping is sent whenever nothing happened for ``PING_INTERVAL`` seconds.
    """
    await websocket.accept()
    db = await get_db()
    if not await records.find_case(db, case_id):
        await websocket.send_json({"type": "error", "message": "Case not found"})
        await websocket.close()
        return

    queue = event_bus.subscribe(case_id)
    logger.info("Client subscribed to case %s", case_id)
    try:
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=PING_INTERVAL)
            except asyncio.TimeoutError:
                event = {"type": "ping"}

            try:
                await websocket.send_json(event)
            except Exception:
                logger.debug("Failed to send event to case %s client", case_id)
                break
    except WebSocketDisconnect:
        logger.info("Client disconnected from case %s", case_id)
    finally:
        event_bus.unsubscribe(case_id, queue)

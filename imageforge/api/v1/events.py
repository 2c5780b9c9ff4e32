"""
Progress Stream

WS /ws/progress - Every progress event as a JSON text frame.

No replay: a client sees only events published after it connected.
Anything the client sends is ignored.
"""

import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from imageforge.core.events import EventBroadcaster, get_broadcaster
from imageforge.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


async def _forward_events(websocket: WebSocket, queue: asyncio.Queue):
    while True:
        event = await queue.get()
        await websocket.send_json(event)


@router.websocket("/progress")
async def progress_stream(
    websocket: WebSocket,
    broadcaster: EventBroadcaster = Depends(get_broadcaster)
):
    # Subscribed before the handshake completes
    queue = broadcaster.subscribe()
    await websocket.accept()
    logger.info("progress_client_connected", clients=broadcaster.subscriber_count)

    sender = asyncio.create_task(_forward_events(websocket, queue))
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning("progress_send_failed", error=str(e), error_type=type(e).__name__)
        broadcaster.unsubscribe(queue)
        logger.info("progress_client_disconnected", clients=broadcaster.subscriber_count)

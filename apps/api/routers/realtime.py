"""WebSocket endpoint for realtime conversation changes."""

import asyncio
from uuid import UUID

import orjson
import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from artifact_core.errors import ChannelDisconnectedError
from artifact_core.realtime.hub import get_realtime_hub
from config import get_settings

logger = structlog.get_logger()

router = APIRouter(tags=["Realtime"])


async def _send(websocket: WebSocket, payload: dict) -> None:
    await websocket.send_text(orjson.dumps(payload).decode())


@router.websocket("/ws/conversations/{conversation_id}")
async def conversation_websocket(websocket: WebSocket, conversation_id: UUID):
    """Stream change events for one conversation.

    Sends ``connected`` first, then one message per change event
    (operation, table, row) and a ``ping`` when the channel is idle.
    """
    hub = get_realtime_hub()
    ping_seconds = get_settings().realtime_ping_seconds

    await websocket.accept()
    subscription = await hub.subscribe(conversation_id)

    try:
        await _send(
            websocket,
            {"event_type": "connected", "conversation_id": str(conversation_id)},
        )

        while True:
            try:
                event = await asyncio.wait_for(subscription.get(), timeout=ping_seconds)
            except asyncio.TimeoutError:
                await _send(websocket, {"event_type": "ping"})
                continue
            except ChannelDisconnectedError:
                # Client reconnects and refetches
                await websocket.close(code=status.WS_1012_SERVICE_RESTART)
                break

            await _send(websocket, {"event_type": "change", **event.model_dump(mode="json")})

    except WebSocketDisconnect:
        logger.debug("Realtime client disconnected", conversation_id=str(conversation_id))
    finally:
        await subscription.close()

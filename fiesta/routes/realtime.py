import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from fiesta.realtime.active_users import active_users
from fiesta.realtime.hub import hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def realtime(websocket: WebSocket):
    """Clients send ``{"action": "subscribe" | "unsubscribe", "room": ...}``."""
    await hub.connect(websocket)
    count = await active_users.increment()
    hub.publish("stats:active-users", {"count": count}, exclude=websocket)
    await websocket.send_json({"event": "stats:active-users", "data": {"count": count}})

    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action") if isinstance(message, dict) else None
            room = message.get("room") if isinstance(message, dict) else None
            if action not in ("subscribe", "unsubscribe") or not isinstance(room, str) or not room:
                await websocket.send_json({"event": "error", "data": {"message": "Expected subscribe or unsubscribe with a room"}})
                continue
            if action == "subscribe":
                hub.join(websocket, room)
                await websocket.send_json({"event": "subscribed", "room": room})
            else:
                hub.leave(websocket, room)
                await websocket.send_json({"event": "unsubscribed", "room": room})
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
        count = await active_users.decrement()
        hub.publish("stats:active-users", {"count": count})

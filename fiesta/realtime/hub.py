"""Fan-out of live events to websocket clients.

Clients receive every broadcast plus the events of the rooms they
subscribe to (``match:<id>``, ``team:<id>`` ...). Publishing never waits
on delivery.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class RealtimeHub:
    def __init__(self):
        self.connections: Set[WebSocket] = set()
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self._tasks: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.connections.add(websocket)
        logger.info("Realtime client connected (%d open)", len(self.connections))

    def disconnect(self, websocket: WebSocket) -> None:
        self.connections.discard(websocket)
        for members in self.rooms.values():
            members.discard(websocket)
        self.rooms = {room: members for room, members in self.rooms.items() if members}
        logger.info("Realtime client disconnected (%d open)", len(self.connections))

    def join(self, websocket: WebSocket, room: str) -> None:
        self.rooms.setdefault(room, set()).add(websocket)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    async def _send(self, websocket: WebSocket, message: dict) -> None:
        try:
            await websocket.send_json(message)
        except Exception:
            # a dead socket is cleaned up by its own receive loop
            logger.debug("Dropped realtime message for a closed connection")

    def publish(
        self,
        event: str,
        data: Any,
        room: Optional[str] = None,
        exclude: Optional[WebSocket] = None,
    ) -> int:
        """Schedule delivery of ``event`` and return the number of recipients."""
        targets = self.rooms.get(room, set()) if room else self.connections
        recipients = [ws for ws in targets if ws is not exclude]
        if not recipients:
            return 0

        message = {"event": event, "data": jsonable_encoder(data)}
        if room:
            message["room"] = room
        for websocket in recipients:
            task = asyncio.create_task(self._send(websocket, message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return len(recipients)


hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    return hub

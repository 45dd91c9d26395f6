# backend/livechat/realtime/broadcaster.py
import logging

import socketio

logger = logging.getLogger(__name__)


class Broadcaster:
    """Handle used by the relay and the REST layer to push realtime events.

    Rooms are named after chat ids. Delivery is fire and forget.
    """

    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio

    async def join(self, sid: str, chat_id: str):
        await self.sio.enter_room(sid, chat_id)

    async def to_room(self, chat_id: str, event: str, data: dict):
        await self.sio.emit(event, data, room=chat_id)

    async def to_sid(self, sid: str, event: str, data: dict):
        await self.sio.emit(event, data, to=sid)


def create_socket_server(cors_origins=None) -> socketio.AsyncServer:
    # None keeps engineio on same-origin only; an empty list would turn the check off
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=cors_origins or None,
        logger=False,
        engineio_logger=False,
    )

import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open notification sockets per user.

    A user may be connected from several devices at once; every socket
    registered for a user receives that user's events.
    """

    def __init__(self):
        self.user_connections: dict[str, set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        await websocket.accept()
        self.user_connections.setdefault(user_id, set()).add(websocket)
        logger.info(
            "User %s connected to notifications (%d open)",
            user_id,
            len(self.user_connections[user_id]),
        )

    def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        sockets = self.user_connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.user_connections[user_id]
        logger.info("User %s disconnected from notifications", user_id)

    def is_online(self, user_id: str) -> bool:
        return bool(self.user_connections.get(user_id))

    async def send_to_user(self, user_id: str, data: dict) -> int:
        """Send a JSON frame to every socket of ``user_id``.

        Returns the number of sockets reached. Sockets that fail are dropped.
        """
        sent = 0
        for websocket in list(self.user_connections.get(user_id, ())):
            try:
                await websocket.send_json(data)
                sent += 1
            except Exception as e:
                logger.error("Failed to send notification to user %s: %s", user_id, e)
                self.disconnect(websocket, user_id)
        return sent

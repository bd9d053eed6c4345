import asyncio
import logging
import uuid

from monkmode.config import settings
from monkmode.realtime.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

FRIEND_REQUEST_RECEIVED = "ReceiveFriendRequest"
FRIEND_REQUEST_ACCEPTED = "FriendRequestAccepted"
FRIEND_REQUEST_REJECTED = "FriendRequestRejected"


class HubNotificationSink:
    """Fire-and-forget delivery of events to the notification hub.

    ``send`` schedules delivery on the running loop and returns at once.
    Each delivery is bounded by ``timeout`` seconds; failures are logged and
    never reach the caller.
    """

    def __init__(self, manager: ConnectionManager, timeout: float | None = None):
        self.manager = manager
        self.timeout = (
            settings.NOTIFICATION_TIMEOUT_SECONDS if timeout is None else timeout
        )
        self._pending: set[asyncio.Task] = set()

    def send(self, recipient_id: uuid.UUID, event: str, payload: dict) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop, dropping %s for user %s", event, recipient_id
            )
            return

        task = loop.create_task(self._deliver(recipient_id, event, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, recipient_id: uuid.UUID, event: str, payload: dict) -> int:
        message = {"event": event, "data": payload}
        try:
            return await asyncio.wait_for(
                self.manager.send_to_user(str(recipient_id), message),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Delivery of %s to user %s timed out after %.1fs",
                event,
                recipient_id,
                self.timeout,
            )
        except Exception:
            logger.exception("Delivery of %s to user %s failed", event, recipient_id)
        return 0

    async def drain(self) -> None:
        """Wait for deliveries still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def _send(notifier, recipient_id: uuid.UUID, event: str, payload: dict) -> None:
    if notifier is None:
        return
    try:
        notifier.send(recipient_id, event, payload)
    except Exception:
        # Notifications are best-effort; the state change already committed
        logger.exception("Notification %s to user %s failed", event, recipient_id)


def notify_friend_request(
    notifier,
    requester_id: uuid.UUID,
    requester_username: str,
    recipient_id: uuid.UUID,
) -> None:
    """Tell the recipient a friend request has arrived."""
    _send(
        notifier,
        recipient_id,
        FRIEND_REQUEST_RECEIVED,
        {
            "requester_id": str(requester_id),
            "requester_username": requester_username,
        },
    )


def notify_request_accepted(
    notifier,
    friendship_id: uuid.UUID,
    accepted_by: uuid.UUID,
    requester_id: uuid.UUID,
) -> None:
    """Tell the original requester their request was accepted."""
    _send(
        notifier,
        requester_id,
        FRIEND_REQUEST_ACCEPTED,
        {"user_id": str(accepted_by), "friendship_id": str(friendship_id)},
    )


def notify_request_rejected(
    notifier,
    friendship_id: uuid.UUID,
    rejected_by: uuid.UUID,
    requester_id: uuid.UUID,
) -> None:
    """Tell the original requester their request was rejected."""
    _send(
        notifier,
        requester_id,
        FRIEND_REQUEST_REJECTED,
        {"user_id": str(rejected_by), "friendship_id": str(friendship_id)},
    )

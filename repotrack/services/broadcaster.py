"""
Real-time notifications for repository changes.

The orchestrator emits an event after every committed status transition;
how (and whether) it reaches clients is up to the broadcaster.
"""

import logging
from typing import Any, Dict

import socketio

logger = logging.getLogger(__name__)

REPOSITORY_ADDED = "repository:added"
REPOSITORY_UPDATED = "repository:updated"


class Broadcaster:
    """Base broadcaster. Subclasses deliver events to subscribers."""

    async def emit(self, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class SocketIOBroadcaster(Broadcaster):
    """Fans events out to every connected Socket.IO client."""

    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio

    async def emit(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            await self.sio.emit(event, payload)
        except Exception as e:
            # Delivery is best-effort
            logger.warning(f"Failed to broadcast {event}: {e}")


def create_socket_server(cors_allowed_origins) -> socketio.AsyncServer:
    """Create the ASGI Socket.IO server clients subscribe to."""
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=cors_allowed_origins
    )

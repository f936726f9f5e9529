"""WebSocket endpoint for realtime ledger events."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from approvals.notifications.notifier import ConnectionHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])

ADMIN_ROLE = "admin"


@router.websocket("/events")
async def events(websocket: WebSocket, user_id: str | None = None, role: str = "user") -> None:
    """Stream user or admin events until the client disconnects."""
    hub: ConnectionHub = websocket.app.state.notifier
    await websocket.accept()
    hub.connect(websocket, user_id=user_id, admin=role == ADMIN_ROLE)
    logger.debug("Event session opened", extra={"user_id": user_id, "role": role})
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
        logger.debug("Event session closed", extra={"user_id": user_id, "role": role})

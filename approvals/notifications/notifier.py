"""Realtime push of ledger events to connected sessions."""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Protocol
from uuid import UUID

from fastapi import WebSocket

logger = logging.getLogger(__name__)

# Event names
USER_UPDATED = "user:updated"
TRANSACTION_CREATED = "transaction:created"
TRANSACTION_UPDATED = "transaction:updated"


class Notifier(Protocol):
    """Fire-and-forget event delivery; callers never wait for acknowledgment."""

    def notify_user(self, user_id: UUID | str, event: str, payload: dict[str, Any]) -> None: ...

    def notify_admins(self, event: str, payload: dict[str, Any]) -> None: ...


class ConnectionHub:
    """Tracks WebSocket sessions per user plus the set of admin sessions."""

    def __init__(self) -> None:
        self._user_sessions: dict[str, set[WebSocket]] = defaultdict(set)
        self._admin_sessions: set[WebSocket] = set()
        self._pending: set[asyncio.Task] = set()

    def connect(self, websocket: WebSocket, user_id: str | None = None, admin: bool = False) -> None:
        if user_id:
            self._user_sessions[user_id].add(websocket)
        if admin:
            self._admin_sessions.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._admin_sessions.discard(websocket)
        for user_id in list(self._user_sessions):
            sessions = self._user_sessions[user_id]
            sessions.discard(websocket)
            if not sessions:
                del self._user_sessions[user_id]

    def session_count(self, user_id: str | None = None) -> int:
        if user_id is not None:
            return len(self._user_sessions.get(user_id, ()))
        return len(self._admin_sessions)

    def notify_user(self, user_id: UUID | str, event: str, payload: dict[str, Any]) -> None:
        for websocket in list(self._user_sessions.get(str(user_id), ())):
            self._dispatch(websocket, event, payload)

    def notify_admins(self, event: str, payload: dict[str, Any]) -> None:
        for websocket in list(self._admin_sessions):
            self._dispatch(websocket, event, payload)

    async def drain(self) -> None:
        """Wait for in-flight sends (used at shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _dispatch(self, websocket: WebSocket, event: str, payload: dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._send(websocket, event, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, websocket: WebSocket, event: str, payload: dict[str, Any]) -> None:
        try:
            await websocket.send_json({"event": event, "data": payload})
        except Exception as e:
            logger.warning("Dropping dead session", extra={"event": event, "error": str(e)})
            self.disconnect(websocket)

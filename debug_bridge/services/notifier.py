"""
Browser push channel.

ConnectionRegistry owns the set of open browser sockets (register /
unregister / broadcast). QuestionNotifier narrows it to the single
notify(session_id) capability the session coordinator is given, so the
coordinator never touches transport objects.

Delivery is best-effort: nothing is acknowledged, retried or queued for
clients that connect later.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

from debug_bridge.models.questions import QuestionSession

logger = logging.getLogger(__name__)


class MessageSink(Protocol):
    """Anything that can receive a text frame (starlette WebSocket does)."""

    async def send_text(self, data: str) -> None: ...


class ConnectionRegistry:
    """Process-local registry of connected browser clients."""

    def __init__(self) -> None:
        self._clients: List[MessageSink] = []

    def register(self, client: MessageSink) -> None:
        if client not in self._clients:
            self._clients.append(client)
        logger.info("WebSocket client connected", extra={"clients": len(self._clients)})

    def unregister(self, client: MessageSink) -> None:
        if client in self._clients:
            self._clients.remove(client)
            logger.info("WebSocket client disconnected", extra={"clients": len(self._clients)})

    def client_count(self) -> int:
        return len(self._clients)

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send ``message`` as JSON to every client. Returns how many got it.

        A client whose send fails is dropped from the registry.
        """
        payload = json.dumps(message)
        sent = 0
        for client in list(self._clients):
            try:
                await client.send_text(payload)
                sent += 1
            except Exception as e:
                logger.warning("Dropping WebSocket client after send failure: %s", e)
                self.unregister(client)
        return sent


class QuestionNotifier:
    """notify(session_id) → push the session's questions to all browser tabs."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        get_session: Callable[[str], Optional[QuestionSession]],
    ) -> None:
        self._registry = registry
        self._get_session = get_session
        self._tasks: Set[asyncio.Task] = set()

    def __call__(self, session_id: str) -> None:
        session = self._get_session(session_id)
        if session is None:
            logger.error("Session not found: %s", session_id)
            return

        message = {
            "type": "questions",
            "data": {
                "sessionId": session_id,
                "questions": [q.to_json_dict() for q in session.questions],
            },
        }
        task = asyncio.get_running_loop().create_task(self._push(session_id, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _push(self, session_id: str, message: Dict[str, Any]) -> int:
        sent = await self._registry.broadcast(message)
        logger.info("Pushed questions to %d clients (session: %s)", sent, session_id)
        if sent == 0:
            logger.warning("No connected clients to receive questions")
        return sent

    async def drain(self) -> None:
        """Wait for in-flight pushes (tests and shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

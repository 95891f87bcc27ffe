"""
WebSocket endpoint for browser tabs.

Each connected tab is registered with the ConnectionRegistry and receives
`{"type": "questions", ...}` pushes. Inbound frames are ignored; answers come
back over POST /api/questions/answer.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/")
@router.websocket("/ws")
async def browser_socket(websocket: WebSocket):
    registry = websocket.app.state.services.connections

    await websocket.accept()
    registry.register(websocket)
    try:
        await websocket.send_text(json.dumps({
            "type": "connected",
            "data": {"message": "Connected to debug MCP server"},
        }))
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        registry.unregister(websocket)

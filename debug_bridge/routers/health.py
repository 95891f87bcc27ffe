"""
Health Router
=============

Liveness endpoint used by the browser widget to detect the local bridge.
"""

from fastapi import APIRouter, Depends

from debug_bridge.core.utils import now_ms
from debug_bridge.routers.deps import get_services
from debug_bridge.services.container import DebugServices

router = APIRouter()


@router.get("/health")
async def health_check(services: DebugServices = Depends(get_services)):
    return {
        "success": True,
        "data": {
            "status": "ok",
            "timestamp": now_ms(),
            "activeSessions": services.sessions.get_active_session_count(),
            "connectedClients": services.connections.client_count(),
        },
    }

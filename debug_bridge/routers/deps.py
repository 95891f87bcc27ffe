"""
Router dependencies.
"""

from fastapi import Request

from debug_bridge.services.container import DebugServices


def get_services(request: Request) -> DebugServices:
    """The DebugServices instance attached to the app by create_app()."""
    return request.app.state.services

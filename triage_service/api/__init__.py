"""
API package for the triage queue service.
"""

from .main import app
from .websocket import manager, router as ws_router

__all__ = ["app", "manager", "ws_router"]

"""
Python client for the tracker API: HTTP client, login session store and the
Kanban board model used by front-ends.
"""

from app.tracker.client.api_client import ApiError, TrackerClient, urllib_transport
from app.tracker.client.kanban import KanbanBoard, PendingMove
from app.tracker.client.session import SessionStore

__all__ = [
    "ApiError",
    "KanbanBoard",
    "PendingMove",
    "SessionStore",
    "TrackerClient",
    "urllib_transport",
]

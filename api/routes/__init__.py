"""HTTP routers for the viewer API."""

from api.routes.actions import create_actions_router
from api.routes.admin import create_admin_router
from api.routes.messages import create_messages_router

__all__ = [
    "create_actions_router",
    "create_admin_router",
    "create_messages_router",
]

"""API module with all routers."""

from api import admin_router
from api import settings_router
from api import suggest_router

__all__ = [
    "admin_router",
    "settings_router",
    "suggest_router",
]

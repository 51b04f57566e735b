"""
Router package for the tester JSON API.

This package contains the dashboard's API routers, all mounted under
``<mount_path>/__api__``:
- settings: UI settings
- collections: Collection CRUD with nested requests
- requests: Saved request CRUD
- environments: Environment variables CRUD
- history: Recorded traffic
"""

from api.routers.collections import router as collections_router
from api.routers.environments import router as environments_router
from api.routers.history import router as history_router
from api.routers.requests import router as requests_router
from api.routers.settings import router as settings_router

__all__ = [
    "collections_router",
    "environments_router",
    "history_router",
    "requests_router",
    "settings_router",
]

"""
API package for the tester dashboard.

This package contains:
- deps.py: FastAPI dependency providers for DI
- schemas/: Request/response models
- routers/: API route handlers
"""

# Re-export dependency providers for convenient access
from api.deps import (
    get_current_user,
    get_storage,
    get_tester,
    get_tester_settings,
)

__all__ = [
    # Tester context
    "get_tester",
    "get_tester_settings",
    # Storage
    "get_storage",
    # Identity
    "get_current_user",
]

"""
Pydantic schemas for API requests and responses.

Organized by feature/domain:
- tester: Collections, saved requests, environments and UI settings
"""

from api.schemas.tester import (
    CollectionCreate,
    CollectionUpdate,
    EnvironmentCreate,
    EnvironmentUpdate,
    RequestCreate,
    RequestUpdate,
    SuccessResponse,
    TesterSettingsResponse,
)

__all__ = [
    "CollectionCreate",
    "CollectionUpdate",
    "EnvironmentCreate",
    "EnvironmentUpdate",
    "RequestCreate",
    "RequestUpdate",
    "SuccessResponse",
    "TesterSettingsResponse",
]

"""
FastAPI Dependency Providers for the tester API.

The tester is attached to a host application at runtime, so providers read
the live tester context from ``request.app.state.api_tester`` instead of
module-level singletons. Routers depend on the StorageProvider protocol,
never on the JSON implementation.

Usage in routers:
    from api.deps import get_storage, get_current_user
    from application.ports import StorageProvider

    @router.get("/history")
    async def list_history(
        user_id: str = Depends(get_current_user),
        storage: StorageProvider = Depends(get_storage),
    ):
        return await storage.get_history(user_id)

Testing:
    # Override dependencies in tests
    app.dependency_overrides[get_storage] = lambda: store
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import Depends, HTTPException, Request, status

from application.ports import StorageProvider
from backend.settings import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Tester Context
# =============================================================================


def get_tester(request: Request) -> Any:
    """Tester context installed by ``attach_api_tester``."""
    tester = getattr(request.app.state, "api_tester", None)
    if tester is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API tester is not attached to this application",
        )
    return tester


def get_storage(tester: Any = Depends(get_tester)) -> StorageProvider:
    return tester.storage


def get_tester_settings(tester: Any = Depends(get_tester)) -> Settings:
    return tester.settings


def get_current_user(settings: Settings = Depends(get_tester_settings)) -> str:
    """
    Owner of collections and history.

    The tester is single-user per host process; auth, when wanted, is applied
    through the dependencies passed to ``attach_api_tester``.
    """
    return settings.user_id


# =============================================================================
# Error translation
# =============================================================================


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """Turn storage failures into 500 responses for the dashboard."""
    try:
        yield
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to %s: %s", action, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}: {e}",
        ) from e


def not_found(kind: str, record_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{kind} {record_id} not found",
    )

"""
Settings router for the tester dashboard.

Serves the UI settings the dashboard needs to render request names and
locate the auto-captured collection.
"""

from fastapi import APIRouter, Depends

from api.deps import get_tester_settings
from api.schemas import TesterSettingsResponse
from backend.settings import Settings

router = APIRouter(
    prefix="/settings",
    tags=["settings"],
)


@router.get("", response_model=TesterSettingsResponse)
async def get_ui_settings(settings: Settings = Depends(get_tester_settings)):
    """
    Get dashboard settings.

    Returns:
        Mount path, auto-collection name and the path segments the dashboard
        hides when deriving short request names.
    """
    return TesterSettingsResponse(
        mount_path=settings.mount_path,
        auto_collection_name=settings.auto_collection_name,
        ignore_segments=list(settings.ignore_segments),
    )

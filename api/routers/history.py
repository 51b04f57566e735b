"""
History router.

History is written by the traffic interceptor; the dashboard only reads
and prunes it.

- GET /history - The 50 most recent entries, newest first
- DELETE /history - Clear the current user's history
- DELETE /history/{entry_id} - Delete one entry
"""

from fastapi import APIRouter, Depends, Response, status

from api.deps import get_current_user, get_storage, not_found, storage_errors
from application.ports import StorageProvider

router = APIRouter(
    prefix="/history",
    tags=["History"],
)


@router.get("")
async def list_history(
    user_id: str = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("load history"):
        history = await storage.get_history(user_id)
    return {"history": history}


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(
    user_id: str = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("clear history"):
        await storage.clear_history(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history_item(
    entry_id: str,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("delete history entry"):
        deleted = await storage.delete_history_item(entry_id)
    if not deleted:
        raise not_found("History entry", entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

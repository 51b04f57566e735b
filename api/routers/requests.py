"""
Saved requests router.

This router contains endpoints for:
- POST /requests - Save a request into a collection
- GET /requests/{request_id} - Get a saved request
- PUT /requests/{request_id} - Update a saved request
- DELETE /requests/{request_id} - Soft-delete a saved request
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from api.deps import get_storage, not_found, storage_errors
from api.schemas import RequestCreate, RequestUpdate, SuccessResponse
from application.ports import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/requests",
    tags=["Requests"],
)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: RequestCreate,
    storage: StorageProvider = Depends(get_storage),
):
    """
    Save a request.

    Requests saved into the auto-captured collection are stored with the
    regenerable cache; all others are user-owned.
    """
    with storage_errors("create request"):
        saved = await storage.create_request(payload.model_dump())
    logger.info("Saved request %s %s", saved["method"], saved["url"])
    return {"request": saved}


@router.get("/{request_id}")
async def get_request(
    request_id: str,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("load request"):
        saved = await storage.get_request(request_id)
    if saved is None:
        raise not_found("Request", request_id)
    return {"request": saved}


@router.put("/{request_id}", response_model=SuccessResponse)
async def update_request(
    request_id: str,
    payload: RequestUpdate,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("update request"):
        updated = await storage.update_request(request_id, payload.model_dump(exclude_unset=True))
    if not updated:
        raise not_found("Request", request_id)
    return SuccessResponse()


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: str,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("delete request"):
        deleted = await storage.delete_request(request_id)
    if not deleted:
        raise not_found("Request", request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

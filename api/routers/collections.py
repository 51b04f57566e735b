"""
Collections router.

This router contains endpoints for:
- GET /collections - List the user's collections with their requests
- POST /collections - Create a collection
- PUT /collections/{collection_id} - Update a collection
- DELETE /collections/{collection_id} - Soft-delete a collection
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from api.deps import get_current_user, get_storage, not_found, storage_errors
from api.schemas import CollectionCreate, CollectionUpdate, SuccessResponse
from application.ports import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/collections",
    tags=["Collections"],
)


@router.get("")
async def list_collections(
    user_id: str = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    """
    List collections owned by the current user.

    Each collection carries its non-deleted requests under ``requests``.
    """
    with storage_errors("load collections"):
        collections = await storage.get_collections(user_id)
    return {"collections": collections}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_collection(
    payload: CollectionCreate,
    user_id: str = Depends(get_current_user),
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("create collection"):
        collection = await storage.create_collection(
            user_id, payload.model_dump(exclude_none=True)
        )
    logger.info("Created collection %s (%s)", collection["id"], collection["name"])
    return {"collection": collection}


@router.put("/{collection_id}", response_model=SuccessResponse)
async def update_collection(
    collection_id: str,
    payload: CollectionUpdate,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("update collection"):
        updated = await storage.update_collection(
            collection_id, payload.model_dump(exclude_unset=True)
        )
    if not updated:
        raise not_found("Collection", collection_id)
    return SuccessResponse()


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(
    collection_id: str,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("delete collection"):
        deleted = await storage.delete_collection(collection_id)
    if not deleted:
        raise not_found("Collection", collection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

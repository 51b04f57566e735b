"""
Environments router.

Environments hold the ``{{VARIABLE}}`` values substituted into saved
request URLs. ``variables`` is JSON text.
"""

from fastapi import APIRouter, Depends, Response, status

from api.deps import get_storage, not_found, storage_errors
from api.schemas import EnvironmentCreate, EnvironmentUpdate, SuccessResponse
from application.ports import StorageProvider

router = APIRouter(
    prefix="/environments",
    tags=["Environments"],
)


@router.get("")
async def list_environments(storage: StorageProvider = Depends(get_storage)):
    with storage_errors("load environments"):
        environments = await storage.get_environments()
    return {"environments": environments}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_environment(
    payload: EnvironmentCreate,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("create environment"):
        environment = await storage.create_environment(payload.model_dump())
    return {"environment": environment}


@router.put("/{environment_id}", response_model=SuccessResponse)
async def update_environment(
    environment_id: str,
    payload: EnvironmentUpdate,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("update environment"):
        updated = await storage.update_environment(
            environment_id, payload.model_dump(exclude_unset=True)
        )
    if not updated:
        raise not_found("Environment", environment_id)
    return SuccessResponse()


@router.delete("/{environment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_environment(
    environment_id: str,
    storage: StorageProvider = Depends(get_storage),
):
    with storage_errors("delete environment"):
        deleted = await storage.delete_environment(environment_id)
    if not deleted:
        raise not_found("Environment", environment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

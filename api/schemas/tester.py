"""
Pydantic models for the tester JSON API.

Stored records stay plain dicts; these models only validate what the
dashboard sends. ``headers``, ``body`` and ``variables`` are JSON text,
exactly as they are persisted.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _upper(method: Optional[str]) -> Optional[str]:
    return method.upper() if method else method


class CollectionCreate(BaseModel):
    """Request model for creating a collection."""
    name: str = Field(min_length=1)
    headers: Optional[str] = Field(
        default=None,
        description="JSON object of headers sent with every request in the collection",
    )


class CollectionUpdate(BaseModel):
    """Request model for updating a collection (partial)."""
    name: Optional[str] = Field(default=None, min_length=1)
    headers: Optional[str] = None


class RequestCreate(BaseModel):
    """Request model for saving a request into a collection."""
    collection_id: str
    name: str
    method: str = "GET"
    url: str
    headers: Optional[str] = "{}"
    body: Optional[str] = None

    _normalize_method = field_validator("method")(_upper)

    class Config:
        json_schema_extra = {
            "example": {
                "collection_id": "3f2c9e7a1b2d4c5e",
                "name": "Create widget",
                "method": "POST",
                "url": "{{BASE_URL}}/widgets",
                "headers": "{\"Content-Type\": \"application/json\"}",
                "body": "{\"name\": \"string\"}",
            }
        }


class RequestUpdate(BaseModel):
    """Request model for updating a saved request (partial)."""
    collection_id: Optional[str] = None
    name: Optional[str] = None
    method: Optional[str] = None
    url: Optional[str] = None
    headers: Optional[str] = None
    body: Optional[str] = None

    _normalize_method = field_validator("method")(_upper)


class EnvironmentCreate(BaseModel):
    """Request model for creating an environment."""
    name: str = Field(min_length=1)
    variables: str = Field(default="{}", description="JSON object of variable values")


class EnvironmentUpdate(BaseModel):
    """Request model for updating an environment (partial)."""
    name: Optional[str] = Field(default=None, min_length=1)
    variables: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True


class TesterSettingsResponse(BaseModel):
    """UI settings served to the dashboard."""
    mount_path: str
    auto_collection_name: str
    ignore_segments: list[str]

"""
Shared fixtures for the tester test suite.

Every fixture points storage at ``tmp_path`` and pins the auto-collection
name, so tests never read the working directory's pyproject.toml.
"""

import pytest
from fastapi import FastAPI, Request
from pydantic import BaseModel

from backend.settings import Settings
from infrastructure.storage import JsonStorageProvider

AUTO = "Auto-Captured"
TEST_PORT = 8123


class Widget(BaseModel):
    id: int
    name: str


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        environment="test",
        port=TEST_PORT,
        storage_path=tmp_path / "cache.json",
        customization_path=tmp_path / "custom.json",
        project_name=AUTO,
        _env_file=None,
    )


@pytest.fixture
def store(tmp_path) -> JsonStorageProvider:
    return JsonStorageProvider(
        tmp_path / "cache.json",
        tmp_path / "custom.json",
        auto_collection_name=AUTO,
    )


@pytest.fixture
def widgets_app() -> FastAPI:
    """Host with exactly GET /widgets and POST /widgets."""
    app = FastAPI()

    @app.get("/widgets")
    def list_widgets():
        return {"widgets": []}

    @app.post("/widgets", status_code=201)
    def create_widget(widget: Widget):
        return widget

    return app


@pytest.fixture
def host_app(widgets_app) -> FastAPI:
    """Widgets host plus schemaless routes used to exercise backfill."""

    @widgets_app.post("/notes")
    async def create_note(request: Request):
        return await request.json()

    @widgets_app.put("/items/{item_id}")
    async def replace_item(item_id: int, request: Request):
        return {"id": item_id, **(await request.json())}

    @widgets_app.get("/health")
    def health():
        return {"status": "ok"}

    return widgets_app

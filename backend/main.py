"""
Application factory for the demo host.

A small FastAPI service with the API tester attached, used to try the
tester locally and as a reference for embedding it.

Usage:
    from backend.main import create_app
    from backend.settings import Settings

    # Default app (uses get_settings())
    app = create_app()

    # Test app with custom settings
    test_settings = Settings(environment="test", storage_path=tmp_path / "db.json", _env_file=None)
    test_app = create_app(settings=test_settings)
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from backend.settings import Settings, get_settings
from backend.tester import attach_api_tester

logger = logging.getLogger(__name__)


class Widget(BaseModel):
    id: int
    name: str
    tags: list[str] = Field(default_factory=list)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create the demo host with the tester attached.

    Args:
        settings: Optional Settings instance. If not provided, uses get_settings()
                  which loads from environment variables.

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Restiqo Demo Host",
        description="Sample service with the embedded API tester",
        version="0.1.0",
    )

    widgets: dict[int, Widget] = {}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/widgets")
    def list_widgets():
        return {"widgets": list(widgets.values())}

    @app.post("/widgets", status_code=201)
    def create_widget(widget: Widget):
        if widget.id in widgets:
            raise HTTPException(status_code=409, detail=f"Widget {widget.id} already exists")
        widgets[widget.id] = widget
        return widget

    @app.get("/widgets/{widget_id}")
    def get_widget(widget_id: int):
        if widget_id not in widgets:
            raise HTTPException(status_code=404, detail="Widget not found")
        return widgets[widget_id]

    attach_api_tester(app, settings=settings)
    logger.info("Demo host configured (environment=%s)", settings.environment)
    return app


# Default app instance for uvicorn
# This allows: uvicorn backend.main:app --reload
app = create_app()

"""
Wiring for embedding the API tester in a host FastAPI application.

Usage:
    from fastapi import FastAPI
    from backend.tester import attach_api_tester

    app = FastAPI()
    # ... host routes ...
    attach_api_tester(app)

    # Explicit settings and auth on the tester API
    attach_api_tester(
        app,
        settings=Settings(mount_path="/tools/tester", _env_file=None),
        dependencies=[Depends(require_admin)],
    )

On startup the host's own lifespan runs first, then the store is loaded,
the route table is captured into the auto-captured collection and the
tester URL is logged. Capture failures are logged and never stop the host.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from fastapi import FastAPI
from fastapi.params import Depends

from api.routers import (
    collections_router,
    environments_router,
    history_router,
    requests_router,
    settings_router,
)
from application.ports import StorageProvider
from backend.capture import CaptureService, TrafficInterceptor
from backend.scanner import RouteScanner, SchemaExtractor, SchemaInference
from backend.settings import Settings, get_settings
from infrastructure.storage import JsonStorageProvider

logger = logging.getLogger(__name__)

API_SEGMENT = "__api__"


@dataclass
class ApiTester:
    """Everything the tester needs at runtime, kept on ``app.state.api_tester``."""

    settings: Settings
    storage: StorageProvider
    scanner: RouteScanner
    capture_service: CaptureService

    @property
    def api_prefix(self) -> str:
        return f"{self.settings.mount_path}/{API_SEGMENT}"

    async def startup(self, app: Any) -> None:
        """Load the store and document the current route table. Never raises."""
        try:
            await self.storage.init()
            if self.settings.reset_cache_on_startup:
                await self.storage.clear_cache()
                logger.info("Cleared auto-captured cache")
            await self.capture_service.capture(
                app,
                self.settings.user_id,
                self.settings.auto_collection_name,
            )
        except Exception:
            logger.exception("API tester startup capture failed")
            return
        logger.info(
            "API tester available at %s%s",
            self.settings.base_url,
            self.settings.mount_path,
        )


def build_storage(settings: Settings) -> JsonStorageProvider:
    return JsonStorageProvider(
        settings.storage_path,
        settings.customization_path,
        auto_collection_name=settings.auto_collection_name,
    )


def attach_api_tester(
    app: FastAPI,
    *,
    settings: Optional[Settings] = None,
    storage: Optional[StorageProvider] = None,
    schema_extractors: Optional[Iterable[SchemaExtractor]] = None,
    dependencies: Optional[Sequence[Depends]] = None,
) -> ApiTester:
    """
    Attach the tester to ``app``.

    Must be called before the application starts serving, since it installs
    middleware.

    Args:
        app: Host application.
        settings: Tester settings. Defaults to ``get_settings()``.
        storage: Storage provider. Defaults to a JsonStorageProvider built
            from ``settings``.
        schema_extractors: Custom schema extractors, tried before the
            built-in shapes.
        dependencies: Dependencies applied to every tester API route
            (typically auth).

    Returns:
        The tester context, also stored on ``app.state.api_tester``.
    """
    settings = settings or get_settings()
    storage = storage or build_storage(settings)
    scanner = RouteScanner(SchemaInference(schema_extractors))
    tester = ApiTester(
        settings=settings,
        storage=storage,
        scanner=scanner,
        capture_service=CaptureService(storage, scanner, settings),
    )
    app.state.api_tester = tester

    if settings.auto_capture:
        app.add_middleware(
            TrafficInterceptor,
            storage=storage,
            mount_path=settings.mount_path,
            user_id=settings.user_id,
            exclude_paths=settings.exclude_paths,
            capture_response=settings.capture_response,
            auto_collection_name=settings.auto_collection_name,
        )

    _include_routers(app, tester.api_prefix, list(dependencies or ()))
    _wrap_lifespan(app, tester)
    return tester


def _include_routers(app: FastAPI, prefix: str, dependencies: list) -> None:
    for router in (
        settings_router,
        collections_router,
        requests_router,
        environments_router,
        history_router,
    ):
        app.include_router(router, prefix=prefix, dependencies=dependencies)


def _wrap_lifespan(app: FastAPI, tester: ApiTester) -> None:
    host_lifespan = app.router.lifespan_context

    @asynccontextmanager
    async def lifespan(host_app: Any):
        async with host_lifespan(host_app) as state:
            # Host startup may still register routes
            await tester.startup(host_app)
            yield state

    app.router.lifespan_context = lifespan

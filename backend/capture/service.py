"""Auto-capture: keeps the auto-captured collection in sync with the route table."""

import json
import logging
from typing import Any, Optional

from application.ports.storage_provider import StorageProvider
from backend.scanner import RouteScanner, ScannedRoute
from backend.settings import DEFAULT_AUTO_COLLECTION_NAME, Settings, get_settings

logger = logging.getLogger(__name__)

BASE_URL_VARIABLE = "{{BASE_URL}}"
DEFAULT_ENVIRONMENT_NAME = "Local Environment"
INTERNAL_API_SEGMENT = "/__api__/"

# Only these get a default example body
BODY_METHODS = ("POST", "PUT", "PATCH")


def canonical_url(path: str) -> str:
    """Templated request URL for a route path."""
    return BASE_URL_VARIABLE + (path if path.startswith("/") else f"/{path}")


def strip_base_url(url: str) -> str:
    return url.replace(BASE_URL_VARIABLE, "")


def is_documented(requests: list[dict[str, Any]], method: str, path: str) -> bool:
    """True if a saved request already covers (method, path).

    Both the templated URL and the bare path count, since requests saved by
    older versions stored the literal path.
    """
    target = canonical_url(path)
    return any(
        r.get("method") == method and r.get("url") in (target, path)
        for r in requests
    )


class CaptureService:
    """
    Reconciles scanned routes with the stored auto-captured collection.

    Usage:
        service = CaptureService(storage, RouteScanner(), settings)
        created = await service.capture(app, "system", "Auto-Captured")
    """

    def __init__(
        self,
        storage: StorageProvider,
        scanner: Optional[RouteScanner] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.storage = storage
        self.scanner = scanner or RouteScanner()
        self.settings = settings or get_settings()

    def _is_internal(self, path: str) -> bool:
        mount = self.settings.mount_path
        return INTERNAL_API_SEGMENT in path or path == mount or path.startswith(mount + "/")

    async def capture(
        self,
        app: Any,
        user_id: str = "system",
        collection_name: str = DEFAULT_AUTO_COLLECTION_NAME,
    ) -> int:
        """
        Document every undocumented route and seed the default environment.

        Returns:
            Number of requests created. Zero on an unchanged route table.
        """
        routes = [r for r in self.scanner.scan(app) if not self._is_internal(r.path)]

        collections = await self.storage.get_collections(user_id)
        collection = next((c for c in collections if c.get("name") == collection_name), None)
        if collection is None:
            collection = await self.storage.create_collection(user_id, {"name": collection_name})
            logger.info("Created collection %r for user %s", collection_name, user_id)

        existing = await self.storage.get_requests(collection["id"])
        created = 0
        for route in routes:
            if is_documented(existing, route.method, route.path):
                continue
            existing.append(await self.storage.create_request(self._request_for(collection["id"], route)))
            created += 1

        if created:
            logger.info("Documented %d new route(s) in %r", created, collection_name)

        await self._ensure_default_environment()
        return created

    @staticmethod
    def _request_for(collection_id: str, route: ScannedRoute) -> dict[str, Any]:
        body = None
        if route.method in BODY_METHODS:
            body = json.dumps(route.schema, indent=2) if route.schema is not None else "{}"
        return {
            "collection_id": collection_id,
            "name": route.name,
            "method": route.method,
            "url": canonical_url(route.path),
            "headers": json.dumps({"Content-Type": "application/json"}, indent=2),
            "body": body,
        }

    async def _ensure_default_environment(self) -> None:
        environments = await self.storage.get_environments()
        if any(e.get("name") == DEFAULT_ENVIRONMENT_NAME for e in environments):
            return
        variables = {
            "BASE_URL": self.settings.base_url,
            "ENVIRONMENT": self.settings.environment,
        }
        await self.storage.create_environment({
            "name": DEFAULT_ENVIRONMENT_NAME,
            "variables": json.dumps(variables, indent=2),
        })
        logger.info("Created %r with BASE_URL=%s", DEFAULT_ENVIRONMENT_NAME, variables["BASE_URL"])

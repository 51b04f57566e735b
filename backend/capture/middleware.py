"""Traffic interceptor middleware.

Records every request that passes through the host application into the
tester history and uses live traffic to fill in missing documentation on
the matching auto-captured request.

Usage::

    from backend.capture import TrafficInterceptor

    app.add_middleware(
        TrafficInterceptor,
        storage=store,
        mount_path="/api-tester",
        auto_collection_name="Auto-Captured",
    )

All recording happens in a background task after the response has been
sent, so the host's response time is unaffected by storage I/O.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from fastapi import Request, Response
from starlette.background import BackgroundTask, BackgroundTasks
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from application.ports.storage_provider import StorageProvider
from backend.settings import DEFAULT_AUTO_COLLECTION_NAME

from .service import INTERNAL_API_SEGMENT, strip_base_url
from .writer import build_history_entry, decode_body, documentation_body, documentation_headers

logger = logging.getLogger(__name__)

# Responses are streamed through untouched; only this much is kept for history
MAX_CAPTURED_BODY = 64 * 1024


@dataclass
class ObservedExchange:
    """Everything the post-response hook needs, captured during dispatch."""

    method: str
    url: str
    path: str
    started: float
    status: int = 0
    route_patterns: tuple[str, ...] = ()
    request_headers: dict[str, str] = field(default_factory=dict)
    request_body: str | None = None
    response_headers: dict[str, str] = field(default_factory=dict)
    response_buffer: bytearray | None = None
    response_truncated: bool = False

    @property
    def duration_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)

    @property
    def response_body(self) -> str | None:
        if self.response_buffer is None:
            return None
        return decode_body(bytes(self.response_buffer))

    def keep_response_chunk(self, chunk: bytes, limit: int = MAX_CAPTURED_BODY) -> None:
        """Append to the response copy, keeping at most ``limit`` bytes."""
        if self.response_buffer is None:
            self.response_buffer = bytearray()
        room = limit - len(self.response_buffer)
        if len(chunk) > room:
            self.response_truncated = True
        if room > 0:
            self.response_buffer += chunk[:room]


def _route_patterns(request: Request) -> tuple[str, ...]:
    """Registered path template(s) of the route that handled the request."""
    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    if not isinstance(template, str):
        return ()
    root_path = request.scope.get("root_path", "") or ""
    if root_path and not template.startswith(root_path):
        return (template, root_path.rstrip("/") + template)
    return (template,)


def _attach_background(response: Response, task: BackgroundTask) -> None:
    if response.background is None:
        response.background = task
    else:
        response.background = BackgroundTasks(tasks=[response.background, task])


def _full_path(request: Request) -> str:
    """Request path as the client sent it, including any mount or proxy root."""
    path = request.scope.get("path") or request.url.path
    root_path = request.scope.get("root_path", "") or ""
    if root_path and not path.startswith(root_path):
        return root_path.rstrip("/") + path
    return path


def _is_event_stream(response: Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";")[0].strip().lower() == "text/event-stream"


def _tee_body(response: Response, exchange: ObservedExchange) -> None:
    """Pass chunks on as they arrive while keeping a bounded copy."""
    upstream = response.body_iterator
    exchange.response_buffer = bytearray()

    async def passthrough():
        async for chunk in upstream:
            exchange.keep_response_chunk(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
            yield chunk

    response.body_iterator = passthrough()


class TrafficInterceptor(BaseHTTPMiddleware):
    """Middleware that records host traffic and backfills documentation."""

    def __init__(
        self,
        app: ASGIApp,
        storage: StorageProvider,
        mount_path: str = "/api-tester",
        user_id: str = "system",
        exclude_paths: Iterable[str] | None = None,
        capture_response: bool = True,
        auto_collection_name: str = DEFAULT_AUTO_COLLECTION_NAME,
    ) -> None:
        super().__init__(app)
        self.storage = storage
        self.mount_path = mount_path
        self.user_id = user_id
        self.exclude_paths = tuple(exclude_paths or ())
        self.capture_response = capture_response
        self.auto_collection_name = auto_collection_name

    def should_skip(self, path: str) -> bool:
        """The tester's own traffic and excluded prefixes are never recorded."""
        if path.startswith(self.mount_path):
            return True
        if any(path.startswith(prefix) for prefix in self.exclude_paths):
            return True
        return INTERNAL_API_SEGMENT in path

    async def dispatch(self, request: Request, call_next) -> Response:
        if self.should_skip(request.url.path):
            return await call_next(request)

        query = request.url.query
        exchange = ObservedExchange(
            method=request.method,
            url=_full_path(request) + (f"?{query}" if query else ""),
            path=request.url.path,
            started=time.perf_counter(),
            request_headers=dict(request.headers),
            # Read before any handler runs; Starlette replays it downstream
            request_body=decode_body(await request.body()),
        )

        response: Response = await call_next(request)

        # Event streams may never end, so only the request side is kept
        if self.capture_response and not _is_event_stream(response):
            _tee_body(response, exchange)

        exchange.status = response.status_code
        exchange.response_headers = dict(response.headers)
        exchange.route_patterns = _route_patterns(request)

        _attach_background(response, BackgroundTask(self.after_response, exchange))
        return response

    async def after_response(self, exchange: ObservedExchange) -> None:
        """Record history, then try to backfill documentation. Never raises."""
        if exchange.response_truncated:
            logger.debug("Response body for %s %s cut at %d bytes", exchange.method, exchange.url, MAX_CAPTURED_BODY)

        try:
            await self.storage.add_to_history(
                self.user_id,
                build_history_entry(
                    method=exchange.method,
                    url=exchange.url,
                    status=exchange.status,
                    duration_ms=exchange.duration_ms,
                    request_headers=exchange.request_headers,
                    request_body=exchange.request_body,
                    response_headers=exchange.response_headers,
                    response_body=exchange.response_body,
                ),
            )
        except Exception:
            logger.exception("Failed to record history for %s %s", exchange.method, exchange.url)

        try:
            await self.backfill_documentation(exchange)
        except Exception:
            logger.debug(
                "Documentation backfill skipped for %s %s",
                exchange.method,
                exchange.path,
                exc_info=True,
            )

    async def backfill_documentation(self, exchange: ObservedExchange) -> bool:
        """
        Fill an empty body/headers on the matching auto-captured request.

        Returns:
            True when the stored request was updated.
        """
        collections = await self.storage.get_collections(self.user_id)
        collection = next(
            (c for c in collections if c.get("name") == self.auto_collection_name),
            None,
        )
        if collection is None:
            return False

        requests = await self.storage.get_requests(collection["id"])
        match = next(
            (r for r in requests if r.get("method") == exchange.method and self._matches(r, exchange)),
            None,
        )
        if match is None:
            return False

        # The store only writes fields that are still empty at write time
        updated = await self.storage.backfill_request(
            match["id"],
            body=documentation_body(exchange.request_body),
            headers=documentation_headers(exchange.request_headers),
        )
        if updated:
            logger.debug("Backfilled documentation for %s %s", exchange.method, match.get("url"))
        return updated

    @staticmethod
    def _matches(saved: dict[str, Any], exchange: ObservedExchange) -> bool:
        url = saved.get("url") or ""
        bare = strip_base_url(url)
        return bare in exchange.route_patterns or bare == exchange.path or url in exchange.route_patterns

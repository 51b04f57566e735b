"""Auto-capture of routes and live traffic.

Usage::

    from backend.capture import CaptureService, TrafficInterceptor

    # Document the route table once the app has started
    await CaptureService(store, scanner, settings).capture(app, "system", "Auto-Captured")

    # Record every request and backfill documentation from traffic
    app.add_middleware(TrafficInterceptor, storage=store, mount_path="/api-tester")
"""

from .middleware import ObservedExchange, TrafficInterceptor
from .service import (
    BASE_URL_VARIABLE,
    DEFAULT_ENVIRONMENT_NAME,
    CaptureService,
    canonical_url,
    is_documented,
    strip_base_url,
)
from .writer import build_history_entry, documentation_body, documentation_headers

__all__ = [
    "BASE_URL_VARIABLE",
    "DEFAULT_ENVIRONMENT_NAME",
    "CaptureService",
    "ObservedExchange",
    "TrafficInterceptor",
    "build_history_entry",
    "canonical_url",
    "documentation_body",
    "documentation_headers",
    "is_documented",
    "strip_base_url",
]

"""Route discovery and schema inference.

Usage::

    from backend.scanner import RouteScanner, SchemaInference

    scanner = RouteScanner(SchemaInference([my_extractor]))
    for route in scanner.scan(app):
        print(route.method, route.path, route.schema)
"""

from .route_scanner import RouteScanner, ScannedRoute, join_paths, prefix_from_pattern
from .schema_inference import SchemaExtractor, SchemaInference, with_schema

__all__ = [
    "RouteScanner",
    "ScannedRoute",
    "SchemaExtractor",
    "SchemaInference",
    "join_paths",
    "prefix_from_pattern",
    "with_schema",
]

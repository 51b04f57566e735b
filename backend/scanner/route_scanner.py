"""Route table discovery for Starlette/FastAPI applications.

Walks ``app.routes`` depth-first. Terminal routes (``path`` + ``methods``)
become ``ScannedRoute`` entries; mounts and hosts (nested ``routes``) are
recursed into with their path prefix recovered from the compiled matcher.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .schema_inference import FieldMap, SchemaInference

logger = logging.getLogger(__name__)

# One path segment at the head of a compiled matcher: a literal run
# (escaped or not), or a named parametric group.
_SEGMENT_RE = re.compile(
    r"\\?/(?:(?P<literal>(?:\\[^/]|[\w\-.:~*])+)|\(\?P<(?P<param>\w+)>(?P<body>[^()]*)\))"
)
_ESCAPE_RE = re.compile(r"\\(.)")
_CATCH_ALL = (".*", ".+")
# What may follow a mount's own path: end of pattern or a trailing lookahead
_TERMINATOR_RE = re.compile(r"(?:\\?/)?\??(?:\$|\(\?=|\Z)")


@dataclass
class ScannedRoute:
    """A discovered endpoint. Transient, never persisted."""

    path: str
    method: str
    schema: Optional[FieldMap]
    name: str


def prefix_from_pattern(pattern: str) -> str:
    """
    Recover the literal path prefix a mount matcher was compiled from.

    Literal segments are unescaped and kept, named parameters come back as
    ``{name}`` placeholders, and recovery stops at the first other construct:

        ^/api/v1/(?P<path>.*)$                    -> /api/v1
        ^/orgs/(?P<org_id>[^/]+)/(?P<path>.*)$    -> /orgs/{org_id}
        ^\\/api\\/v1\\/?(?=\\/|$)                    -> /api/v1
    """
    return _recover_prefix(pattern)[0]


def _recover_prefix(pattern: str) -> tuple[str, bool]:
    """Prefix plus whether recovery reached the end of the mount's own path."""
    source = pattern[1:] if pattern.startswith("^") else pattern
    prefix = ""
    pos = 0
    while True:
        match = _SEGMENT_RE.match(source, pos)
        if match is None:
            return prefix, _TERMINATOR_RE.match(source, pos) is not None
        if match.group("literal") is not None:
            prefix += "/" + _ESCAPE_RE.sub(r"\1", match.group("literal"))
        elif match.group("body") in _CATCH_ALL:
            return prefix, True
        else:
            prefix += "/{" + match.group("param") + "}"
        pos = match.end()


def join_paths(prefix: str, path: str) -> str:
    """Concatenate path pieces and collapse repeated separators."""
    return re.sub(r"/+", "/", f"{prefix}{path}") or "/"


def _mount_prefix(node: Any) -> str:
    regex = getattr(node, "path_regex", None)
    pattern = getattr(regex, "pattern", regex)
    path = getattr(node, "path", None)
    if isinstance(pattern, str):
        prefix, complete = _recover_prefix(pattern)
        if prefix and (complete or not isinstance(path, str)):
            return prefix
    return path.rstrip("/") if isinstance(path, str) else ""


_DOCUMENTATION_URL_ATTRS = ("openapi_url", "docs_url", "redoc_url", "swagger_ui_oauth2_redirect_url")


def documentation_paths(app: Any) -> frozenset[str]:
    """Paths a FastAPI app serves its own schema and docs pages on."""
    paths = (getattr(app, attr, None) for attr in _DOCUMENTATION_URL_ATTRS)
    return frozenset(p for p in paths if isinstance(p, str) and p)


def _declared_methods(node: Any) -> list[str]:
    methods = {str(m).upper() for m in getattr(node, "methods", None) or ()}
    # Starlette adds HEAD to every GET route on its own
    if "GET" in methods:
        methods.discard("HEAD")
    return sorted(methods)


def handler_chain(node: Any) -> list[Any]:
    """Objects that may carry a schema for a route, in probe order."""
    chain: list[Any] = []

    body_field = getattr(node, "body_field", None)
    if body_field is not None:
        annotation = getattr(body_field, "type_", None)
        if annotation is None:
            annotation = getattr(getattr(body_field, "field_info", None), "annotation", None)
        chain.append(annotation)

    dependant = getattr(node, "dependant", None)
    for dependency in getattr(dependant, "dependencies", None) or ():
        chain.append(getattr(dependency, "call", None))
    for dependency in getattr(node, "dependencies", None) or ():
        chain.append(getattr(dependency, "dependency", None))

    chain.append(getattr(node, "endpoint", None))
    return [handle for handle in chain if handle is not None]


class RouteScanner:
    """
    Flattens an application's route tree into ``ScannedRoute`` entries.

    ``scan`` never mutates the application and never raises: nodes that
    cannot be interpreted are skipped.
    """

    def __init__(self, inference: Optional[SchemaInference] = None) -> None:
        self.inference = inference or SchemaInference()

    def scan(self, app: Any) -> list[ScannedRoute]:
        routes: list[ScannedRoute] = []
        try:
            stack = getattr(app, "routes", None)
            if stack is None:
                stack = getattr(getattr(app, "router", None), "routes", None)
            if stack is not None:
                self._process_stack(stack, "", routes, documentation_paths(app))
        except Exception:
            logger.exception("Route scan aborted")
        return routes

    def _process_stack(
        self,
        stack: Iterable[Any],
        prefix: str,
        routes: list[ScannedRoute],
        docs_paths: frozenset[str] = frozenset(),
    ) -> None:
        for node in stack:
            try:
                if getattr(node, "methods", None) and isinstance(getattr(node, "path", None), str):
                    self._handle_route(node, prefix, routes, docs_paths)
                elif getattr(node, "routes", None) is not None:
                    self._handle_mount(node, prefix, routes)
            except Exception:
                logger.debug("Skipping route node %r", node, exc_info=True)

    def _handle_route(
        self, node: Any, prefix: str, routes: list[ScannedRoute], docs_paths: frozenset[str] = frozenset()
    ) -> None:
        # The framework's own docs pages; hidden host routes are kept
        if getattr(node, "include_in_schema", True) is False and node.path in docs_paths:
            return
        path = join_paths(prefix, getattr(node, "path_format", None) or node.path)
        schema = self.extract_schema(handler_chain(node))
        for method in _declared_methods(node):
            routes.append(ScannedRoute(path=path, method=method, schema=schema, name=path))

    def _handle_mount(self, node: Any, prefix: str, routes: list[ScannedRoute]) -> None:
        sub_app = getattr(node, "app", None)
        self._process_stack(node.routes, prefix + _mount_prefix(node), routes, documentation_paths(sub_app))

    def extract_schema(self, chain: Iterable[Any]) -> Optional[FieldMap]:
        for handle in chain:
            schema = self.inference.infer(handle)
            if schema is not None:
                return schema
        return None

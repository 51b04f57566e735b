"""
Unit tests for backend/scanner/route_scanner.py

Route tables are built with real FastAPI/Starlette objects where possible
and with plain stand-ins for the shapes those frameworks don't produce.
"""

from types import SimpleNamespace

import pytest
from fastapi import APIRouter, Depends, FastAPI
from pydantic import BaseModel
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Mount, Route, WebSocketRoute

from backend.scanner import RouteScanner, SchemaInference, join_paths, prefix_from_pattern, with_schema


class Widget(BaseModel):
    id: int
    name: str


class Filters(BaseModel):
    q: str


def pairs(routes):
    return [(r.method, r.path) for r in routes]


async def ok(request):
    return PlainTextResponse("ok")


async def ws(websocket):
    await websocket.close()


# =============================================================================
# Path helpers
# =============================================================================


@pytest.mark.unit
class TestPrefixFromPattern:
    """Mount prefix recovery from compiled matchers."""

    def test_starlette_mount(self):
        assert prefix_from_pattern("^/api/v1/(?P<path>.*)$") == "/api/v1"

    def test_named_parameter_kept_as_placeholder(self):
        assert prefix_from_pattern("^/orgs/(?P<org_id>[^/]+)/(?P<path>.*)$") == "/orgs/{org_id}"

    def test_express_style_lookahead(self):
        assert prefix_from_pattern(r"^\/api\/v1\/?(?=\/|$)") == "/api/v1"

    def test_escaped_literal_characters(self):
        assert prefix_from_pattern(r"^/my\-service/v2\.1/(?P<path>.*)$") == "/my-service/v2.1"

    def test_root_mount(self):
        assert prefix_from_pattern("^/(?P<path>.*)$") == ""

    def test_unrecognized_pattern(self):
        assert prefix_from_pattern("(foo|bar)") == ""

    def test_real_mount_regex(self):
        mount = Mount("/api/v1", routes=[])
        assert prefix_from_pattern(mount.path_regex.pattern) == "/api/v1"


@pytest.mark.unit
class TestJoinPaths:
    def test_collapses_repeated_slashes(self):
        assert join_paths("/api/", "/users") == "/api/users"

    def test_empty(self):
        assert join_paths("", "") == "/"


# =============================================================================
# Scanning
# =============================================================================


@pytest.mark.unit
class TestScanFastAPI:
    """FastAPI applications."""

    def test_one_entry_per_method_with_body_schema(self, widgets_app):
        routes = RouteScanner().scan(widgets_app)

        assert pairs(routes) == [("GET", "/widgets"), ("POST", "/widgets")]
        get, post = routes
        assert get.schema is None
        assert post.schema == {"id": 0, "name": "string"}
        assert post.name == "/widgets"

    def test_framework_routes_excluded(self):
        app = FastAPI()
        assert RouteScanner().scan(app) == []

    def test_custom_docs_urls_excluded(self):
        app = FastAPI(docs_url="/documentation", openapi_url="/schema.json")
        assert RouteScanner().scan(app) == []

    def test_hidden_host_route_kept(self):
        app = FastAPI()

        @app.post("/internal/jobs", include_in_schema=False)
        def enqueue(job: Widget):
            return {}

        [route] = RouteScanner().scan(app)
        assert (route.method, route.path) == ("POST", "/internal/jobs")
        assert route.schema == {"id": 0, "name": "string"}

    def test_path_parameters_use_template(self):
        app = FastAPI()

        @app.get("/files/{file_path:path}")
        def read_file(file_path: str):
            return {}

        assert pairs(RouteScanner().scan(app)) == [("GET", "/files/{file_path}")]

    def test_router_prefix_flattened(self):
        app = FastAPI()
        router = APIRouter(prefix="/api/v1/users")

        @router.post("/{user_id}/widgets")
        def add(user_id: str, widget: Widget):
            return widget

        app.include_router(router)

        [route] = RouteScanner().scan(app)
        assert route.path == "/api/v1/users/{user_id}/widgets"
        assert route.schema == {"id": 0, "name": "string"}

    def test_mounted_sub_application(self):
        users = FastAPI()

        @users.get("/users")
        def list_users():
            return []

        app = FastAPI()
        app.mount("/api/v1", users)

        assert pairs(RouteScanner().scan(app)) == [("GET", "/api/v1/users")]

    def test_dependency_schema_used_without_body(self):
        app = FastAPI()

        @with_schema(Filters)
        def filters_dependency():
            return None

        @app.delete("/widgets")
        def purge(_: None = Depends(filters_dependency)):
            return {}

        [route] = RouteScanner().scan(app)
        assert route.schema == {"q": "string"}

    def test_multiple_methods_sorted(self):
        app = FastAPI()

        @app.api_route("/things", methods=["PUT", "GET", "DELETE"])
        def things():
            return {}

        assert [r.method for r in RouteScanner().scan(app)] == ["DELETE", "GET", "PUT"]


@pytest.mark.unit
class TestScanStarlette:
    """Plain Starlette route tables."""

    def test_implicit_head_dropped(self):
        app = Starlette(routes=[Route("/ping", ok)])
        assert pairs(RouteScanner().scan(app)) == [("GET", "/ping")]

    def test_explicit_head_kept(self):
        app = Starlette(routes=[Route("/probe", ok, methods=["HEAD"])])
        assert pairs(RouteScanner().scan(app)) == [("HEAD", "/probe")]

    def test_nested_mounts(self):
        app = Starlette(routes=[
            Mount("/api", routes=[
                Mount("/v1", routes=[Route("/users", ok, methods=["POST"])]),
            ]),
        ])
        assert pairs(RouteScanner().scan(app)) == [("POST", "/api/v1/users")]

    def test_parametric_mount(self):
        app = Starlette(routes=[
            Mount("/orgs/{org_id}", routes=[Route("/members", ok)]),
        ])
        assert pairs(RouteScanner().scan(app)) == [("GET", "/orgs/{org_id}/members")]

    def test_mount_with_unusual_characters_uses_path(self):
        app = Starlette(routes=[
            Mount("/api/@me", routes=[Route("/users", ok)]),
        ])
        assert pairs(RouteScanner().scan(app)) == [("GET", "/api/@me/users")]

    def test_websocket_routes_skipped(self):
        app = Starlette(routes=[WebSocketRoute("/ws", ws), Route("/ping", ok)])
        assert pairs(RouteScanner().scan(app)) == [("GET", "/ping")]

    def test_endpoint_schema_via_decorator(self):
        @with_schema({"properties": {"text": {"type": "string"}}})
        async def create_note(request):
            return PlainTextResponse("ok")

        app = Starlette(routes=[Route("/notes", create_note, methods=["POST"])])

        [route] = RouteScanner().scan(app)
        assert route.schema == {"text": "string"}


@pytest.mark.unit
class TestScanRobustness:
    """scan never raises and never mutates the application."""

    def test_unrelated_object(self):
        assert RouteScanner().scan(object()) == []

    def test_router_attribute_fallback(self):
        route = SimpleNamespace(path="/x", methods={"GET"})
        app = SimpleNamespace(router=SimpleNamespace(routes=[route]))
        assert pairs(RouteScanner().scan(app)) == [("GET", "/x")]

    def test_mount_without_regex_uses_path(self):
        child = SimpleNamespace(path="/users", methods=["GET"])
        mount = SimpleNamespace(path="/legacy/", routes=[child])
        assert pairs(RouteScanner().scan(SimpleNamespace(routes=[mount]))) == [("GET", "/legacy/users")]

    def test_broken_node_skipped(self):
        class Exploding:
            @property
            def methods(self):
                raise RuntimeError("boom")

        good = SimpleNamespace(path="/ok", methods=["GET"])
        app = SimpleNamespace(routes=[Exploding(), good])

        assert pairs(RouteScanner().scan(app)) == [("GET", "/ok")]

    def test_route_table_unchanged(self, widgets_app):
        before = list(widgets_app.routes)
        RouteScanner().scan(widgets_app)
        assert list(widgets_app.routes) == before

    def test_custom_extractor_applies_to_handlers(self, widgets_app):
        scanner = RouteScanner(SchemaInference([lambda handle: {"from": "extractor"}]))
        post = [r for r in scanner.scan(widgets_app) if r.method == "POST"][0]
        assert post.schema == {"from": "extractor"}

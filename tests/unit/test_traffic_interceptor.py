"""
Tests for backend/capture/middleware.py

Hosts run through TestClient as a context manager so the lifespan capture
has populated the auto-captured collection before traffic arrives.
Background tasks finish before TestClient returns a response.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.responses import StreamingResponse
from fastapi.testclient import TestClient

from backend.capture import ObservedExchange, TrafficInterceptor
from backend.tester import attach_api_tester

AUTO = "Auto-Captured"


def run(coro_factory, client):
    """Run a store coroutine on the client's event loop."""
    return client.portal.call(coro_factory)


def auto_request(client, store, method, url):
    collections = run(lambda: store.get_collections("system"), client)
    [auto] = [c for c in collections if c["name"] == AUTO]
    return next(r for r in auto["requests"] if r["method"] == method and r["url"] == url)


def history(client, store):
    return run(lambda: store.get_history("system"), client)


@pytest.fixture
def client(host_app, settings, store):
    attach_api_tester(host_app, settings=settings, storage=store)
    with TestClient(host_app) as test_client:
        yield test_client


@pytest.mark.integration
class TestHistoryRecording:
    """Every non-tester request lands in history."""

    def test_records_request_and_response(self, client, store):
        response = client.post("/widgets", json={"id": 1, "name": "gear"})

        assert response.status_code == 201
        [entry] = history(client, store)
        assert entry["method"] == "POST"
        assert entry["url"] == "/widgets"
        assert entry["status"] == 201
        assert isinstance(entry["duration"], int)
        assert json.loads(entry["request_body"]) == {"id": 1, "name": "gear"}
        assert json.loads(entry["response_body"]) == {"id": 1, "name": "gear"}
        assert json.loads(entry["request_headers"])["content-type"] == "application/json"
        assert "content-type" in json.loads(entry["response_headers"])

    def test_query_string_kept(self, client, store):
        client.get("/widgets?limit=5")

        [entry] = history(client, store)
        assert entry["url"] == "/widgets?limit=5"

    def test_response_delivered_unchanged(self, client):
        response = client.post("/widgets", json={"id": 7, "name": "bolt"})

        assert response.json() == {"id": 7, "name": "bolt"}
        assert int(response.headers["content-length"]) == len(response.content)

    def test_errors_recorded(self, client, store):
        response = client.post("/widgets", json={"id": "not-a-number"})

        assert response.status_code == 422
        [entry] = history(client, store)
        assert entry["status"] == 422

    def test_tester_api_not_recorded(self, client, store):
        client.get("/api-tester/__api__/history")
        client.get("/api-tester")

        assert history(client, store) == []

    def test_unknown_route_recorded(self, client, store):
        assert client.get("/nope").status_code == 404
        assert [h["url"] for h in history(client, store)] == ["/nope"]


@pytest.mark.integration
class TestBackfill:
    """Live traffic fills in missing documentation only."""

    def test_empty_body_backfilled(self, client, store):
        before = auto_request(client, store, "POST", "{{BASE_URL}}/notes")
        assert before["body"] == "{}"

        client.post("/notes", json={"text": "remember"})

        after = auto_request(client, store, "POST", "{{BASE_URL}}/notes")
        assert json.loads(after["body"]) == {"text": "remember"}

    def test_inferred_body_not_clobbered(self, client, store):
        client.post("/widgets", json={"id": 5, "name": "live"})

        post = auto_request(client, store, "POST", "{{BASE_URL}}/widgets")
        assert json.loads(post["body"]) == {"id": 0, "name": "string"}

    def test_template_route_matched(self, client, store):
        client.put("/items/42", json={"color": "blue"})

        saved = auto_request(client, store, "PUT", "{{BASE_URL}}/items/{item_id}")
        assert json.loads(saved["body"]) == {"color": "blue"}

    def test_empty_headers_backfilled_without_secrets(self, client, store):
        saved = auto_request(client, store, "POST", "{{BASE_URL}}/notes")
        run(lambda: store.update_request(saved["id"], {"headers": "{}"}), client)

        client.post(
            "/notes",
            json={"text": "x"},
            headers={"Authorization": "Bearer secret", "X-Trace": "t-1"},
        )

        headers = json.loads(auto_request(client, store, "POST", "{{BASE_URL}}/notes")["headers"])
        assert headers["x-trace"] == "t-1"
        for excluded in ("authorization", "host", "cookie", "connection", "content-length"):
            assert excluded not in headers

    def test_trivial_body_ignored(self, client, store):
        client.post("/notes", json={})

        assert auto_request(client, store, "POST", "{{BASE_URL}}/notes")["body"] == "{}"


@pytest.mark.integration
class TestOptions:
    """Exclusions and response capture switch."""

    def test_excluded_prefix_not_recorded(self, host_app, settings, store):
        settings = settings.model_copy(update={"exclude_paths": ["/health"]})
        attach_api_tester(host_app, settings=settings, storage=store)

        with TestClient(host_app) as client:
            client.get("/health")
            client.get("/widgets")

            assert [h["url"] for h in history(client, store)] == ["/widgets"]

    def test_response_body_capture_disabled(self, host_app, settings, store):
        settings = settings.model_copy(update={"capture_response": False})
        attach_api_tester(host_app, settings=settings, storage=store)

        with TestClient(host_app) as client:
            response = client.get("/widgets")

            assert response.json() == {"widgets": []}
            [entry] = history(client, store)
            assert entry["response_body"] is None


@pytest.mark.unit
class TestFailureIsolation:
    """Storage failures never reach the host's response."""

    def _app(self, storage):
        app = FastAPI()

        @app.get("/ping")
        def ping():
            return {"pong": True}

        app.add_middleware(TrafficInterceptor, storage=storage)
        return app

    def test_history_failure_logged_and_response_intact(self, caplog):
        storage = MagicMock()
        storage.add_to_history = AsyncMock(side_effect=OSError("disk full"))
        storage.get_collections = AsyncMock(return_value=[])

        with caplog.at_level("ERROR"):
            response = TestClient(self._app(storage)).get("/ping")

        assert response.json() == {"pong": True}
        assert "Failed to record history" in caplog.text
        storage.get_collections.assert_awaited()

    def test_backfill_failure_does_not_affect_history(self):
        storage = MagicMock()
        storage.add_to_history = AsyncMock(return_value={})
        storage.get_collections = AsyncMock(side_effect=RuntimeError("boom"))

        response = TestClient(self._app(storage)).get("/ping")

        assert response.status_code == 200
        storage.add_to_history.assert_awaited_once()

    def test_should_skip(self):
        interceptor = TrafficInterceptor(
            FastAPI(), storage=MagicMock(), mount_path="/tools", exclude_paths=["/metrics"]
        )
        assert interceptor.should_skip("/tools/__api__/history")
        assert interceptor.should_skip("/metrics/cpu")
        assert interceptor.should_skip("/x/__api__/y")
        assert not interceptor.should_skip("/widgets")


def recording_storage():
    storage = MagicMock()
    storage.add_to_history = AsyncMock(return_value={})
    storage.get_collections = AsyncMock(return_value=[])
    return storage


async def call_asgi(app, path, send, root_path="", query=b""):
    """Drive one GET through the ASGI interface without a test client."""
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": root_path,
        "query_string": query,
        "headers": [(b"host", b"testserver")],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    request_sent = False

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        # Client stays connected until the response completes
        await asyncio.Event().wait()

    await asyncio.wait_for(app(scope, receive, send), timeout=5)


@pytest.mark.unit
class TestStreamingResponses:
    """Streamed bodies reach the client chunk by chunk."""

    @pytest.mark.asyncio
    async def test_event_stream_chunks_not_held_back(self):
        first_delivered = asyncio.Event()
        storage = recording_storage()
        app = FastAPI()

        @app.get("/events")
        async def events():
            async def stream():
                yield b"data: 1\n\n"
                # Only continues once the client has the first event
                await first_delivered.wait()
                yield b"data: 2\n\n"

            return StreamingResponse(stream(), media_type="text/event-stream")

        app.add_middleware(TrafficInterceptor, storage=storage)
        bodies = []

        async def send(message):
            if message["type"] == "http.response.body":
                bodies.append(message.get("body", b""))
                if b"data: 1" in message.get("body", b""):
                    first_delivered.set()

        await call_asgi(app, "/events", send)

        assert b"".join(bodies) == b"data: 1\n\ndata: 2\n\n"
        entry = storage.add_to_history.await_args.args[1]
        assert entry["status"] == 200
        assert entry["response_body"] is None

    @pytest.mark.asyncio
    async def test_chunked_body_recorded_after_streaming(self):
        storage = recording_storage()
        app = FastAPI()

        @app.get("/export")
        async def export():
            async def rows():
                for row in ("a,1\n", "b,2\n"):
                    yield row

            return StreamingResponse(rows(), media_type="text/csv")

        app.add_middleware(TrafficInterceptor, storage=storage)
        bodies = []

        async def send(message):
            if message["type"] == "http.response.body":
                bodies.append(message.get("body", b""))

        await call_asgi(app, "/export", send)

        assert b"".join(bodies) == b"a,1\nb,2\n"
        entry = storage.add_to_history.await_args.args[1]
        assert entry["response_body"] == "a,1\nb,2\n"

    def test_kept_copy_is_bounded(self):
        exchange = ObservedExchange(method="GET", url="/big", path="/big", started=0.0)

        exchange.keep_response_chunk(b"abc", limit=5)
        exchange.keep_response_chunk(b"defg", limit=5)
        exchange.keep_response_chunk(b"hij", limit=5)

        assert exchange.response_body == "abcde"
        assert exchange.response_truncated


@pytest.mark.unit
class TestRootPath:
    """History URLs include the root the application is served under."""

    def _app(self, storage):
        app = FastAPI()

        @app.get("/widgets")
        def widgets():
            return []

        app.add_middleware(TrafficInterceptor, storage=storage)
        return app

    @staticmethod
    async def _ignore(message):
        return None

    @pytest.mark.asyncio
    async def test_root_path_prefixed(self):
        storage = recording_storage()

        await call_asgi(self._app(storage), "/widgets", self._ignore, root_path="/svc", query=b"page=2")

        entry = storage.add_to_history.await_args.args[1]
        assert entry["url"] == "/svc/widgets?page=2"

    @pytest.mark.asyncio
    async def test_root_path_not_doubled(self):
        storage = recording_storage()

        await call_asgi(self._app(storage), "/svc/widgets", self._ignore, root_path="/svc")

        entry = storage.add_to_history.await_args.args[1]
        assert entry["url"] == "/svc/widgets"

    def test_mounted_sub_application(self):
        storage = recording_storage()
        parent = FastAPI()
        parent.mount("/svc", self._app(storage))

        response = TestClient(parent).get("/svc/widgets")

        assert response.status_code == 200
        entry = storage.add_to_history.await_args.args[1]
        assert entry["url"] == "/svc/widgets"

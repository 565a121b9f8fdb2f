"""Shared fixtures: an in-memory claims API served through httpx.MockTransport."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from claimflow.api import ClaimsApi, FileTransfer
from claimflow.cache import QueryCache, claim_keys
from claimflow.events import EventEmitter

API_URL = "http://api.test"
STORAGE_URL = "https://storage.test"

Handler = Callable[[httpx.Request], Any]


def error_response(status: int, code: str, message: str, details: Optional[dict] = None) -> httpx.Response:
    """Response carrying the server's error envelope."""
    error: Dict[str, Any] = {"code": code, "message": message, "requestId": "req-1"}
    if details is not None:
        error["details"] = details
    return httpx.Response(status, json={"error": error})


class FakeClaimsServer:
    """Routes requests by (method, path) and records every request received.

    Handlers may be plain responses or callables returning a response or an
    awaitable of one, so a test can hold a request open on an asyncio.Event.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], Handler] = {}

    def route(
        self,
        method: str,
        path: str,
        handler: Optional[Handler] = None,
        status: int = 200,
        json: Any = None,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                if json is None:
                    return httpx.Response(status)
                return httpx.Response(status, json=json)
        self._routes[(method, path)] = handler

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self._routes.get((request.method, request.url.path))
        if handler is None:
            return error_response(404, "NOT_FOUND", f"No route for {request.method} {request.url.path}")
        result = handler(request)
        if not isinstance(result, httpx.Response):
            result = await result
        return result

    def calls(self, method: Optional[str] = None, path_prefix: str = "") -> List[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and r.url.path.startswith(path_prefix)
        ]


def body_of(request: httpx.Request) -> Any:
    """Decoded JSON body of a recorded request."""
    return json.loads(request.content) if request.content else None


@pytest.fixture
def server() -> FakeClaimsServer:
    return FakeClaimsServer()


@pytest.fixture
def api(server) -> ClaimsApi:
    client = httpx.AsyncClient(base_url=API_URL, transport=httpx.MockTransport(server))
    return ClaimsApi(client=client)


@pytest.fixture
def transfer(server) -> FileTransfer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return FileTransfer(client=client, chunk_size=4)


@pytest.fixture
def cache() -> QueryCache:
    """Cache pre-populated with a detail, its files and two list views."""
    cache = QueryCache()
    cache.set(claim_keys.detail("c1"), {"id": "c1"})
    cache.set(claim_keys.files("c1"), [])
    cache.set(claim_keys.detail("c2"), {"id": "c2"})
    cache.set(claim_keys.list({"status": "SUBMITTED"}), [])
    cache.set(claim_keys.list({"page": 2}), [])
    return cache


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def events(emitter) -> list:
    """Every event emitted during the test, in order."""
    seen: list = []
    emitter.on_any(seen.append)
    return seen


class StagingStorage:
    """Pending-upload endpoint plus storage target with per-file behaviour.

    ``hold(name)`` keeps the transfer of ``name`` open until the returned
    event is set; ``put_status[name]`` overrides the storage response code.
    """

    def __init__(self, server: FakeClaimsServer) -> None:
        self.server = server
        self.gates: Dict[str, asyncio.Event] = {}
        self.put_status: Dict[str, int] = {}
        server.route("POST", "/claims/files/upload", self._stage)

    def _stage(self, request: httpx.Request) -> httpx.Response:
        name = body_of(request)["fileName"]
        self.server.route("PUT", f"/put/{name}", self._put)
        return httpx.Response(200, json={
            "pendingUploadId": f"pu-{name}",
            "uploadUrl": f"{STORAGE_URL}/put/{name}",
            "expiresAt": "2030-01-01T00:00:00Z",
        })

    async def _put(self, request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        return httpx.Response(self.put_status.get(name, 200))

    def hold(self, name: str) -> asyncio.Event:
        self.gates[name] = asyncio.Event()
        return self.gates[name]


@pytest.fixture
def storage(server) -> StagingStorage:
    return StagingStorage(server)

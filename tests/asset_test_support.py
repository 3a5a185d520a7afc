from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Union

from aiohttp import web
from aiohttp.test_utils import TestServer

from asset_mirror.config.models import CacheSettings

SITE_URL = "https://site.example"
PUBLIC_BASE_URL = "https://site.example/asset-cache/"

Body = Union[bytes, str, Callable[["AssetServer"], str]]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(root: Path, **overrides) -> CacheSettings:
    values = {
        "site_url": SITE_URL,
        "storage_dir": str(root / "assets"),
        "public_base_url": PUBLIC_BASE_URL,
        "state_dir": str(root / "state"),
        "fetch_timeout_seconds": 10,
    }
    values.update(overrides)
    return CacheSettings(**values)


@dataclass
class _Route:
    body: Body
    content_type: str
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)


class AssetServer:
    """Local HTTP server with canned asset responses; counts requests per (method, path)."""

    def __init__(self) -> None:
        self.hits: Counter = Counter()
        self._routes: Dict[str, _Route] = {}
        self._stalled: Dict[str, bytes] = {}
        self._released = asyncio.Event()
        self._server: TestServer | None = None

    def add(
        self,
        path: str,
        body: Body,
        *,
        content_type: str = "application/octet-stream",
        status: int = 200,
        headers: Dict[str, str] | None = None,
    ) -> str:
        self._routes[path] = _Route(body=body, content_type=content_type, status=status, headers=headers or {})
        return self.url(path)

    def add_stalled(self, path: str, head: bytes) -> str:
        """Send ``head`` as the start of a longer body, then hold the connection until the server closes."""
        self._stalled[path] = head
        return self.url(path)

    def url(self, path: str) -> str:
        assert self._server is not None
        return str(self._server.make_url(path))

    async def start(self) -> None:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self._handle)
        self._server = TestServer(app)
        await self._server.start_server()

    async def close(self) -> None:
        self._released.set()
        if self._server is not None:
            await self._server.close()

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        self.hits[(request.method, request.path)] += 1
        if request.path in self._stalled:
            return await self._stall(request, self._stalled[request.path])
        route = self._routes.get(request.path)
        if route is None:
            return web.Response(status=404, text="not found")
        body = route.body(self) if callable(route.body) else route.body
        if isinstance(body, str):
            body = body.encode("utf-8")
        return web.Response(
            status=route.status,
            body=body,
            content_type=route.content_type,
            headers=route.headers,
        )

    async def _stall(self, request: web.Request, head: bytes) -> web.StreamResponse:
        response = web.StreamResponse(headers={"Content-Type": "application/octet-stream"})
        response.content_length = len(head) * 4
        await response.prepare(request)
        await response.write(head)
        await self._released.wait()
        return response

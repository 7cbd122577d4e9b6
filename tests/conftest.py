"""Shared fixtures: settings, an in-memory artifact store, fake origins, images."""

from __future__ import annotations

import io
from collections.abc import Callable
from datetime import timedelta

import httpx
import pytest
from PIL import Image

from media_api.cache.base import ArtifactStore
from media_api.config import Settings
from media_api.errors import ArtifactNotFound, CacheError
from media_api.schemas import Artifact


class MemoryStore(ArtifactStore):
    """Dict-backed store with create-if-absent writes."""

    def __init__(self) -> None:
        self.entries: dict[str, tuple[Artifact, timedelta]] = {}
        self.fail_reads = False
        self.fail_writes = False

    async def get(self, key: str) -> Artifact:
        if self.fail_reads:
            raise CacheError("store unavailable")
        try:
            return self.entries[key][0]
        except KeyError:
            raise ArtifactNotFound(key) from None

    async def put(self, key: str, artifact: Artifact, ttl: timedelta) -> bool:
        if self.fail_writes:
            raise CacheError("store unavailable")
        if key in self.entries:
            return False
        self.entries[key] = (artifact, ttl)
        return True

    async def close(self) -> None:
        pass


def make_image(width: int = 640, height: int = 480, fmt: str = "PNG", color="steelblue") -> bytes:
    buffer = io.BytesIO()
    mode = "RGBA" if fmt == "PNG" else "RGB"
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def html_response(body: str, charset: str = "utf-8", status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"content-type": f"text/html; charset={charset}"},
        content=body.encode(charset),
    )


def image_response(data: bytes, content_type: str = "image/png") -> httpx.Response:
    return httpx.Response(200, headers={"content-type": content_type}, content=data)


Route = Callable[[httpx.Request], httpx.Response]


class FakeOrigin:
    """Routes outbound requests by URL and records what was fetched."""

    def __init__(self, routes: dict[str, httpx.Response | Route] | None = None) -> None:
        self.routes = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        return route

    @property
    def urls(self) -> list[str]:
        return [str(request.url) for request in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), follow_redirects=True)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        user_agent="media-api-test",
        cache_ttl_seconds=3600,
        negative_cache_ttl_seconds=30,
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image(640, 480, "PNG")

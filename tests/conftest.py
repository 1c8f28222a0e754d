# tests/conftest.py
import contextlib
from collections import Counter
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

DOCS_DIR = Path(__file__).parent / "fixtures" / "docs"

# path -> (status, location)
REDIRECTS = {
    "/docs/links/image/logo": (302, "/docs/links/image/logo.png"),
    "/docs/links/image/logo-fail": (302, "/docs/links/image/logo-fail.png"),
    "/docs/links/image/logo-redirection-1": (301, "/docs/links/image/logo-redirection-2"),
    "/docs/links/image/logo-redirection-2": (307, "/docs/links/image/logo-redirection-3"),
    "/docs/links/image/logo-redirection-3": (302, "/docs/links/image/logo.png"),
    "/docs/links/image/logo-moved": (301, "/docs/links/image/logo-moved-again"),
    "/docs/links/image/logo-moved-again": (302, "/docs/links/image/logo-gone.png"),
    "/loop/a": (302, "/loop/b"),
    "/loop/b": (302, "/loop/a"),
}

CONTENT_TYPES = {".html": "text/html", ".png": "image/png"}


def build_fixture_app(hits: Counter) -> web.Application:
    """Serves tests/fixtures/docs under /docs plus a few redirecting routes; counts every hit."""

    @web.middleware
    async def count_hits(request, handler):
        hits[request.path] += 1
        hits[(request.method, request.path)] += 1
        return await handler(request)

    def redirect(status, location):
        async def handler(_request):
            return web.Response(status=status, headers={"Location": location})
        return handler

    async def no_head(request):
        if request.method == "HEAD":
            return web.Response(status=405)
        return web.Response(text="GET only")

    async def serve_doc(request):
        root = DOCS_DIR.resolve()
        path = (root / request.match_info["path"]).resolve()
        if root not in path.parents or not path.is_file():
            raise web.HTTPNotFound()
        content_type = CONTENT_TYPES.get(path.suffix, "application/octet-stream")
        charset = "utf-8" if content_type.startswith("text/") else None
        return web.Response(body=path.read_bytes(), content_type=content_type, charset=charset)

    app = web.Application(middlewares=[count_hits])
    for path, (status, location) in REDIRECTS.items():
        app.router.add_route("*", path, redirect(status, location))
    app.router.add_route("*", "/no-head", no_head)
    app.router.add_route("*", "/docs/{path:.*}", serve_doc)
    return app


@contextlib.asynccontextmanager
async def serve_fixtures():
    hits: Counter = Counter()
    server = TestServer(build_fixture_app(hits))
    await server.start_server()
    try:
        yield server, hits
    finally:
        await server.close()


@pytest.fixture
def docs_dir() -> Path:
    return DOCS_DIR


@pytest.fixture
def fixture_server():
    """
    Factory for a local HTTP origin serving the fixture documents. Use it
    inside the coroutine under test:

        async with fixture_server() as (server, hits): ...
    """
    return serve_fixtures

"""Shared fixtures: zip builders and a local archive server."""
import io
import zipfile
from contextlib import asynccontextmanager
from typing import Dict
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer


def build_zip(entries: Dict[str, bytes]) -> bytes:
    """Build zip bytes from {member_name: content}; names ending in / are folders."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries.items():
            if name.endswith("/"):
                archive.writestr(zipfile.ZipInfo(name), b"")
            else:
                archive.writestr(name, content)
    return buffer.getvalue()


def demo_archive() -> bytes:
    """Two-entry snapshot wrapped in demo-main/, like a host would serve it."""
    return build_zip({
        "demo-main/": b"",
        "demo-main/README.md": b"# Demo\n",
        "demo-main/docs/": b"",
        "demo-main/docs/index.adoc": b"= Index\n",
    })


@asynccontextmanager
async def serve_archives(routes: Dict[str, object]):
    """Serve GET routes from a local aiohttp server.

    Each value is either a (status, body) tuple or an aiohttp handler.
    """
    app = web.Application()
    for path, route in routes.items():
        if isinstance(route, tuple):
            status, body = route

            async def handler(request, status=status, body=body):
                return web.Response(status=status, body=body)

            app.router.add_get(path, handler)
        else:
            app.router.add_get(path, route)

    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


@pytest.fixture
def zip_bytes():
    return build_zip


@pytest.fixture
def demo_zip():
    return demo_archive()


@pytest.fixture
def archive_server():
    return serve_archives


@pytest.fixture
def temp_area(tmp_path):
    """Private temporary-storage area so leak checks can list it."""
    area = tmp_path / "tmp"
    area.mkdir()
    return area

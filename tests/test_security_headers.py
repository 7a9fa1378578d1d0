import asyncio

from starlette.requests import Request
from starlette.responses import Response

import app.api as api_module

SCOPE = {
    "type": "http",
    "method": "GET",
    "path": "/",
    "headers": [],
    "query_string": b"",
}


def _run_middleware(call_next):
    async def run():
        return await api_module.add_security_headers(Request(dict(SCOPE)), call_next)

    return asyncio.run(run())


def test_security_headers_applied():
    async def call_next(_request: Request) -> Response:
        return Response()

    resp = _run_middleware(call_next)

    assert resp.status_code == 200
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "SAMEORIGIN"
    csp = resp.headers.get("Content-Security-Policy")
    assert csp is not None
    assert "default-src 'self'" in csp


def test_csp_allows_map_assets_and_tiles():
    async def call_next(_request: Request) -> Response:
        return Response()

    csp = _run_middleware(call_next).headers["Content-Security-Policy"]
    assert "https://unpkg.com" in csp
    assert "https://*.tile.openstreetmap.org" in csp


def test_security_headers_preserve_existing_csp():
    async def call_next(_request: Request) -> Response:
        resp = Response()
        resp.headers["Content-Security-Policy"] = "default-src 'self'; img-src 'self' data:"
        return resp

    resp = _run_middleware(call_next)

    # Existing CSP should not be overridden; other headers still set
    assert resp.headers["Content-Security-Policy"] == "default-src 'self'; img-src 'self' data:"
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "SAMEORIGIN"


def test_security_headers_full_app_with_testclient():
    from fastapi.testclient import TestClient

    client = TestClient(api_module.app)
    resp = client.get("/favicon.ico")
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "SAMEORIGIN"
    assert "default-src 'self'" in (resp.headers.get("Content-Security-Policy") or "")

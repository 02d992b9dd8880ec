from chakai.main import request_id_middleware
from chakai.utils.request_id import generate_request_id, get_request_id, resolve_request_id, set_request_id
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
import pytest


def _app() -> FastAPI:
    app = FastAPI()

    @app.get("/check")
    async def check() -> dict[str, str]:
        return {"rid": get_request_id() or ""}

    app.middleware("http")(request_id_middleware)
    return app


def test_request_id_set_and_get() -> None:
    set_request_id("req-abc")
    assert get_request_id() == "req-abc"
    set_request_id(None)
    assert get_request_id() is None


def test_generate_request_id_is_not_empty() -> None:
    value = generate_request_id()
    assert isinstance(value, str)
    assert len(value) > 0


def test_resolve_request_id_keeps_plain_tokens() -> None:
    assert resolve_request_id("req-1.a_b") == "req-1.a_b"


@pytest.mark.parametrize("incoming", [None, "", "has space", "x" * 129, "改行\n"])
def test_resolve_request_id_replaces_unusable_values(incoming: str | None) -> None:
    resolved = resolve_request_id(incoming)
    assert resolved != incoming
    assert resolved


@pytest.mark.asyncio
async def test_request_id_middleware_generates_and_sets_header() -> None:
    transport = ASGITransport(app=_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/check")
    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.json()["rid"] == resp.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_middleware_uses_incoming_header() -> None:
    incoming = "req-custom-123"
    transport = ASGITransport(app=_app())
    async with AsyncClient(transport=transport, base_url="http://test", headers={"X-Request-ID": incoming}) as client:
        resp = await client.get("/check")
    assert resp.status_code == 200
    assert resp.headers["X-Request-ID"] == incoming
    assert resp.json()["rid"] == incoming

from datetime import timedelta
from typing import Any, AsyncIterator, Iterator

import pytest
from chakai.config import get_settings
from chakai.deps import get_current_admin_id, get_session
from chakai.routers import admin
from chakai.utils.auth import create_access_token
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient


class DummySession:
    def __init__(self, admin_exists: bool) -> None:
        self.admin_exists = admin_exists

    async def scalar(self, *args: Any, **kwargs: Any) -> int | None:
        return 1 if self.admin_exists else None

    async def rollback(self) -> None:
        return None


def _make_app(admin_exists: bool) -> TestClient:
    app = FastAPI()

    async def override_get_session() -> AsyncIterator[DummySession]:
        yield DummySession(admin_exists=admin_exists)

    app.dependency_overrides[get_session] = override_get_session

    @app.get("/protected")
    async def protected(admin_id: int = Depends(get_current_admin_id)) -> dict[str, int]:
        return {"admin_id": admin_id}

    app.include_router(admin.router)
    return TestClient(app)


def _token(secret: str, *, expired: bool = False) -> str:
    delta = timedelta(seconds=-1) if expired else timedelta(minutes=30)
    return create_access_token(admin_id=123, secret=secret, expires_delta=delta)


@pytest.fixture(autouse=True)
def _auth_secret(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_protected_accepts_valid_token() -> None:
    client = _make_app(admin_exists=True)
    res = client.get("/protected", headers={"Authorization": f"Bearer {_token('testsecret')}"})
    assert res.status_code == 200
    assert res.json()["admin_id"] == 123


def test_admin_routes_reject_missing_header() -> None:
    client = _make_app(admin_exists=True)
    res = client.get("/admin/events")
    assert res.status_code == 401
    assert res.headers.get("www-authenticate", "").lower().startswith("bearer")


def test_admin_routes_reject_invalid_token() -> None:
    client = _make_app(admin_exists=True)
    res = client.get("/admin/holders", headers={"Authorization": "Bearer invalid"})
    assert res.status_code == 401


def test_admin_routes_reject_expired_token() -> None:
    client = _make_app(admin_exists=True)
    token = _token("testsecret", expired=True)
    res = client.delete("/admin/events/1", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_admin_routes_reject_unknown_admin() -> None:
    client = _make_app(admin_exists=False)
    res = client.get("/admin/events", headers={"Authorization": f"Bearer {_token('testsecret')}"})
    assert res.status_code == 401

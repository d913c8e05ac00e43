from __future__ import annotations

from pathlib import Path
import sys

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel


# Ensure `import unifault.*` works when pytest chooses an import mode that
# doesn't automatically add the project root to sys.path.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


class RecordingSink:
    def __init__(self) -> None:
        self.calls: list[tuple[object, object]] = []

    def __call__(self, error, metadata) -> None:  # noqa: ANN001
        self.calls.append((error, metadata))

    @property
    def errors(self) -> list:
        return [error for error, _ in self.calls]


class _Signup(BaseModel):
    email: str
    age: int


class _DuplicateKeyError(Exception):
    """Shaped like the driver error a document store raises."""

    def __init__(self) -> None:
        super().__init__("E11000 duplicate key error collection: app.users")
        self.code = 11000
        self.details = {"keyPattern": {"email": 1}, "keyValue": {"email": "a@b.com"}}


def _demo_router() -> APIRouter:
    from unifault.api.capture import CapturingRoute
    from unifault.core.codes import ErrorCode
    from unifault.core.errors import FaultRaised

    router = APIRouter(route_class=CapturingRoute)

    @router.get("/demo/sync-crash")
    def sync_crash() -> dict[str, str]:
        raise ValueError("boom")

    @router.get("/demo/async-timeout")
    async def async_timeout() -> dict[str, str]:
        raise RuntimeError("upstream timeout after 5s")

    @router.get("/demo/missing")
    async def missing() -> dict[str, str]:
        raise FaultRaised.of(
            ErrorCode.RESOURCE_NOT_FOUND, "user 42 not found", details={"id": 42}
        )

    @router.get("/demo/upstream-traced")
    async def upstream_traced() -> dict[str, str]:
        raise FaultRaised.of(ErrorCode.CONFLICT, "stale version", trace_id="upstream-trace")

    @router.post("/demo/signup")
    async def signup(body: _Signup) -> dict[str, str]:
        return {"email": body.email}

    @router.get("/demo/duplicate")
    async def duplicate() -> dict[str, str]:
        raise _DuplicateKeyError()

    return router


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def app(monkeypatch: pytest.MonkeyPatch, sink: RecordingSink) -> FastAPI:
    monkeypatch.setenv("UNIFAULT_SUPERVISE", "false")
    monkeypatch.setenv("UNIFAULT_ENVIRONMENT", "test")
    monkeypatch.setenv("UNIFAULT_LOG_LEVEL", "DEBUG")

    # Clear settings cache so env overrides apply.
    from unifault.core.settings import get_settings

    get_settings.cache_clear()

    from unifault.main import create_app

    app = create_app(sink=sink)
    app.include_router(_demo_router())
    return app


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture(autouse=True)
def _fresh_settings():
    from unifault.core.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

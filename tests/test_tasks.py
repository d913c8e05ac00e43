from __future__ import annotations

from types import SimpleNamespace

import pytest

from unifault.api.correlation import bind_trace_id, current_trace_id, reset_trace_id
from unifault.core.codes import ErrorCode
from unifault.core.settings import Settings
from unifault.tasks.celery_app import create_celery_app
from unifault.tasks.tracing import TRACE_HEADER, TaskErrorReporter, stamp_trace_header, task_trace_id


def test_celery_eager_by_default() -> None:
    app = create_celery_app(Settings())
    assert app.conf.task_always_eager is True
    assert app.conf.task_eager_propagates is True


def test_celery_requires_broker_when_not_eager(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REDIS_URL", raising=False)
    with pytest.raises(ValueError):
        create_celery_app(Settings(celery_eager=False, redis_url=None))

    app = create_celery_app(Settings(celery_eager=False, redis_url="redis://localhost:6379/0"))
    assert app.conf.broker_url == "redis://localhost:6379/0"
    assert app.conf.task_always_eager is False


def test_publish_stamps_trace_id() -> None:
    headers: dict = {}
    stamp_trace_header(headers=headers)
    assert headers[TRACE_HEADER]

    kept = {TRACE_HEADER: "already-set"}
    stamp_trace_header(headers=kept)
    assert kept[TRACE_HEADER] == "already-set"


def test_message_header_trace_id() -> None:
    task = SimpleNamespace(request=SimpleNamespace(headers={TRACE_HEADER: "from-message"}))
    assert task_trace_id(task) == "from-message"
    assert task_trace_id(SimpleNamespace()) is None


def test_eager_task_inherits_caller_trace_id() -> None:
    app = create_celery_app(Settings(), sink=lambda e, m: None)

    @app.task(name="reports.trace")
    def trace() -> str | None:
        return current_trace_id()

    token = bind_trace_id("req-trace-1")
    try:
        assert trace.delay().get() == "req-trace-1"
        assert trace.apply().get() == "req-trace-1"
    finally:
        reset_trace_id(token)
    assert current_trace_id() is None


def test_eager_task_without_caller_gets_fresh_trace_id() -> None:
    app = create_celery_app(Settings(), sink=lambda e, m: None)

    @app.task(name="reports.trace")
    def trace() -> str | None:
        return current_trace_id()

    assert trace.delay().get()
    assert current_trace_id() is None


def test_eager_task_failure_reaches_sink() -> None:
    calls = []
    app = create_celery_app(
        Settings(environment="production"), sink=lambda e, m: calls.append((e, m))
    )

    @app.task(name="reports.build")
    def build() -> None:
        raise TimeoutError("smtp timed out")

    token = bind_trace_id("req-trace-2")
    try:
        with pytest.raises(TimeoutError):
            build.delay()
    finally:
        reset_trace_id(token)

    assert len(calls) == 1
    error, metadata = calls[0]
    assert error.code is ErrorCode.TIMEOUT_ERROR
    assert error.trace_id == "req-trace-2"
    assert error.context.endpoint == "task:reports.build"
    assert error.context.method == "TASK"
    assert error.context.request_id
    assert metadata.diagnostic is False
    assert metadata.path == "task:reports.build"


def test_successful_task_is_not_reported() -> None:
    calls = []
    app = create_celery_app(Settings(), sink=lambda e, m: calls.append(e))

    @app.task(name="reports.add")
    def add(a: int, b: int) -> int:
        return a + b

    assert add.delay(2, 3).get() == 5
    assert calls == []


def test_reporter_prefers_message_trace_id() -> None:
    calls = []
    reporter = TaskErrorReporter(lambda error, metadata: calls.append(error))
    task = SimpleNamespace(
        name="reports.build", request=SimpleNamespace(headers={TRACE_HEADER: "from-message"})
    )
    error = reporter.report(task, ValueError("bad row"), task_id="t-1")
    assert error.trace_id == "from-message"
    assert error.context.request_id == "t-1"
    assert calls == [error]

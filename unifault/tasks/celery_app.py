from __future__ import annotations

import os

from celery import Celery, signals

from unifault.api.sinks import ErrorSink, LoggingSink
from unifault.core.settings import Settings, get_settings
from unifault.tasks.tracing import TaskErrorReporter, TracedTask, stamp_trace_header


def _broker_url(settings: Settings) -> str:
    broker_url = settings.redis_url or os.getenv("REDIS_URL")
    if not broker_url:
        raise ValueError(
            "UNIFAULT_CELERY_EAGER=0 needs a broker: set UNIFAULT_REDIS_URL or REDIS_URL."
        )
    return broker_url


def create_celery_app(
    settings: Settings | None = None, *, sink: ErrorSink | None = None
) -> Celery:
    """Create the worker-tier Celery application.

    Every task runs as a :class:`TracedTask`: it inherits the publisher's trace
    id and reports its failures to *sink* (a ``LoggingSink`` by default) with
    the same canonical record the HTTP tier uses. Eager mode (inline execution)
    is the default; otherwise a Redis broker URL is required.
    """

    settings = settings or get_settings()

    app = Celery(settings.service_name, task_cls=TracedTask)
    app.error_reporter = TaskErrorReporter(
        sink if sink is not None else LoggingSink(),
        diagnostic=settings.diagnostic,
    )
    signals.before_task_publish.connect(
        stamp_trace_header, weak=False, dispatch_uid="unifault.stamp_trace_header"
    )

    if settings.celery_eager:
        app.conf.update(task_always_eager=True, task_eager_propagates=True)
    else:
        app.conf.update(
            broker_url=_broker_url(settings),
            task_always_eager=False,
            task_eager_propagates=False,
        )
    return app


celery_app = create_celery_app()

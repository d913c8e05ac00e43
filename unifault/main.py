"""
Application entry point.

Wires the error pipeline into a FastAPI application:
- correlation middleware (one trace id per request, echoed on every response)
- central dispatcher (exception handlers and error sink)
- process supervisor (armed for the lifetime of the app)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from unifault.api.correlation import install_correlation
from unifault.api.dispatcher import ErrorDispatcher, register_error_handlers
from unifault.api.health import router as health_router
from unifault.api.sinks import ErrorSink, LoggingSink
from unifault.core.logging import configure_logging
from unifault.core.settings import Settings, get_settings
from unifault.services.supervisor import Cleanup, ProcessSupervisor


logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    sink: ErrorSink | None = None,
    cleanup: Cleanup | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Overrides the environment-derived settings.
        sink: Error sink shared by the dispatcher and the supervisor.
        cleanup: Callback run once by the supervisor before the process exits.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.log_level)
    sink = sink if sink is not None else LoggingSink()

    supervisor: ProcessSupervisor | None = None
    if settings.supervise:
        supervisor = ProcessSupervisor(
            sink=sink,
            cleanup=cleanup,
            exit_code=settings.exit_code,
            diagnostic=settings.diagnostic,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if supervisor is not None:
            supervisor.install(asyncio.get_running_loop())
            logger.info("Process supervisor armed")
        yield
        if supervisor is not None:
            supervisor.uninstall()

    app = FastAPI(title=settings.service_name, lifespan=lifespan)
    app.state.supervisor = supervisor

    install_correlation(app, settings)
    register_error_handlers(app, ErrorDispatcher(settings, sink))
    app.include_router(health_router)

    return app


app = create_app()

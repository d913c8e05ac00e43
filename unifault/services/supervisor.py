"""
Process-wide last-resort failure handling.

Faults that escape every request boundary (uncaught exceptions in any
thread, exceptions of asyncio tasks nobody awaited) are pushed onto a
queue owned by a single supervisor thread. The first fault moves the
supervisor from ARMED to SHUTTING_DOWN: it is normalized, reported to the
sink, the cleanup callback runs to completion and the process exits with a
non-zero status. Nothing else in the codebase terminates the process.

No timeout is applied to the cleanup callback; an external watchdog is
expected to bound it.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import os
import queue
import sys
import threading
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any

from unifault.api.sinks import ErrorSink, RequestMetadata, emit_safely
from unifault.core.errors import CanonicalError, ErrorContext
from unifault.services.normalizer import normalize


logger = logging.getLogger(__name__)

UNCAUGHT_EXCEPTION = "PROCESS_UNCAUGHT_EXCEPTION"
UNCAUGHT_THREAD_EXCEPTION = "PROCESS_UNCAUGHT_THREAD_EXCEPTION"
UNHANDLED_TASK_EXCEPTION = "PROCESS_UNHANDLED_REJECTION"

Cleanup = Callable[[], Awaitable[Any] | Any]


class SupervisorState(str, enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    SHUTTING_DOWN = "shutting_down"


def terminate(code: int) -> None:
    """Flush logging and leave immediately, from any thread."""

    logging.shutdown()
    os._exit(code)


class ProcessSupervisor:
    def __init__(
        self,
        *,
        sink: ErrorSink | None,
        cleanup: Cleanup | None = None,
        exit_code: int = 1,
        diagnostic: bool = True,
        exit_func: Callable[[int], Any] = terminate,
    ) -> None:
        if exit_code == 0:
            raise ValueError("exit_code must be non-zero")
        self._sink = sink
        self._cleanup = cleanup
        self._exit_code = exit_code
        self._diagnostic = diagnostic
        self._exit = exit_func
        self._lock = threading.Lock()
        self._queue: queue.Queue[tuple[BaseException, str]] = queue.Queue()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None
        self._state = SupervisorState.IDLE
        self._previous_hooks: dict[str, Any] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self.fatal_error: CanonicalError | None = None

    @property
    def state(self) -> SupervisorState:
        return self._state

    # -- installation ---------------------------------------------------

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> ProcessSupervisor:
        """Arm the supervisor and take over the process-level hooks."""

        with self._lock:
            if self._state is not SupervisorState.IDLE:
                return self
            self._previous_hooks = {
                "sys": sys.excepthook,
                "threading": threading.excepthook,
            }
            sys.excepthook = self._sys_hook
            threading.excepthook = self._thread_hook
            self.attach_loop(loop)
            self._thread = threading.Thread(
                target=self._run, name="unifault-supervisor", daemon=True
            )
            self._thread.start()
            self._state = SupervisorState.ARMED
        return self

    def attach_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        if loop is None:
            return
        self._previous_hooks["loop"] = loop.get_exception_handler()
        self._loop = loop
        loop.set_exception_handler(self._loop_hook)

    def uninstall(self) -> None:
        """Restore the previous hooks. Only valid while still armed."""

        with self._lock:
            if self._state is not SupervisorState.ARMED:
                return
            sys.excepthook = self._previous_hooks["sys"]
            threading.excepthook = self._previous_hooks["threading"]
            if self._loop is not None and not self._loop.is_closed():
                self._loop.set_exception_handler(self._previous_hooks.get("loop"))
            self._loop = None
            self._state = SupervisorState.IDLE
            self._queue.put_nowait((_Stop(), ""))

    # -- hooks ----------------------------------------------------------

    def _sys_hook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            self._previous_hooks["sys"](exc_type, exc, tb)
            return
        self.report(exc, UNCAUGHT_EXCEPTION)
        # The interpreter is about to finalize; hold it until shutdown completes.
        self.wait()

    def _thread_hook(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_value is None or issubclass(args.exc_type, SystemExit):
            return
        self.report(args.exc_value, UNCAUGHT_THREAD_EXCEPTION)

    def _loop_hook(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        if exc is None:
            # Plain loop warnings (slow callbacks, unclosed transports).
            loop.default_exception_handler(context)
            return
        self.report(exc, UNHANDLED_TASK_EXCEPTION)

    # -- channel --------------------------------------------------------

    def report(self, exc: BaseException, origin: str = UNCAUGHT_EXCEPTION) -> None:
        """Push a top-level fault onto the supervisor channel."""

        with self._lock:
            if self._state is SupervisorState.ARMED:
                self._state = SupervisorState.SHUTTING_DOWN
                self._queue.put_nowait((exc, origin))
                return
            state = self._state
        if state is SupervisorState.SHUTTING_DOWN:
            # Cleanup already running: record and move on.
            self._emit(self._normalize(exc, origin), exc)
        else:
            logger.error("Top-level fault while supervisor is not armed", exc_info=exc)

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)

    # -- supervisor thread ----------------------------------------------

    def _run(self) -> None:
        exc, origin = self._queue.get()
        if isinstance(exc, _Stop):
            return
        self._shutdown(exc, origin)

    def _normalize(self, exc: BaseException, origin: str) -> CanonicalError:
        return normalize(exc, ErrorContext(endpoint=origin, custom_data={"fatal": True}))

    def _emit(self, error: CanonicalError, exc: BaseException) -> None:
        metadata = RequestMetadata(
            trace_id=error.trace_id,
            path=error.context.endpoint if error.context else None,
            redacted=error.to_redacted_dict(),
            diagnostic=self._diagnostic,
            exc=exc,
        )
        emit_safely(self._sink, error, metadata)

    def _shutdown(self, exc: BaseException, origin: str) -> None:
        error = self._normalize(exc, origin)
        self.fatal_error = error
        self._emit(error, exc)
        logger.critical("Initiating shutdown after %s [%s]", origin, error.code.value)
        try:
            self._run_cleanup()
        except Exception:
            logger.exception("Error during cleanup")
        finally:
            try:
                self._exit(self._exit_code)
            finally:
                self._done.set()

    def _run_cleanup(self) -> None:
        if self._cleanup is None:
            return
        outcome = self._cleanup()
        if inspect.isawaitable(outcome):
            # Cleanup coroutines get a private loop on the supervisor thread.
            asyncio.run(_await(outcome))


class _Stop(BaseException):
    pass


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable

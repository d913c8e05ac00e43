from __future__ import annotations

import contextlib
import logging
import traceback
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar

from unifault.client.catalog import MessageCatalog
from unifault.client.views import (
    ClientErrorView,
    NetworkStatus,
    reconstruct_from_fault,
    validation_issues,
)
from unifault.core.codes import ErrorCode


logger = logging.getLogger(__name__)

V = TypeVar("V")

MINIMAL_FALLBACK = "Something went wrong. Please refresh the page."


def default_fallback(error: ClientErrorView) -> str:
    lines = ["Oops, something went wrong", error.ui_message]
    if error.trace_id:
        lines.append(f"Error ID: {error.trace_id}")
    return "\n".join(lines)


class ErrorState:
    """Holds the current error for a screen until the consumer clears it."""

    def __init__(self, catalog: MessageCatalog, network: NetworkStatus | None = None) -> None:
        self._catalog = catalog
        self._network = network
        self.error: ClientErrorView | None = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    def set(self, fault: Any) -> ClientErrorView:
        self.error = reconstruct_from_fault(fault, self._catalog, self._network)
        return self.error

    def clear(self) -> None:
        self.error = None

    @contextlib.contextmanager
    def capture(self) -> Iterator[None]:
        """Record any failure of the block as the current error."""

        try:
            yield
        except Exception as exc:
            view = self.set(exc)
            logger.debug("Captured client error %s", view.code)

    def validation_issues(self) -> list[dict[str, Any]]:
        return validation_issues(self.error) if self.error is not None else []


class PresentationBoundary(Generic[V]):
    """Catches faults raised while producing a view.

    The first fault turns into a UI_CRASH error and the boundary renders its
    fallback from then on, until :meth:`reset`. A fallback that fails itself
    degrades to :data:`MINIMAL_FALLBACK`; the boundary never re-enters itself.
    """

    def __init__(
        self,
        catalog: MessageCatalog,
        *,
        fallback: V | Callable[[ClientErrorView], V] | None = None,
        on_error: Callable[[ClientErrorView], None] | None = None,
    ) -> None:
        self._catalog = catalog
        self._fallback = fallback
        self._on_error = on_error
        self.error: ClientErrorView | None = None

    def render(self, produce: Callable[[], V]) -> V | str:
        if self.error is not None:
            return self._render_fallback(self.error)
        try:
            return produce()
        except Exception as exc:
            self.error = ClientErrorView(
                code=ErrorCode.UI_CRASH,
                technical_message=str(exc) or type(exc).__name__,
                ui_message=self._catalog.get_message(ErrorCode.UI_CRASH),
                details={
                    "exception": type(exc).__name__,
                    "stack": "".join(traceback.format_exception(exc)),
                },
            )
            logger.error("Presentation boundary caught %s", type(exc).__name__, exc_info=exc)
            self._notify(self.error)
            return self._render_fallback(self.error)

    def reset(self) -> None:
        self.error = None

    def _notify(self, error: ClientErrorView) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("on_error observer failed")

    def _render_fallback(self, error: ClientErrorView) -> V | str:
        fallback = self._fallback
        try:
            if fallback is None:
                return default_fallback(error)
            if callable(fallback):
                return fallback(error)
            return fallback
        except Exception:
            logger.exception("Fallback view failed")
            return MINIMAL_FALLBACK

from __future__ import annotations

from unifault.client.boundary import MINIMAL_FALLBACK, ErrorState, PresentationBoundary
from unifault.client.catalog import MessageCatalog
from unifault.client.views import ClientErrorView, ClientFault, NetworkStatus
from unifault.core.codes import ErrorCode


def _crash() -> str:
    raise ZeroDivisionError("division by zero")


def test_render_passes_through_without_fault() -> None:
    boundary = PresentationBoundary(MessageCatalog())
    assert boundary.render(lambda: "<main/>") == "<main/>"
    assert boundary.error is None


def test_fault_turns_into_ui_crash_and_sticks_until_reset() -> None:
    seen: list[ClientErrorView] = []
    boundary = PresentationBoundary(MessageCatalog(), fallback="<oops/>", on_error=seen.append)

    assert boundary.render(_crash) == "<oops/>"
    assert boundary.error.code is ErrorCode.UI_CRASH
    assert boundary.error.details["exception"] == "ZeroDivisionError"
    assert "ZeroDivisionError" in boundary.error.details["stack"]
    assert len(seen) == 1

    # still showing the fallback; the producer is not retried
    assert boundary.render(lambda: "<main/>") == "<oops/>"
    assert len(seen) == 1

    boundary.reset()
    assert boundary.render(lambda: "<main/>") == "<main/>"


def test_default_fallback_shows_message() -> None:
    catalog = MessageCatalog()
    out = PresentationBoundary(catalog).render(_crash)
    assert catalog.get_message(ErrorCode.UI_CRASH) in out


def test_callable_fallback_receives_error() -> None:
    boundary = PresentationBoundary(MessageCatalog(), fallback=lambda error: f"crashed: {error.code.value}")
    assert boundary.render(_crash) == "crashed: UI_CRASH"


def test_failing_fallback_degrades_to_minimal_view() -> None:
    def fallback(error: ClientErrorView) -> str:
        raise RuntimeError("fallback broke too")

    boundary = PresentationBoundary(MessageCatalog(), fallback=fallback)
    assert boundary.render(_crash) == MINIMAL_FALLBACK


def test_failing_observer_does_not_escape() -> None:
    def on_error(error: ClientErrorView) -> None:
        raise RuntimeError("reporter down")

    boundary = PresentationBoundary(MessageCatalog(), fallback="<oops/>", on_error=on_error)
    assert boundary.render(_crash) == "<oops/>"


def test_error_state_capture_and_clear() -> None:
    catalog = MessageCatalog()
    state = ErrorState(catalog)
    assert not state.has_error

    with state.capture():
        raise ClientFault(
            ClientErrorView(
                code=ErrorCode.VALIDATION_ERROR,
                technical_message="Validation failed",
                ui_message=catalog.get_message(ErrorCode.VALIDATION_ERROR),
                details={"issues": [{"path": "age", "message": "must be positive"}]},
            )
        )

    assert state.has_error
    assert state.error.code is ErrorCode.VALIDATION_ERROR
    assert state.validation_issues() == [{"path": "age", "message": "must be positive"}]

    state.clear()
    assert not state.has_error
    assert state.validation_issues() == []


def test_error_state_uses_network_status() -> None:
    catalog = MessageCatalog()
    state = ErrorState(catalog, NetworkStatus(catalog, online=False))
    view = state.set(ConnectionResetError("reset"))
    assert view.code is ErrorCode.OFFLINE


def test_fallback_receives_the_recorded_error() -> None:
    received: list[ClientErrorView] = []

    def fallback(error: ClientErrorView) -> str:
        received.append(error)
        return "<oops/>"

    boundary = PresentationBoundary(MessageCatalog(), fallback=fallback)
    boundary.render(_crash)
    boundary.render(lambda: "<main/>")
    assert len(received) == 2
    assert all(error is boundary.error for error in received)

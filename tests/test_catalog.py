from __future__ import annotations

from unifault.client.catalog import DEFAULT_UI_MESSAGES, FALLBACK_MESSAGE, MessageCatalog
from unifault.core.codes import ErrorCode


def test_every_code_has_a_default_message() -> None:
    assert set(DEFAULT_UI_MESSAGES) == set(ErrorCode)
    assert all(DEFAULT_UI_MESSAGES.values())


def test_lookup_accepts_enum_or_wire_string() -> None:
    catalog = MessageCatalog()
    assert catalog.get_message(ErrorCode.OFFLINE) == catalog.get_message("OFFLINE")


def test_unknown_code_gets_fallback() -> None:
    catalog = MessageCatalog()
    assert catalog.get_message("SOMETHING_NEW") == FALLBACK_MESSAGE
    assert catalog.get_message(None) == FALLBACK_MESSAGE
    assert MessageCatalog(fallback="Oops").get_message("SOMETHING_NEW") == "Oops"


def test_overrides_and_reset() -> None:
    catalog = MessageCatalog({ErrorCode.TOKEN_EXPIRED: "Please log in again."})
    assert catalog.get_message("TOKEN_EXPIRED") == "Please log in again."

    catalog.register_overrides({"NOT_FOUND": "Nothing here.", "SOMETHING_NEW": "New thing failed."})
    assert catalog.get_message(ErrorCode.NOT_FOUND) == "Nothing here."
    assert catalog.get_message("SOMETHING_NEW") == "New thing failed."
    # earlier overrides survive a later registration
    assert catalog.get_message("TOKEN_EXPIRED") == "Please log in again."

    catalog.reset_to_defaults()
    assert catalog.get_message("TOKEN_EXPIRED") == DEFAULT_UI_MESSAGES[ErrorCode.TOKEN_EXPIRED]


def test_empty_override_is_ignored() -> None:
    catalog = MessageCatalog({ErrorCode.CONFLICT: ""})
    assert catalog.get_message(ErrorCode.CONFLICT) == DEFAULT_UI_MESSAGES[ErrorCode.CONFLICT]


def test_catalogs_are_independent() -> None:
    a = MessageCatalog({ErrorCode.CONFLICT: "A"})
    b = MessageCatalog()
    assert b.get_message(ErrorCode.CONFLICT) != "A"
    assert a.all_messages()[ErrorCode.CONFLICT] == "A"

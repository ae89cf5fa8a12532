"""Tests for error classification and result formatting."""

import pytest

from tabe_assistant.assistant.errors import (
    AuthExpired,
    FrameTooLarge,
    QuotaExhausted,
    RateLimited,
    ServiceError,
    StreamUnavailable,
    classify_status,
)
from tabe_assistant.assistant.formatter import (
    ERROR_MESSAGES,
    error_message,
    format_result,
    format_side_effects,
)
from tabe_assistant.assistant.models import FlashcardsCreated, StreamResult


@pytest.mark.parametrize(
    ("status", "error_type"),
    [(401, AuthExpired), (429, RateLimited), (402, QuotaExhausted), (500, ServiceError), (404, ServiceError)],
)
def test_classify_status(status, error_type):
    error = classify_status(status)
    assert type(error) is error_type
    assert error.status_code == status


def test_classify_status_uses_server_message():
    error = classify_status(500, "modelo caído")
    assert error.message == "Error: modelo caído"


def test_stream_errors_are_service_errors():
    assert issubclass(StreamUnavailable, ServiceError)
    assert issubclass(FrameTooLarge, ServiceError)


def test_error_message_per_kind():
    assert error_message(AuthExpired("x")) == ERROR_MESSAGES["auth_expired"]
    assert error_message(RateLimited("x")) == ERROR_MESSAGES["rate_limited"]
    assert error_message(QuotaExhausted("x")) == ERROR_MESSAGES["quota_exhausted"]
    assert error_message(StreamUnavailable("x")) == ERROR_MESSAGES["stream_unavailable"]
    assert error_message(ServiceError("connection reset")) == ERROR_MESSAGES["service_error"]


def test_error_message_shows_server_message():
    assert error_message(classify_status(500, "modelo caído")) == "Error: modelo caído"


def test_format_content_only():
    result = StreamResult(content="La derivada mide el cambio.")
    assert format_result(result) == "La derivada mide el cambio."
    assert format_side_effects(result) is None


def test_format_with_event_created():
    result = StreamResult(content="Listo", event_created={"id": 1, "title": "Parcial de Física"})

    formatted = format_result(result)

    assert formatted.startswith("Listo")
    assert "---" in formatted
    assert "Evento creado: Parcial de Física" in formatted


def test_format_with_flashcards_created():
    result = StreamResult(
        content="Te armé un mazo",
        flashcards_created=FlashcardsCreated(deck={"name": "Álgebra"}, cards_count=10),
    )

    notes = format_side_effects(result)

    assert "«Álgebra»" in notes
    assert "10 tarjetas" in notes


def test_format_with_untitled_event():
    notes = format_side_effects(StreamResult(content="", event_created={"id": 3}))
    assert notes == "📅 Evento creado"

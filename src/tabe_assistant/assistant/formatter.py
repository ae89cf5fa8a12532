"""Format assistant results and errors for display."""

from tabe_assistant.assistant.errors import AssistantError, ServiceError
from tabe_assistant.assistant.models import StreamResult

ERROR_MESSAGES = {
    "auth_expired": "No se pudo autenticar. Por favor cierra sesión e inicia sesión nuevamente.",
    "rate_limited": "Límite de solicitudes excedido. Intenta de nuevo en unos segundos.",
    "quota_exhausted": "Créditos de IA agotados. Contacta al administrador.",
    "service_error": "Error en el servicio de IA",
    "stream_unavailable": "No se pudo iniciar el streaming",
    "frame_too_large": "La respuesta del asistente llegó malformada. Intenta de nuevo.",
}


def error_message(error: AssistantError) -> str:
    """Return the user-facing copy for an error.

    Service errors that carry a server message show it, matching the
    "Error: <message>" form the classifier produces.
    """
    if type(error) is ServiceError and error.message.startswith("Error: "):
        return error.message
    return ERROR_MESSAGES.get(error.kind, ERROR_MESSAGES["service_error"])


def format_side_effects(result: StreamResult) -> str | None:
    """Return a note describing what the assistant created, or None."""
    notes = []
    if result.event_created is not None:
        title = result.event_created.get("title")
        notes.append(f"📅 Evento creado: {title}" if title else "📅 Evento creado")
    if result.flashcards_created is not None:
        deck_name = result.flashcards_created.deck.get("name")
        count = result.flashcards_created.cards_count
        label = f"«{deck_name}» " if deck_name else ""
        notes.append(f"🃏 Mazo {label}creado con {count} tarjetas")
    if not notes:
        return None
    return "\n".join(notes)


def format_result(result: StreamResult) -> str:
    """Format a StreamResult as plain markdown."""
    parts = [result.content]

    side_effects = format_side_effects(result)
    if side_effects:
        parts.append(f"\n---\n{side_effects}")

    return "".join(parts)

"""Data models for assistant conversations and stream output."""

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    """One turn of the caller-owned conversation history."""

    role: Literal["user", "assistant"]
    content: str

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class FlashcardsCreated(BaseModel):
    """Deck created by the assistant's flashcard tool."""

    model_config = ConfigDict(extra="allow")

    deck: dict[str, Any]
    cards_count: int = 0


@dataclass(slots=True)
class StreamFrame:
    """A single decoded frame from the assistant stream."""

    frame_type: Literal["delta", "tool_result"]
    content: str
    event_created: dict[str, Any] | None = None
    flashcards_created: FlashcardsCreated | None = None


class StreamResult(BaseModel):
    """Terminal aggregate of one successful stream."""

    content: str = ""
    event_created: dict[str, Any] | None = None
    flashcards_created: FlashcardsCreated | None = None

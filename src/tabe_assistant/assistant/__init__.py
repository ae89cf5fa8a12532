"""Streaming assistant client module."""

from tabe_assistant.assistant.chat import StreamingChat
from tabe_assistant.assistant.decoder import StreamDecoder
from tabe_assistant.assistant.dispatcher import RequestDispatcher
from tabe_assistant.assistant.memory import ConversationMemoryManager
from tabe_assistant.assistant.models import ChatMessage, StreamFrame, StreamResult

__all__ = [
    "StreamingChat",
    "StreamDecoder",
    "RequestDispatcher",
    "ConversationMemoryManager",
    "ChatMessage",
    "StreamFrame",
    "StreamResult",
]

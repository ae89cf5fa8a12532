"""Per-session conversation memory with TTL eviction."""

from cachetools import TTLCache
from langchain_core.chat_history import BaseChatMessageHistory
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

import structlog

from tabe_assistant.assistant.models import ChatMessage

logger = structlog.get_logger()


class InMemoryChatHistory(BaseChatMessageHistory):
    """In-memory chat message history with an optional sliding window."""

    def __init__(self, max_messages: int = 0) -> None:
        self._messages: list[BaseMessage] = []
        self._max_messages = max_messages

    @property
    def messages(self) -> list[BaseMessage]:
        return self._messages

    def add_message(self, message: BaseMessage) -> None:
        self._messages.append(message)
        if self._max_messages and len(self._messages) > self._max_messages:
            del self._messages[: len(self._messages) - self._max_messages]

    def clear(self) -> None:
        self._messages.clear()


class ConversationMemoryManager:
    """Manages per-session conversation history with TTL eviction.

    The assistant endpoint keeps no conversation state, so the full
    history is resent on every call. Each session (identified by
    session_id) gets its own history, trimmed to the last `max_messages`
    messages. Sessions are evicted after `ttl` seconds of inactivity or
    when `maxsize` is exceeded (LRU eviction).
    """

    def __init__(self, ttl: int = 3600, maxsize: int = 100, max_messages: int = 20) -> None:
        self._cache: TTLCache[str, InMemoryChatHistory] = TTLCache(
            maxsize=maxsize, ttl=ttl
        )
        self._max_messages = max_messages
        logger.info(
            "memory_manager_initialized",
            ttl=ttl,
            maxsize=maxsize,
            max_messages=max_messages,
        )

    def get_history(self, session_id: str) -> InMemoryChatHistory:
        """Get or create conversation history for a session."""
        if session_id not in self._cache:
            self._cache[session_id] = InMemoryChatHistory(self._max_messages)
            logger.debug("memory_session_created", session_id=session_id)
        return self._cache[session_id]

    def add_exchange(self, session_id: str, question: str, answer: str) -> None:
        """Store a question/answer exchange in the session history."""
        history = self.get_history(session_id)
        history.add_message(HumanMessage(content=question))
        history.add_message(AIMessage(content=answer))
        logger.debug(
            "memory_exchange_added",
            session_id=session_id,
            message_count=len(history.messages),
        )

    def get_messages(self, session_id: str) -> list[BaseMessage]:
        """Get all messages for a session (empty list if no history)."""
        if session_id not in self._cache:
            return []
        return self._cache[session_id].messages

    def to_chat_messages(self, session_id: str, next_question: str | None = None) -> list[ChatMessage]:
        """Build the wire history for a session, optionally ending with a new question."""
        history = [
            ChatMessage(
                role="user" if message.type == "human" else "assistant",
                content=str(message.content),
            )
            for message in self.get_messages(session_id)
        ]
        if next_question is not None:
            history.append(ChatMessage(role="user", content=next_question))
        return history

    def clear(self, session_id: str) -> None:
        """Clear conversation history for a session."""
        if session_id in self._cache:
            del self._cache[session_id]
            logger.debug("memory_session_cleared", session_id=session_id)

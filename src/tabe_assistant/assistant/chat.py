"""Streaming-status facade over the request dispatcher."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import structlog

from tabe_assistant.assistant.decoder import CompleteCallback, DeltaCallback
from tabe_assistant.assistant.dispatcher import ErrorCallback, RequestDispatcher
from tabe_assistant.assistant.models import ChatMessage, StreamResult

logger = structlog.get_logger()

StatusListener = Callable[[bool], None]


class StreamingChat:
    """Entry point for the UI layer: ``stream_message`` plus ``is_streaming``.

    ``is_streaming`` stays true while any call is in flight, so overlapping
    calls do not flip it off early. Listeners are told about each
    transition.
    """

    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher
        self._active_calls = 0
        self._listeners: list[StatusListener] = []

    @property
    def is_streaming(self) -> bool:
        return self._active_calls > 0

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_active(self, delta: int) -> None:
        was_streaming = self.is_streaming
        self._active_calls += delta
        if self.is_streaming != was_streaming:
            logger.debug("assistant_streaming_changed", is_streaming=self.is_streaming)
            for listener in list(self._listeners):
                listener(self.is_streaming)

    async def stream_message(
        self,
        history: Sequence[ChatMessage | dict[str, str]],
        persona_id: str,
        on_delta: DeltaCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> StreamResult | None:
        """Stream one answer for ``history`` using the given persona."""
        self._set_active(1)
        try:
            return await self._dispatcher.stream_message(
                history, persona_id, on_delta, on_complete, on_error
            )
        finally:
            self._set_active(-1)

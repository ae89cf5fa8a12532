"""Incremental decoder for the assistant's line-oriented event stream."""

from __future__ import annotations

import codecs
import inspect
import json
from collections.abc import AsyncGenerator, AsyncIterable, Awaitable, Callable
from typing import Any

import structlog
from pydantic import ValidationError

from tabe_assistant.assistant.errors import FrameTooLarge, StreamUnavailable
from tabe_assistant.assistant.models import FlashcardsCreated, StreamFrame, StreamResult

logger = structlog.get_logger()

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def _loads(payload: str) -> Any:
    # Raw control characters are allowed: a reassembled payload may carry a
    # literal newline inside a string.
    return json.loads(payload, strict=False)


DeltaCallback = Callable[[str], Awaitable[None] | None]
CompleteCallback = Callable[[StreamResult], Awaitable[None] | None]


async def invoke_callback(callback: Callable[..., Any], *args: Any) -> None:
    """Call a sync or async callback."""
    ret = callback(*args)
    if inspect.isawaitable(ret):
        await ret


def _delta_content(parsed: dict[str, Any]) -> str | None:
    """Extract choices[0].delta.content from an OpenAI-style chunk."""
    choices = parsed.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class StreamDecoder:
    """Turns response-body bytes into stream frames and one final result.

    One instance per streaming call. Bytes go through a stateful UTF-8
    decoder, so a code point split across chunks decodes correctly. Only
    complete lines are processed; the unterminated tail stays buffered
    until the next chunk or ``finish()``.

    A ``data:`` line whose payload does not parse puts the decoder in a
    continuation state: the payload is held and re-parsed joined with each
    following line, which reassembles payloads carrying a literal newline.
    If a following line is a complete frame on its own, the held payload
    is dropped as malformed. Every line, terminated or not, and every held
    payload are capped at ``max_pending_chars``; past that ``FrameTooLarge``
    is raised. The cap depends only on the lines, never on chunk boundaries.
    """

    def __init__(self, max_pending_chars: int = 1_048_576) -> None:
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._pending: str | None = None
        self._content = ""
        self._event_created: dict[str, Any] | None = None
        self._flashcards_created: FlashcardsCreated | None = None
        self._max_pending_chars = max_pending_chars
        self._frame_count = 0
        self._tool_result_seen = False
        self._failure: FrameTooLarge | None = None

    @property
    def result(self) -> StreamResult:
        """The aggregate decoded so far."""
        return StreamResult(
            content=self._content,
            event_created=self._event_created,
            flashcards_created=self._flashcards_created,
        )

    @property
    def awaiting_continuation(self) -> bool:
        return self._pending is not None

    def feed(self, chunk: bytes) -> list[StreamFrame]:
        """Decode a chunk and return the frames completed by it.

        If a line in the chunk is over the limit, the frames completed
        before it are still returned and ``FrameTooLarge`` is raised by the
        next ``feed()`` or ``finish()`` call.
        """
        self._raise_failure()
        self._buffer += self._text_decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return self._process_lines(lines, check_tail=True)

    def finish(self) -> list[StreamFrame]:
        """Flush leftover text at end of stream.

        Leftover text is treated as a complete line. A payload that still
        does not parse is discarded, since no more data is coming.
        """
        self._raise_failure()
        self._buffer += self._text_decoder.decode(b"", final=True)
        leftover, self._buffer = self._buffer, ""

        frames = self._process_lines([leftover] if leftover else [], check_tail=False)

        if self._pending is not None:
            logger.debug(
                "assistant_stream_leftover_ignored",
                pending_chars=len(self._pending),
            )
            self._pending = None

        return frames

    async def iter_frames(
        self, chunks: AsyncIterable[bytes] | None
    ) -> AsyncGenerator[StreamFrame, None]:
        """Yield frames from an async byte stream, flushing at its end."""
        if chunks is None:
            raise StreamUnavailable("Could not start streaming: response body is not readable")

        async for chunk in chunks:
            for frame in self.feed(chunk):
                yield frame

        for frame in self.finish():
            yield frame

    async def decode(
        self,
        chunks: AsyncIterable[bytes] | None,
        on_delta: DeltaCallback,
        on_complete: CompleteCallback,
    ) -> StreamResult:
        """Run the decode loop, invoking the callbacks in wire order.

        ``on_delta`` receives each delta fragment, or the replacement
        content of a tool-result frame. ``on_complete`` fires exactly once,
        after the last ``on_delta``.
        """
        async for frame in self.iter_frames(chunks):
            await invoke_callback(on_delta, frame.content)

        result = self.result
        logger.info(
            "assistant_stream_complete",
            frame_count=self._frame_count,
            content_length=len(result.content),
            has_event=result.event_created is not None,
            has_flashcards=result.flashcards_created is not None,
        )
        await invoke_callback(on_complete, result)
        return result

    def _process_line(self, line: str) -> StreamFrame | None:
        if len(line) > self._max_pending_chars:
            raise FrameTooLarge(
                "Stream line exceeded the pending buffer limit",
                pending_chars=len(line),
                limit=self._max_pending_chars,
            )
        if line.endswith("\r"):
            line = line[:-1]
        if self._pending is not None:
            return self._continue_pending(line)
        return self._process_fresh_line(line)

    def _process_fresh_line(self, line: str) -> StreamFrame | None:
        if line.startswith(":") or not line.strip():
            return None
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):]
        if payload.strip() == DONE_SENTINEL:
            return None

        try:
            parsed = _loads(payload)
        except json.JSONDecodeError:
            self._pending = payload
            logger.debug("assistant_stream_continuation_started", pending_chars=len(payload))
            return None
        return self._apply(parsed)

    def _continue_pending(self, line: str) -> StreamFrame | None:
        joined = f"{self._pending}\n{line}"
        try:
            parsed = _loads(joined)
        except json.JSONDecodeError:
            if self._is_standalone_frame(line):
                logger.warning(
                    "assistant_stream_frame_dropped",
                    reason="unparseable payload followed by a new frame",
                    pending_chars=len(self._pending),
                )
                self._pending = None
                return self._process_fresh_line(line)
            self._pending = joined
            self._check_pending()
            return None

        self._pending = None
        return self._apply(parsed)

    @staticmethod
    def _is_standalone_frame(line: str) -> bool:
        if not line.startswith(DATA_PREFIX):
            return False
        payload = line[len(DATA_PREFIX):]
        if payload.strip() == DONE_SENTINEL:
            return True
        try:
            _loads(payload)
        except json.JSONDecodeError:
            return False
        return True

    def _apply(self, parsed: Any) -> StreamFrame | None:
        if not isinstance(parsed, dict):
            return None

        if parsed.get("tool_result"):
            content = parsed.get("content")
            event = parsed.get("event_created")
            self._content = content if isinstance(content, str) else ""
            self._event_created = event if isinstance(event, dict) else None
            self._flashcards_created = self._parse_flashcards(parsed.get("flashcards_created"))
            self._tool_result_seen = True
            self._frame_count += 1
            logger.debug(
                "assistant_frame_tool_result",
                content_length=len(self._content),
                has_event=self._event_created is not None,
                has_flashcards=self._flashcards_created is not None,
            )
            return StreamFrame(
                frame_type="tool_result",
                content=self._content,
                event_created=self._event_created,
                flashcards_created=self._flashcards_created,
            )

        text = _delta_content(parsed)
        if text is None:
            return None
        # A tool result is final; later deltas must not change it
        if self._tool_result_seen:
            logger.debug("assistant_frame_delta_after_tool_result", text_length=len(text))
            return None
        self._content += text
        self._frame_count += 1
        logger.debug(
            "assistant_frame_delta",
            text_length=len(text),
            text_preview=text[:50],
        )
        return StreamFrame(frame_type="delta", content=text)

    @staticmethod
    def _parse_flashcards(raw: Any) -> FlashcardsCreated | None:
        if raw is None:
            return None
        try:
            return FlashcardsCreated.model_validate(raw)
        except ValidationError as exc:
            logger.warning("assistant_flashcards_invalid", error=str(exc))
            return None

    def _process_lines(self, lines: list[str], *, check_tail: bool) -> list[StreamFrame]:
        frames: list[StreamFrame] = []
        try:
            for line in lines:
                frame = self._process_line(line)
                if frame is not None:
                    frames.append(frame)
            if check_tail and len(self._buffer) > self._max_pending_chars:
                raise FrameTooLarge(
                    "Stream line exceeded the pending buffer limit",
                    pending_chars=len(self._buffer),
                    limit=self._max_pending_chars,
                )
        except FrameTooLarge as exc:
            if not frames:
                raise
            # Hand out the frames that precede the oversized line first
            self._failure = exc
        return frames

    def _raise_failure(self) -> None:
        if self._failure is not None:
            raise self._failure

    def _check_pending(self) -> None:
        if len(self._pending) > self._max_pending_chars:
            raise FrameTooLarge(
                "Unparseable stream frame exceeded the pending buffer limit",
                pending_chars=len(self._pending),
                limit=self._max_pending_chars,
            )

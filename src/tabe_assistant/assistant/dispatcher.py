"""Request dispatcher for the streaming assistant endpoint."""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Callable, Sequence
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from tabe_assistant.assistant.decoder import (
    CompleteCallback,
    DeltaCallback,
    StreamDecoder,
    invoke_callback,
)
from tabe_assistant.assistant.errors import (
    AssistantError,
    AuthExpired,
    ServiceError,
    StreamUnavailable,
    classify_status,
)
from tabe_assistant.assistant.models import ChatMessage, StreamFrame, StreamResult
from tabe_assistant.config import Settings

if TYPE_CHECKING:
    from tabe_assistant.auth.token_supplier import AuthTokenSupplier

logger = structlog.get_logger()

ErrorCallback = Callable[[AssistantError], Any]

# Statuses whose error copy does not depend on the response body
_BODYLESS_STATUSES = frozenset({401, 402, 429})


class RequestDispatcher:
    """Sends a conversation to the assistant and streams the answer back.

    One logical call is: get a token, POST the history, and on a 401 force
    a token refresh and retry exactly once. Any other non-2xx status fails
    immediately with a typed error. No state is kept between calls, so
    concurrent calls are independent.
    """

    def __init__(
        self,
        settings: Settings,
        token_supplier: AuthTokenSupplier,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._stream_url = settings.stream_url
        self._api_key = settings.api_key
        self._max_pending_chars = settings.max_pending_chars
        self._token_supplier = token_supplier
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.timeout)

    @staticmethod
    def _build_body(
        messages: Sequence[ChatMessage | dict[str, str]], persona_id: str
    ) -> dict[str, Any]:
        """Build the JSON request body."""
        wire = [
            (m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m)).to_wire()
            for m in messages
        ]
        return {"messages": wire, "persona_id": persona_id}

    async def _get_token(self, force_refresh: bool = False) -> str:
        try:
            return await self._token_supplier.get_token(force_refresh)
        except AssistantError:
            raise
        except Exception as exc:
            logger.warning("assistant_token_unavailable", force_refresh=force_refresh)
            raise AuthExpired(str(exc) or "Could not obtain a session token") from exc

    async def _post(self, token: str, body: dict[str, Any]) -> httpx.Response:
        request = self._client.build_request(
            "POST",
            self._stream_url,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {token}",
                "apikey": self._api_key,
            },
            json=body,
        )
        try:
            return await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.error("assistant_transport_error", error=str(exc))
            raise ServiceError(str(exc) or type(exc).__name__) from exc

    async def open_stream(
        self,
        messages: Sequence[ChatMessage | dict[str, str]],
        persona_id: str,
    ) -> httpx.Response:
        """Open the assistant stream, retrying once on an expired token.

        Args:
            messages: Full conversation history, oldest first. Must not be empty.
            persona_id: Opaque persona identifier forwarded to the server.

        Returns:
            A 2xx response whose body has not been read yet. The caller
            must close it.

        Raises:
            ValueError: If the history is empty or malformed.
            AssistantError: For auth, quota, rate-limit, and service failures.
        """
        if not messages:
            raise ValueError("Conversation history must not be empty")
        body = self._build_body(messages, persona_id)

        token = await self._get_token()
        response = await self._post(token, body)

        if response.status_code == 401:
            await response.aclose()
            logger.info("assistant_auth_retry", persona_id=persona_id)
            token = await self._get_token(force_refresh=True)
            response = await self._post(token, body)

        if not response.is_success:
            raise await self._failure(response)

        return response

    async def _failure(self, response: httpx.Response) -> AssistantError:
        """Classify a failed response, reading its body only when useful."""
        server_message = None
        try:
            if response.status_code not in _BODYLESS_STATUSES:
                await response.aread()
                try:
                    data = response.json()
                except ValueError:
                    data = None
                if isinstance(data, dict) and data.get("error"):
                    server_message = str(data["error"])
        except httpx.HTTPError as exc:
            logger.debug("assistant_error_body_unreadable", error=str(exc))
        finally:
            await response.aclose()

        logger.warning(
            "assistant_request_failed",
            status_code=response.status_code,
            server_message=server_message,
        )
        return classify_status(response.status_code, server_message)

    async def stream(
        self,
        messages: Sequence[ChatMessage | dict[str, str]],
        persona_id: str,
    ) -> AsyncGenerator[StreamFrame, None]:
        """Stream the answer as individual frames.

        The caller is responsible for accumulating text. Closing the
        generator early releases the response.
        """
        response = await self.open_stream(messages, persona_id)
        decoder = StreamDecoder(self._max_pending_chars)
        try:
            async for frame in decoder.iter_frames(_read_body(response)):
                yield frame
        finally:
            await response.aclose()

    async def stream_message(
        self,
        messages: Sequence[ChatMessage | dict[str, str]],
        persona_id: str,
        on_delta: DeltaCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> StreamResult | None:
        """Send the conversation and report the streamed answer via callbacks.

        Exactly one of ``on_complete`` / ``on_error`` fires. Request and
        stream failures never raise to the caller. Task cancellation and
        exceptions raised by the callbacks do, without further callbacks.

        Returns:
            The final result, or None if ``on_error`` was invoked.
        """
        logger.info(
            "assistant_stream_start",
            persona_id=persona_id,
            message_count=len(messages),
        )

        try:
            response = await self.open_stream(messages, persona_id)
        except AssistantError as exc:
            await invoke_callback(on_error, exc)
            return None
        except ValueError as exc:
            await invoke_callback(on_error, ServiceError(f"Invalid conversation history: {exc}"))
            return None

        in_callback = False

        async def guarded(callback: Callable[..., Any], *args: Any) -> None:
            nonlocal in_callback
            in_callback = True
            await invoke_callback(callback, *args)
            in_callback = False

        decoder = StreamDecoder(self._max_pending_chars)
        try:
            return await decoder.decode(
                _read_body(response),
                lambda text: guarded(on_delta, text),
                lambda result: guarded(on_complete, result),
            )
        except AssistantError as exc:
            # Errors raised by the caller's own callbacks are theirs to handle
            if in_callback:
                raise
            logger.error("assistant_stream_error", kind=exc.kind, error=exc.message)
            await invoke_callback(on_error, exc)
            return None
        finally:
            await response.aclose()

    async def close(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()


async def _read_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Iterate raw body bytes, mapping transport failures to the taxonomy."""
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    except httpx.StreamError as exc:
        raise StreamUnavailable(f"Could not read the response stream: {exc}") from exc
    except httpx.HTTPError as exc:
        raise ServiceError(str(exc) or type(exc).__name__) from exc

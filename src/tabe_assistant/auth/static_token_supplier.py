"""Fixed-credential token supplier for local development and tests."""

import structlog

from tabe_assistant.assistant.errors import AuthExpired

logger = structlog.get_logger()


class StaticTokenSupplier:
    """Token supplier that hands out preconfigured tokens.

    Useful against a local backend where the token never expires. A
    forced refresh pops the next queued replacement token; with none
    queued it fails like an expired session would.
    """

    def __init__(self, token: str, refreshed_tokens: list[str] | None = None):
        """Initialize with a current token.

        Args:
            token: Token returned by non-forced calls.
            refreshed_tokens: Tokens handed out, in order, on forced refreshes.
        """
        self._token = token
        self._refreshed_tokens = list(refreshed_tokens or [])
        self.refresh_count = 0

    async def get_token(self, force_refresh: bool = False) -> str:
        if force_refresh:
            self.refresh_count += 1
            if not self._refreshed_tokens:
                logger.info("static_token_refresh_exhausted")
                raise AuthExpired("Could not renew the session. Please log in again.")
            self._token = self._refreshed_tokens.pop(0)
            logger.info("static_token_refreshed", refresh_count=self.refresh_count)

        if not self._token:
            raise AuthExpired("Not authenticated. Please log in.")
        return self._token

    async def close(self) -> None:
        """No-op close method for compatibility with SessionTokenSupplier."""
        pass

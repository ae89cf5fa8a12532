"""Bearer credentials for the assistant endpoint, backed by a login session."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog

from tabe_assistant.assistant.errors import AuthExpired

logger = structlog.get_logger()


class AuthTokenSupplier(Protocol):
    """Supplies a bearer token, refreshable on demand."""

    async def get_token(self, force_refresh: bool = False) -> str:
        """Return an access token, raising AuthExpired if none can be had."""
        ...


@dataclass
class AuthSession:
    """Tokens of a logged-in user."""

    access_token: str
    refresh_token: str
    expires_at: float | None = None  # unix seconds

    def is_expired(self, leeway: float = 10.0) -> bool:
        return self.expires_at is not None and time.time() >= self.expires_at - leeway


class SessionTokenSupplier:
    """Token supplier over the platform's refresh-token grant.

    Non-forced calls return the cached access token, refreshing first when
    it is already past expiry. Forced calls always refresh. Concurrent
    forced refreshes are not deduplicated.
    """

    REFRESH_PATH = "/auth/v1/token"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: AuthSession | None = None,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._session = session
        self._timeout = timeout
        self._http_client: httpx.AsyncClient | None = None

    @property
    def session(self) -> AuthSession | None:
        return self._session

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def get_token(self, force_refresh: bool = False) -> str:
        if self._session is None or not self._session.access_token:
            raise AuthExpired("Not authenticated. Please log in.")

        if force_refresh or self._session.is_expired():
            self._session = await self._refresh(self._session)

        return self._session.access_token

    async def _refresh(self, session: AuthSession) -> AuthSession:
        if not session.refresh_token:
            raise AuthExpired("Could not renew the session. Please log in again.")

        client = await self._get_http_client()
        logger.info("auth_session_refresh_start")

        try:
            response = await client.post(
                f"{self._base_url}{self.REFRESH_PATH}",
                params={"grant_type": "refresh_token"},
                headers={"apikey": self._api_key, "Content-Type": "application/json"},
                json={"refresh_token": session.refresh_token},
            )
        except httpx.HTTPError as exc:
            logger.warning("auth_session_refresh_failed", reason=str(exc))
            raise AuthExpired("Could not renew the session. Please log in again.") from exc

        if response.status_code != 200:
            logger.warning("auth_session_refresh_failed", status_code=response.status_code)
            raise AuthExpired(
                "Could not renew the session. Please log in again.",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise AuthExpired("Could not renew the session. Please log in again.") from exc
        if not isinstance(data, dict) or not data.get("access_token"):
            raise AuthExpired("Could not renew the session. Please log in again.")

        expires_in = data.get("expires_in")
        refreshed = AuthSession(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or session.refresh_token,
            expires_at=time.time() + expires_in if isinstance(expires_in, (int, float)) else None,
        )
        logger.info("auth_session_refreshed", expires_in=expires_in)
        return refreshed

    async def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

"""
OAuth2 client-credentials token cache for EPO OPS.

A single `CredentialCache` is created per process by the service layer and
shared by every connector. Tokens are reused until 30 seconds before their
expiry; refresh is single-flight so concurrent searches that both observe an
expired token trigger only one exchange.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator, Callable, Optional

import httpx

from patent_scout.core.config import PatentScoutConfig, get_config
from patent_scout.core.models import CredentialState
from patent_scout.tools.errors import AuthError

logger = logging.getLogger("CredentialCache")

DEFAULT_EXPIRES_IN_SECONDS = 1200


def _now_millis() -> int:
    return int(time.time() * 1000)


def basic_auth_header(client_id: str, client_secret: str) -> str:
    """Build the `Authorization` value for the client-credentials exchange."""
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


class CredentialCache:
    """Obtains and caches an OPS bearer token."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        *,
        config: Optional[PatentScoutConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], int] = _now_millis,
    ) -> None:
        """
        Initialize the token cache.

        Args:
            client_id: OPS consumer key. If omitted, loaded from config.
            client_secret: OPS consumer secret. If omitted, loaded from config.
            config: Optional configuration override.
            http_client: Optional shared client; a short-lived one is used otherwise.
            clock: Returns the current epoch time in milliseconds.
        """
        self.config = config or get_config()
        self.client_id = client_id or self.config.epo_client_id
        self.client_secret = client_secret or self.config.epo_client_secret
        self.auth_url = self.config.epo_ops_auth_url
        self.skew_millis = int(self.config.token_refresh_skew_seconds) * 1000

        if not self.client_id or not self.client_secret:
            logger.warning("⚠️ No EPO OPS client credentials configured. Token requests will fail.")

        self._http_client = http_client
        self._clock = clock
        self._state: Optional[CredentialState] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> Optional[CredentialState]:
        """Copy of the cached credential state, if any."""
        return replace(self._state) if self._state else None

    def invalidate(self) -> None:
        """Drop the cached token so the next call performs a fresh exchange."""
        self._state = None

    def _cached_token(self) -> Optional[str]:
        state = self._state
        if state and state.is_usable(self._clock(), self.skew_millis):
            return state.access_token
        return None

    async def get_token(self) -> str:
        """
        Return a usable bearer token, exchanging credentials when needed.

        Raises:
            AuthError: If credentials are missing or the exchange fails.
        """
        token = self._cached_token()
        if token:
            return token

        async with self._lock:
            # Another caller may have refreshed while we waited.
            token = self._cached_token()
            if token:
                return token
            self._state = await self._exchange()
            return self._state.access_token

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        timeout = float(self.config.epo_request_timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout) as client:
            yield client

    async def _exchange(self) -> CredentialState:
        if not self.client_id or not self.client_secret:
            raise AuthError("Missing EPO OPS credentials (client id/secret).", endpoint=self.auth_url)

        issued_at = self._clock()
        logger.debug("Requesting new OPS access token from %s", self.auth_url)

        try:
            async with self._client() as client:
                response = await client.post(
                    self.auth_url,
                    content="grant_type=client_credentials",
                    headers={
                        "Authorization": basic_auth_header(self.client_id, self.client_secret),
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                )
        except httpx.RequestError as exc:
            raise AuthError(
                f"EPO auth request error: {exc}", endpoint=self.auth_url
            ) from exc

        if not response.is_success:
            raise AuthError(
                f"EPO auth error {response.status_code} from {self.auth_url}",
                status_code=response.status_code,
                endpoint=self.auth_url,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError(
                "EPO auth response is not valid JSON.",
                status_code=response.status_code,
                endpoint=self.auth_url,
            ) from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthError(
                "EPO auth response missing access_token.",
                status_code=response.status_code,
                endpoint=self.auth_url,
            )

        try:
            expires_in = int(payload.get("expires_in", DEFAULT_EXPIRES_IN_SECONDS))
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN_SECONDS

        logger.info("✓ Obtained OPS access token (expires in %ss)", expires_in)
        return CredentialState(
            access_token=token,
            expires_in_seconds=expires_in,
            expiry_epoch_millis=issued_at + expires_in * 1000,
        )

"""Partner authentication schemes and the shared token cache."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from .exceptions import ProviderUnavailable

logger = logging.getLogger(__name__)

# (token, lifetime in seconds)
TokenFetcher = Callable[[], Awaitable[tuple[str, float]]]

REFRESH_BUFFER_SECONDS = 5 * 60


class TokenState(str, Enum):
    EMPTY = "empty"
    VALID = "valid"
    REFRESHING = "refreshing"


class TokenCache:
    """Single-flight cache for one partner credential.

    The fast path returns a fresh token without locking. A stale or missing
    token is fetched under the lock, and callers that queued behind the
    refresh re-check freshness first, so concurrent first use issues exactly
    one token request. A token counts as stale ``refresh_buffer`` seconds
    before it actually expires.
    """

    def __init__(
        self,
        fetch: TokenFetcher,
        *,
        refresh_buffer: float = REFRESH_BUFFER_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._refresh_buffer = refresh_buffer
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = TokenState.EMPTY
        self._token: Optional[str] = None
        self._expires_at = 0.0

    @property
    def state(self) -> TokenState:
        return self._state

    def _is_fresh(self) -> bool:
        return (
            self._state is TokenState.VALID
            and self._token is not None
            and self._clock() < self._expires_at - self._refresh_buffer
        )

    async def get(self) -> str:
        if self._is_fresh():
            assert self._token is not None
            return self._token

        async with self._lock:
            if self._is_fresh():
                assert self._token is not None
                return self._token

            self._state = TokenState.REFRESHING
            try:
                token, lifetime = await self._fetch()
            except BaseException:
                self._state = TokenState.EMPTY
                self._token = None
                raise

            self._token = token
            self._expires_at = self._clock() + lifetime
            self._state = TokenState.VALID
            return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0
        self._state = TokenState.EMPTY


class StaticKeyAuth:
    """Fixed API key sent on every request, e.g. ``Authorization: Token <key>``."""

    def __init__(self, partner: str, key: str, *, header: str = "Authorization", scheme: str = "Token") -> None:
        self.partner = partner
        self._key = key
        self._header = header
        self._scheme = scheme

    async def headers(self) -> dict[str, str]:
        if not self._key:
            raise ProviderUnavailable("API key not configured", partner=self.partner, operation="authenticate")
        value = f"{self._scheme} {self._key}" if self._scheme else self._key
        return {self._header: value}

    def invalidate(self) -> None:
        # static keys cannot be refreshed
        return None


class BearerTokenAuth:
    """Bearer token obtained from the partner and kept in a TokenCache."""

    def __init__(self, partner: str, cache: TokenCache) -> None:
        self.partner = partner
        self.cache = cache

    async def headers(self) -> dict[str, str]:
        token = await self.cache.get()
        return {"Authorization": f"Bearer {token}"}

    def invalidate(self) -> None:
        logger.info("[%s] discarding cached access token", self.partner)
        self.cache.invalidate()

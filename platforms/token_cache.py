"""Process-wide bearer token cache with single-flight refresh."""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

TokenFetcher = Callable[[], Awaitable[Tuple[str, float]]]


class BearerTokenCache:
    """Caches a bearer token and refreshes it before it expires.

    ``fetch_token`` returns ``(token, expires_in_seconds)``. The token is
    treated as stale ``refresh_margin`` seconds before its real expiry.
    While a refresh is running every caller awaits that same refresh, so
    concurrent expiries never issue duplicate token requests.
    """

    def __init__(self, fetch_token: TokenFetcher, refresh_margin: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        self._fetch_token = fetch_token
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._refresh: Optional[asyncio.Future] = None
        self.refresh_count = 0

    @property
    def is_valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at - self.refresh_margin

    async def get_token(self) -> str:
        if self.is_valid:
            return self._token
        if self._refresh is None:
            self._refresh = asyncio.ensure_future(self._do_refresh())
        # shield: a cancelled caller must not cancel the refresh other callers wait on
        return await asyncio.shield(self._refresh)

    def invalidate(self) -> None:
        """Drop the cached token, e.g. after the API answered 401"""
        self._token = None
        self._expires_at = 0.0

    async def _do_refresh(self) -> str:
        try:
            token, expires_in = await self._fetch_token()
            self._token = token
            self._expires_at = self._clock() + float(expires_in)
            self.refresh_count += 1
            logger.debug(f"Bearer token refreshed, valid for {expires_in}s")
            return token
        finally:
            self._refresh = None

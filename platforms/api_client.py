import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import aiohttp

from interfaces.platform_interface import IOfficialApiClient
from models import Platform
from services.errors import AccountNotFoundError, PlatformError, TransientPlatformError

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse ISO-8601 timestamps as returned by platform APIs"""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


class OfficialApiClient(IOfficialApiClient):
    """Shared HTTP plumbing for platforms with an official API.

    Transient failures (connection errors, timeouts, 429 and 5xx) are retried
    up to ``max_retries`` times with linear backoff. A 404 is a definite
    "not found" and is raised immediately.
    """

    platform: Platform

    def __init__(self, timeout: float = 30.0, max_retries: int = 3, retry_delay: float = 2.0):
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session: Optional[aiohttp.ClientSession] = None

    async def ensure_session(self):
        """Ensures aiohttp session exists"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(headers={'Accept': 'application/json'})

    async def close(self):
        """Close the aiohttp session"""
        if self.session and not self.session.closed:
            await self.session.close()

    async def _auth_headers(self) -> Dict[str, str]:
        return {}

    async def _handle_unauthorized(self) -> None:
        """Called once when a request answers 401, before it is retried"""
        raise PlatformError("Unauthorized", self.platform.value)

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                       handle: Optional[str] = None) -> Dict[str, Any]:
        attempt = 0
        reauthorized = False
        while True:
            attempt += 1
            try:
                await self.ensure_session()
                headers = await self._auth_headers()
                async with self.session.get(url, params=params, headers=headers, timeout=self.timeout) as response:
                    if response.status == 401 and not reauthorized:
                        reauthorized = True
                        await self._handle_unauthorized()
                        attempt -= 1
                        continue
                    if response.status == 404:
                        raise AccountNotFoundError(handle or url, self.platform.value)
                    if response.status == 429 or response.status >= 500:
                        raise TransientPlatformError(f"HTTP {response.status} from {url}",
                                                     self.platform.value, response.status)
                    if response.status != 200:
                        error_data = await response.text()
                        raise PlatformError(f"HTTP {response.status} from {url}: {error_data[:200]}",
                                            self.platform.value)
                    return await response.json()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                error = TransientPlatformError(f"{type(e).__name__}: {e}", self.platform.value)
            except TransientPlatformError as e:
                error = e

            if attempt >= self.max_retries:
                raise error
            logger.warning(f"[{self.platform.display_name}] Request failed (attempt {attempt}/"
                           f"{self.max_retries}): {error}")
            await asyncio.sleep(self.retry_delay * attempt)

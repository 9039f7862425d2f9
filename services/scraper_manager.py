import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from interfaces.platform_interface import IStreamPlatform
from models import Platform, StatusSnapshot
from platforms.browser import BrowserHandle
from platforms.kick_platform import KickPlatform
from platforms.tiktok_platform import TikTokPlatform
from services.errors import AccountNotFoundError
from utils.batching import run_in_batches

logger = logging.getLogger(__name__)

SCRAPE_PLATFORMS = (Platform.KICK, Platform.TIKTOK)
HEALTH_CHECK_HANDLE = 'test_user_health_check'


@dataclass
class ScraperConfig:
    enabled: Set[Platform] = field(default_factory=lambda: set(SCRAPE_PLATFORMS))
    max_retries: int = 3
    timeout: float = 30.0          # seconds, per attempt
    retry_delay: float = 2.0       # seconds, multiplied by the attempt number
    batch_size: int = 3
    batch_pause: float = 1.0
    settle_delay: Optional[float] = None

    @classmethod
    def from_settings(cls, settings) -> "ScraperConfig":
        return cls(
            enabled={p for p in SCRAPE_PLATFORMS if settings.is_enabled(p)},
            max_retries=settings.max_retries,
            timeout=settings.timeout_seconds,
            retry_delay=settings.retry_delay,
            batch_size=settings.batch_size,
            batch_pause=settings.batch_pause
        )


class ScraperManager:
    """Single entry point for the status of scrape-only accounts.

    Hides strategy selection, retries with linear backoff, a per-attempt
    timeout and batching. Failures never reach the caller: they come back
    as ``None``, meaning "no information this time", not "offline".
    """

    def __init__(self, config: Optional[ScraperConfig] = None,
                 strategies: Optional[Dict[Platform, IStreamPlatform]] = None):
        self.config = config or ScraperConfig()
        self.browsers: Dict[Platform, BrowserHandle] = {}
        self.strategies = strategies if strategies is not None else self._build_strategies()
        self._running = False

    def _build_strategies(self) -> Dict[Platform, IStreamPlatform]:
        strategies: Dict[Platform, IStreamPlatform] = {}
        for platform, strategy_cls in ((Platform.KICK, KickPlatform), (Platform.TIKTOK, TikTokPlatform)):
            browser = BrowserHandle(platform.value)
            self.browsers[platform] = browser
            strategies[platform] = strategy_cls(
                browser,
                timeout=self.config.timeout,
                settle_delay=self.config.settle_delay
            )
        return strategies

    async def init(self) -> None:
        for platform in SCRAPE_PLATFORMS:
            if platform in self.config.enabled:
                logger.info(f"{platform.display_name} scraper ready")
        self._running = True
        logger.info("Scraper manager initialized successfully")

    async def close(self) -> None:
        self._running = False
        for platform, strategy in self.strategies.items():
            try:
                await strategy.close()
            except Exception as e:
                logger.error(f"Error closing {platform.display_name} scraper: {e}")
        for platform, browser in self.browsers.items():
            try:
                await browser.close()
            except Exception as e:
                logger.error(f"Error closing {platform.display_name} browser: {e}")
        logger.info("Scraper manager closed")

    def is_initialized(self) -> bool:
        return self._running

    def get_config(self) -> ScraperConfig:
        return dataclasses.replace(self.config, enabled=set(self.config.enabled))

    def update_config(self, **changes) -> None:
        self.config = dataclasses.replace(self.config, **changes)
        logger.info(f"Scraper config updated: {self.config}")

    async def check_status(self, platform: Platform, handle: str) -> Optional[StatusSnapshot]:
        if not self._running:
            logger.warning("Scraper manager is not running")
            return None

        strategy = self.strategies.get(platform)
        if strategy is None:
            logger.error(f"Unsupported platform for scraping: {platform.value}")
            return None

        if platform not in self.config.enabled:
            logger.warning(f"{platform.display_name} scraping is disabled")
            return None

        max_retries = self.config.max_retries
        for attempt in range(1, max_retries + 1):
            try:
                result = await asyncio.wait_for(strategy.fetch_status(handle), timeout=self.config.timeout)
                logger.info(f"Stream check for {platform.value}/{handle}: {'LIVE' if result.is_live else 'OFFLINE'}")
                return result
            except AccountNotFoundError as e:
                logger.warning(f"{platform.display_name} account not found: {handle} ({e})")
                return None
            except asyncio.TimeoutError:
                error = f"timed out after {self.config.timeout:.0f}s"
            except Exception as e:
                error = f"{type(e).__name__}: {e}"

            logger.error(f"Error checking {platform.value} stream for {handle} "
                         f"(attempt {attempt}/{max_retries}): {error}")
            if attempt >= max_retries:
                logger.error(f"Max retries reached for {platform.value}/{handle}")
                return None

            await asyncio.sleep(self.config.retry_delay * attempt)

        return None

    async def check_multiple(self, streams: Sequence[Tuple[Platform, str]]) -> List[StatusSnapshot]:
        """Check many accounts in sequential batches of ``batch_size``"""
        results = await run_in_batches(
            list(streams),
            lambda stream: self.check_status(*stream),
            self.config.batch_size,
            self.config.batch_pause
        )

        snapshots = []
        for (platform, handle), result in zip(streams, results):
            if isinstance(result, StatusSnapshot):
                snapshots.append(result)
            elif isinstance(result, BaseException):
                logger.error(f"Failed to check stream {platform.value}/{handle}: {result}")
            else:
                logger.debug(f"No status for {platform.value}/{handle}")
        return snapshots

    async def health_check(self) -> Dict[str, bool]:
        """Liveness probe: does each strategy pipeline run end to end?"""
        health: Dict[str, bool] = {}
        for platform in SCRAPE_PLATFORMS:
            if platform not in self.config.enabled:
                health[platform.value] = True  # disabled counts as healthy
                continue
            strategy = self.strategies.get(platform)
            if strategy is None:
                health[platform.value] = False
                continue
            try:
                result = await asyncio.wait_for(strategy.fetch_status(HEALTH_CHECK_HANDLE),
                                                timeout=self.config.timeout)
                health[platform.value] = result.platform is platform
            except AccountNotFoundError:
                # a definite answer from the platform means the pipeline works
                health[platform.value] = True
            except Exception as e:
                logger.error(f"Health check failed for {platform.display_name}: {e}")
                health[platform.value] = False

        health['overall'] = all(health[p.value] for p in SCRAPE_PLATFORMS) and self._running
        return health

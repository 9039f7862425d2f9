import dataclasses
import logging
from typing import Dict, Optional, Set

from interfaces.platform_interface import IOfficialApiClient
from interfaces.repository_interface import IAccountRepository
from models import AccountIdentity, Platform, StatusSnapshot, TrackedAccount
from platforms.twitch_platform import TwitchPlatform
from platforms.youtube_platform import YouTubePlatform
from services.config_manager import ConfigManager, MonitorSettings
from services.errors import AccountNotFoundError, PlatformError
from services.scraper_manager import ScraperManager
from utils.validators import Validators

logger = logging.getLogger(__name__)


class PlatformStatusProvider:
    """One status interface over official APIs and scrapers.

    ``get_status`` never raises: any failure, including "account not
    found", is logged and reported as ``None``.
    """

    def __init__(self, scraper_manager: ScraperManager,
                 api_clients: Dict[Platform, IOfficialApiClient],
                 enabled_platforms: Optional[Set[Platform]] = None,
                 account_repository: Optional[IAccountRepository] = None):
        self.scraper_manager = scraper_manager
        self.api_clients = api_clients
        self.enabled_platforms = set(Platform) if enabled_platforms is None else set(enabled_platforms)
        self.account_repository = account_repository

    @classmethod
    def from_config(cls, config_manager: ConfigManager, settings: MonitorSettings,
                    scraper_manager: ScraperManager,
                    account_repository: Optional[IAccountRepository] = None) -> "PlatformStatusProvider":
        client_options = {
            'timeout': settings.timeout_seconds,
            'max_retries': settings.max_retries,
            'retry_delay': settings.retry_delay
        }
        api_clients: Dict[Platform, IOfficialApiClient] = {}
        if settings.is_enabled(Platform.TWITCH):
            credentials = config_manager.get_platform_credentials(Platform.TWITCH)
            api_clients[Platform.TWITCH] = TwitchPlatform(
                credentials.get('client_id'), credentials.get('client_secret'), **client_options
            )
        if settings.is_enabled(Platform.YOUTUBE):
            credentials = config_manager.get_platform_credentials(Platform.YOUTUBE)
            api_clients[Platform.YOUTUBE] = YouTubePlatform(credentials.get('api_key'), **client_options)

        return cls(scraper_manager, api_clients, settings.enabled_platforms, account_repository)

    def is_enabled(self, platform: Platform) -> bool:
        if platform not in self.enabled_platforms:
            return False
        if platform.is_api_backed:
            return platform in self.api_clients
        return True

    async def get_status(self, platform: Platform, native_id: str, handle: str) -> Optional[StatusSnapshot]:
        if not self.is_enabled(platform):
            logger.debug(f"{platform.display_name} is disabled, skipping {handle}")
            return None

        try:
            if platform is Platform.TWITCH or platform is Platform.YOUTUBE:
                snapshot = await self.api_clients[platform].get_live_status(native_id, handle)
            elif platform is Platform.KICK or platform is Platform.TIKTOK:
                snapshot = await self.scraper_manager.check_status(platform, handle)
            else:
                raise ValueError(f"Unsupported platform: {platform}")
        except AccountNotFoundError as e:
            logger.warning(f"{platform.display_name} account {handle} ({native_id}) not found: {e}")
            return None
        except Exception as e:
            logger.error(f"Error checking stream status for {handle} ({native_id}) on {platform.value}: {e}")
            return None

        if snapshot is not None and snapshot.native_id != native_id:
            snapshot = dataclasses.replace(snapshot, native_id=native_id)
        return snapshot

    async def get_identity(self, platform: Platform, handle: str) -> Optional[AccountIdentity]:
        """Resolve identity once, when an account is first registered"""
        if not self.is_enabled(platform):
            logger.warning(f"{platform.display_name} is disabled, cannot resolve {handle}")
            return None

        if platform is Platform.TWITCH or platform is Platform.YOUTUBE:
            try:
                return await self.api_clients[platform].get_identity(handle)
            except AccountNotFoundError:
                logger.warning(f"{platform.display_name} user not found: {handle}")
                return None
            except PlatformError as e:
                logger.error(f"Error fetching streamer data for {handle} on {platform.value}: {e}")
                return None
        elif platform is Platform.KICK or platform is Platform.TIKTOK:
            # scrape-only platforms expose no stable id; the handle is the identity
            return AccountIdentity(native_id=handle, handle=handle, display_name=handle)
        else:
            raise ValueError(f"Unsupported platform: {platform}")

    async def register_account(self, platform: Platform, handle_or_url: str) -> Optional[TrackedAccount]:
        """Validate, resolve and store a new tracked account.

        Returns the existing record when the account is already tracked and
        ``None`` when the platform does not know the account.
        """
        if self.account_repository is None:
            raise RuntimeError("No account repository configured")

        is_valid, handle, error = Validators.extract_handle(platform, handle_or_url)
        if not is_valid:
            raise ValueError(error)

        identity = await self.get_identity(platform, handle)
        if identity is None:
            return None

        existing = await self.account_repository.get(platform, identity.native_id)
        if existing is not None:
            return existing

        account = TrackedAccount(
            platform=platform,
            native_id=identity.native_id,
            handle=identity.handle,
            display_name=identity.display_name,
            avatar_url=identity.avatar_url,
            followers=identity.followers
        )
        account = await self.account_repository.add(account)
        logger.info(f"Registered {platform.display_name} account {account.display_name} ({account.native_id})")
        return account

    async def close(self) -> None:
        for platform, client in self.api_clients.items():
            try:
                await client.close()
            except Exception as e:
                logger.error(f"Error closing {platform.display_name} client: {e}")

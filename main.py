import os
import asyncio
import logging

import discord

from interfaces.database_interface import IDatabase
from services.config_manager import ConfigManager, MonitorSettings
from services.database_service import DatabaseService
from services.discord_sink import DiscordNotificationSink
from services.errors import ConfigurationError
from services.logging_service import LoggingService, setup_logging
from services.memory_repository import MemoryDatabase
from services.notification_dispatcher import NotificationDispatcher
from services.presence_monitor import PresenceMonitor
from services.scraper_manager import ScraperConfig, ScraperManager
from services.stream_service import PlatformStatusProvider

logger = logging.getLogger(__name__)


def create_database(settings: MonitorSettings) -> IDatabase:
    if settings.database_type == 'memory':
        return MemoryDatabase()
    return DatabaseService(settings.database_path)


class PresenceBot(discord.Client):
    """Discord client that owns the presence pipeline.

    Everything is built in ``__init__``; I/O starts in ``setup_hook`` and the
    monitor begins polling on the first ``on_ready``.
    """

    def __init__(self, config_manager: ConfigManager, settings: MonitorSettings):
        super().__init__(intents=discord.Intents.default())
        self.settings = settings
        self._monitor_started = asyncio.Event()

        self.logging_service = LoggingService(settings.log_channel_id, settings.log_level)
        self.logging_service.set_bot(self)
        self.db_service = create_database(settings)
        self.scraper_manager = ScraperManager(ScraperConfig.from_settings(settings))
        self.status_provider = PlatformStatusProvider.from_config(
            config_manager, settings, self.scraper_manager, self.db_service
        )
        self.dispatcher = NotificationDispatcher(
            self.db_service,
            DiscordNotificationSink(self),
            self.logging_service,
            settings.default_template
        )
        self.monitor = PresenceMonitor(
            self.status_provider,
            self.db_service,
            self.db_service,
            self.dispatcher,
            settings,
            self.logging_service
        )

    async def setup_hook(self):
        """Open storage and scrapers before the gateway connects"""
        await self.db_service.initialize()
        await self.scraper_manager.init()

        enabled = ', '.join(sorted(p.display_name for p in self.settings.enabled_platforms)) or 'none'
        logger.info(f"Storage: {self.settings.database_type}, enabled platforms: {enabled}")

    async def on_ready(self):
        # on_ready fires again after every reconnect
        if self._monitor_started.is_set():
            return
        self._monitor_started.set()

        logger.info(f'Logged in as {self.user} ({len(self.guilds)} guilds)')
        try:
            await self.monitor.start()
        except Exception as e:
            logger.error(f"Could not start stream monitor: {e}", exc_info=True)

    async def close(self):
        """Stop polling, then release scrapers, API sessions and the gateway"""
        try:
            await self.monitor.stop()
            await self.scraper_manager.close()
            await self.status_provider.close()
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)
        finally:
            await super().close()


async def run_bot_async():
    setup_logging()
    try:
        config_manager = ConfigManager(os.getenv('CONFIG_PATH', 'config.json'))
        settings = config_manager.monitor_settings()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return

    logging.getLogger().setLevel(settings.log_level.upper())

    token = os.getenv('DISCORD_TOKEN')
    if not token:
        logger.error("DISCORD_TOKEN is not set")
        return

    async with PresenceBot(config_manager, settings) as bot:
        await bot.start(token)


def run_bot():
    """Console entry point"""
    try:
        asyncio.run(run_bot_async())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    run_bot()

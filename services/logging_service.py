import logging
import discord
from typing import Optional, Union
from datetime import datetime

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(log_level: str = 'INFO', log_file: Optional[str] = 'bot.log') -> None:
    """Configure root logging once for the process"""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=handlers
    )


class LoggingService:
    """Service for handling logging and error reporting.

    Every message goes to the standard logger. When a bot and a log
    channel are configured, messages at or above ``channel_level`` are
    mirrored to that Discord channel as well.
    """

    LEVEL_COLORS = {
        'DEBUG': discord.Color.light_grey(),
        'INFO': discord.Color.blue(),
        'WARNING': discord.Color.yellow(),
        'ERROR': discord.Color.red()
    }

    def __init__(self, log_channel_id: Optional[int] = None, channel_level: str = 'INFO',
                 name: str = 'presence'):
        self.bot = None
        self.log_channel_id = log_channel_id
        self.channel_level = getattr(logging, channel_level.upper())
        self.logger = logging.getLogger(name)

    def set_bot(self, bot: discord.Client) -> None:
        """Set bot instance for Discord channel logging"""
        self.bot = bot

    async def log_debug(self, message: str) -> None:
        """Log debug message"""
        self.logger.debug(message)
        await self._log_to_discord("DEBUG", message)

    async def log_info(self, message: str) -> None:
        """Log info message"""
        self.logger.info(message)
        await self._log_to_discord("INFO", message)

    async def log_warning(self, message: str) -> None:
        """Log warning message"""
        self.logger.warning(message)
        await self._log_to_discord("WARNING", message)

    async def log_error(self, error: Union[Exception, str], context: str = "") -> None:
        """Log error message with optional context"""
        error_message = f"{context}: {str(error)}" if context else str(error)
        self.logger.error(error_message, exc_info=error if isinstance(error, Exception) else None)
        await self._log_to_discord("ERROR", error_message)

    async def _log_to_discord(self, level: str, message: str) -> None:
        """Log message to Discord channel if configured"""
        if not self.bot or not self.log_channel_id:
            return
        if getattr(logging, level) < self.channel_level:
            return

        try:
            channel = self.bot.get_channel(self.log_channel_id)
            if channel:
                embed = discord.Embed(
                    title=f"Bot Log - {level}",
                    description=message[:4000],
                    color=self.LEVEL_COLORS.get(level, discord.Color.default()),
                    timestamp=datetime.now()
                )
                await channel.send(embed=embed)
        except discord.DiscordException as e:
            self.logger.error(f"Failed to log to Discord: {e}")

import logging

import discord

from interfaces.service_interface import Destination, INotificationSink, RenderedMessage
from services.errors import DeliveryError
from utils.embed_builder import EmbedBuilder

logger = logging.getLogger(__name__)


class DiscordNotificationSink(INotificationSink):
    """Posts rendered notifications to Discord text channels"""

    def __init__(self, bot: discord.Client, embed_builder: EmbedBuilder = None):
        self.bot = bot
        self.embed_builder = embed_builder or EmbedBuilder()

    async def _resolve_channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except discord.NotFound:
            return None
        except discord.DiscordException as e:
            raise DeliveryError(f"Could not fetch channel {channel_id}: {e}") from e

    async def send(self, destination: Destination, message: RenderedMessage) -> None:
        channel = await self._resolve_channel(destination.channel_id)
        if channel is None:
            raise DeliveryError(f"Channel {destination.channel_id} not found in guild {destination.guild_id}")
        if not isinstance(channel, discord.abc.Messageable):
            raise DeliveryError(f"Channel {destination.channel_id} does not accept messages")

        embed = self.embed_builder.create_stream_notification(message)
        try:
            await channel.send(
                content=message.content,
                embed=embed,
                allowed_mentions=discord.AllowedMentions(roles=True, users=True, everyone=False)
            )
        except discord.Forbidden as e:
            raise DeliveryError(f"Missing permissions to post in channel {destination.channel_id}") from e
        except discord.HTTPException as e:
            raise DeliveryError(f"Discord rejected message for channel {destination.channel_id}: {e}") from e

import discord
from datetime import datetime, timezone

from interfaces.service_interface import RenderedMessage


class EmbedBuilder:
    """Utility class for building Discord embeds"""

    def create_stream_notification(self, message: RenderedMessage) -> discord.Embed:
        """Create stream notification embed"""
        embed = discord.Embed(
            title=message.title or f"{message.streamer} is now live!",
            url=message.url,
            color=self._get_platform_color(message.platform),
            timestamp=message.started_at or datetime.now(timezone.utc)
        )
        embed.set_author(name=message.streamer, url=message.url, icon_url=message.avatar_url)

        if message.viewer_count is not None:
            embed.add_field(name="Viewers", value=f"{message.viewer_count:,}", inline=True)

        if message.thumbnail_url:
            embed.set_image(url=message.thumbnail_url)

        embed.set_footer(text=f"Platform: {message.platform}")
        return embed

    def _get_platform_color(self, platform: str) -> discord.Color:
        """Get color for platform"""
        colors = {
            'twitch': discord.Color.purple(),
            'youtube': discord.Color.red(),
            'tiktok': discord.Color.dark_theme(),
            'kick': discord.Color.green()
        }
        return colors.get(platform.lower(), discord.Color.blue())

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Destination:
    """Where a notification should go"""
    guild_id: int
    channel_id: int


@dataclass
class RenderedMessage:
    """Notification text plus the stream data used to build rich embeds"""
    content: str
    streamer: str
    platform: str
    title: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    avatar_url: Optional[str] = None
    viewer_count: Optional[int] = None
    started_at: Optional[datetime] = None


class INotificationSink(ABC):
    """Interface for notification delivery"""

    @abstractmethod
    async def send(self, destination: Destination, message: RenderedMessage) -> None:
        """Deliver message; raises DeliveryError on failure"""
        pass

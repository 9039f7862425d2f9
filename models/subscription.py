from dataclasses import dataclass
from typing import Optional


@dataclass
class Subscription:
    """A Discord channel that wants notifications for one account"""
    guild_id: int
    channel_id: int
    account_id: int
    id: Optional[int] = None
    is_active: bool = True
    message_template: Optional[str] = None
    mention: Optional[str] = None
    created_by: Optional[str] = None

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .platform import Platform


@dataclass
class AccountIdentity:
    """Identity of an account as reported by the platform at registration"""
    native_id: str
    handle: str
    display_name: str
    avatar_url: Optional[str] = None
    followers: int = 0


@dataclass
class TrackedAccount:
    """A creator account being watched on one platform.

    Identity fields are owned by the registration layer; presence fields
    (``is_live`` through ``live_since``) are only written by the presence
    monitor. ``live_since`` is set when the account goes live and cleared
    when it goes offline.
    """
    platform: Platform
    native_id: str
    handle: str
    display_name: str
    id: Optional[int] = None
    avatar_url: Optional[str] = None
    followers: int = 0
    is_live: bool = False
    last_title: Optional[str] = None
    last_stream_url: Optional[str] = None
    last_thumbnail: Optional[str] = None
    last_checked_at: Optional[datetime] = None
    live_since: Optional[datetime] = None

    @property
    def key(self) -> str:
        return f"{self.platform.value}:{self.native_id}"

    @property
    def profile_url(self) -> str:
        return self.platform.profile_url(self.handle)

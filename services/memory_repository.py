import asyncio
import dataclasses
import itertools
from typing import Dict, List, Optional, Tuple

from interfaces.database_interface import IDatabase
from models import Platform, PresenceEvent, Subscription, TrackedAccount


class MemoryDatabase(IDatabase):
    """Process-local storage with the same contracts as DatabaseService.

    Records are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._accounts: Dict[Tuple[Platform, str], TrackedAccount] = {}
        self._subscriptions: Dict[int, Subscription] = {}
        self.events: List[PresenceEvent] = []
        self._account_ids = itertools.count(1)
        self._subscription_ids = itertools.count(1)

    async def initialize(self):
        pass

    async def get(self, platform: Platform, native_id: str) -> Optional[TrackedAccount]:
        account = self._accounts.get((platform, native_id))
        return dataclasses.replace(account) if account else None

    async def list_all(self) -> List[TrackedAccount]:
        return [dataclasses.replace(account) for account in self._accounts.values()]

    async def add(self, account: TrackedAccount) -> TrackedAccount:
        async with self._lock:
            key = (account.platform, account.native_id)
            if key not in self._accounts:
                stored = dataclasses.replace(account, id=account.id or next(self._account_ids))
                self._accounts[key] = stored
            return dataclasses.replace(self._accounts[key])

    async def save(self, account: TrackedAccount) -> None:
        async with self._lock:
            key = (account.platform, account.native_id)
            stored = self._accounts.get(key)
            if stored is None:
                return
            self._accounts[key] = dataclasses.replace(
                stored,
                is_live=account.is_live,
                last_title=account.last_title,
                last_stream_url=account.last_stream_url,
                last_thumbnail=account.last_thumbnail,
                last_checked_at=account.last_checked_at,
                live_since=account.live_since
            )

    async def append(self, event: PresenceEvent) -> None:
        self.events.append(event)

    async def list_events(self, account_id: Optional[int] = None, limit: int = 50) -> List[PresenceEvent]:
        events = [e for e in reversed(self.events) if account_id is None or e.account_id == account_id]
        return events[:limit]

    async def add_subscription(self, subscription: Subscription) -> Subscription:
        async with self._lock:
            for existing in self._subscriptions.values():
                if (existing.guild_id, existing.channel_id, existing.account_id) == \
                        (subscription.guild_id, subscription.channel_id, subscription.account_id):
                    subscription.id = existing.id
                    break
            else:
                subscription.id = next(self._subscription_ids)
            self._subscriptions[subscription.id] = dataclasses.replace(subscription)
            return subscription

    async def list_active_for_account(self, account_id: int) -> List[Subscription]:
        return [
            dataclasses.replace(s) for s in self._subscriptions.values()
            if s.account_id == account_id and s.is_active
        ]

    async def set_subscription_active(self, subscription_id: int, is_active: bool) -> bool:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            return False
        subscription.is_active = is_active
        return True

from abc import ABC, abstractmethod
from typing import List, Optional

from models import Platform, PresenceEvent, Subscription, TrackedAccount


class IAccountRepository(ABC):
    """Interface for tracked account storage"""

    @abstractmethod
    async def get(self, platform: Platform, native_id: str) -> Optional[TrackedAccount]:
        """Get account by platform identity"""
        pass

    @abstractmethod
    async def list_all(self) -> List[TrackedAccount]:
        """Get all tracked accounts"""
        pass

    @abstractmethod
    async def add(self, account: TrackedAccount) -> TrackedAccount:
        """Register a new account and return it with its id assigned"""
        pass

    @abstractmethod
    async def save(self, account: TrackedAccount) -> None:
        """Persist presence fields (is_live, last check, stream metadata)"""
        pass


class IEventStore(ABC):
    """Interface for the append-only presence event log"""

    @abstractmethod
    async def append(self, event: PresenceEvent) -> None:
        """Append event to the log"""
        pass


class ISubscriptionRepository(ABC):
    """Interface for notification subscriptions (read-only for the monitor)"""

    @abstractmethod
    async def list_active_for_account(self, account_id: int) -> List[Subscription]:
        """Get active subscriptions for account"""
        pass

from abc import ABC, abstractmethod

from .repository_interface import IAccountRepository, IEventStore, ISubscriptionRepository


class IDatabase(IAccountRepository, IEventStore, ISubscriptionRepository, ABC):
    """Interface for storage backends implementing every repository contract"""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize database connection and tables"""
        pass

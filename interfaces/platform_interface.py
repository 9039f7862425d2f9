from abc import ABC, abstractmethod

from models import AccountIdentity, StatusSnapshot


class IStreamPlatform(ABC):
    """Interface for scrape-only platform strategies"""

    @abstractmethod
    async def fetch_status(self, handle: str) -> StatusSnapshot:
        """Get current status; raises PlatformError on failure"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network sessions"""
        pass


class IOfficialApiClient(ABC):
    """Interface for platforms with an official API"""

    @abstractmethod
    async def get_identity(self, handle: str) -> AccountIdentity:
        """Resolve account identity; raises AccountNotFoundError if missing"""
        pass

    @abstractmethod
    async def get_live_status(self, native_id: str, handle: str) -> StatusSnapshot:
        """Get current live status and stream metadata"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network sessions"""
        pass

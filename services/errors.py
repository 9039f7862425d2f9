from typing import Optional


class PlatformError(Exception):
    """Base error for failures talking to a streaming platform"""

    def __init__(self, message: str, platform: Optional[str] = None):
        super().__init__(message)
        self.platform = platform


class TransientPlatformError(PlatformError):
    """Network problems, timeouts, rate limits and 5xx responses. Safe to retry."""

    def __init__(self, message: str, platform: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, platform)
        self.status = status


class AccountNotFoundError(PlatformError):
    """The platform reports that the account does not exist. Never retried."""

    def __init__(self, handle: str, platform: Optional[str] = None):
        super().__init__(f"User not found: {handle}", platform)
        self.handle = handle


class DeliveryError(Exception):
    """A notification could not be delivered to its destination"""


class ConfigurationError(ValueError):
    """Invalid configuration value"""

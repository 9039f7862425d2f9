"""Pytest fixtures for presence radar tests."""

import asyncio
from typing import List, Optional, Tuple

import pytest

from interfaces.platform_interface import IStreamPlatform
from interfaces.service_interface import Destination, INotificationSink, RenderedMessage
from models import Platform, StatusSnapshot, TrackedAccount
from services.config_manager import MonitorSettings
from services.errors import DeliveryError
from services.memory_repository import MemoryDatabase


class RecordingSink(INotificationSink):
    """Notification sink that records deliveries and can fail on chosen channels."""

    def __init__(self, failing_channels=()):
        self.sent: List[Tuple[Destination, RenderedMessage]] = []
        self.failing_channels = set(failing_channels)

    async def send(self, destination: Destination, message: RenderedMessage) -> None:
        if destination.channel_id in self.failing_channels:
            raise DeliveryError(f"channel {destination.channel_id} unavailable")
        self.sent.append((destination, message))


class ScriptedStrategy(IStreamPlatform):
    """Scrape strategy returning queued results (snapshots or exceptions)."""

    def __init__(self, platform: Platform, results=None, delay: float = 0.0):
        self.platform = platform
        self.results = list(results or [])
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def fetch_status(self, handle: str) -> StatusSnapshot:
        self.calls.append(handle)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.results.pop(0) if self.results else False
            if isinstance(result, BaseException):
                raise result
            if isinstance(result, StatusSnapshot):
                return result
            return StatusSnapshot(platform=self.platform, native_id=handle, is_live=bool(result))
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True


def make_account(platform: Platform = Platform.KICK, native_id: str = "streamer",
                 account_id: Optional[int] = None, **kwargs) -> TrackedAccount:
    return TrackedAccount(
        platform=platform,
        native_id=native_id,
        handle=kwargs.pop('handle', native_id),
        display_name=kwargs.pop('display_name', native_id.capitalize()),
        id=account_id,
        **kwargs
    )


def make_snapshot(platform: Platform = Platform.KICK, native_id: str = "streamer",
                  is_live: bool = True, **kwargs) -> StatusSnapshot:
    return StatusSnapshot(platform=platform, native_id=native_id, is_live=is_live, **kwargs)


@pytest.fixture
def memory_db() -> MemoryDatabase:
    return MemoryDatabase()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fast_settings() -> MonitorSettings:
    """Settings with every delay removed."""
    return MonitorSettings(
        check_interval_minutes=0.001,
        warmup_delay=0,
        retry_delay=0,
        batch_pause=0,
        max_retries=3,
        timeout_ms=1000,
    )

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .platform import Platform


@dataclass(frozen=True)
class StatusSnapshot:
    """One point-in-time status read for an account.

    Only ``is_live`` is guaranteed; every other field is best-effort and
    may be missing without the snapshot being considered a failure.
    """
    platform: Platform
    native_id: str
    is_live: bool
    title: Optional[str] = None
    stream_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    viewer_count: Optional[int] = None
    started_at: Optional[datetime] = None
    category: Optional[str] = None
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ProbeOutcome(Enum):
    LIVE = "live"
    OFFLINE = "offline"
    INCONCLUSIVE = "inconclusive"


@dataclass
class ProbeResult:
    """Result of a single scraping technique"""
    outcome: ProbeOutcome
    title: Optional[str] = None
    viewer_count: Optional[int] = None
    thumbnail_url: Optional[str] = None
    category: Optional[str] = None
    reason: Optional[str] = None

    @property
    def is_conclusive(self) -> bool:
        return self.outcome is not ProbeOutcome.INCONCLUSIVE

    @classmethod
    def inconclusive(cls, reason: str) -> "ProbeResult":
        return cls(outcome=ProbeOutcome.INCONCLUSIVE, reason=reason)

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class EventKind(Enum):
    WENT_LIVE = "live"
    WENT_OFFLINE = "offline"
    TITLE_CHANGED = "title_change"


@dataclass(frozen=True)
class PresenceEvent:
    """Append-only record of a detected transition"""
    account_id: int
    kind: EventKind
    title: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    viewer_count: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)

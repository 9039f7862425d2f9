from .platform import Platform
from .account import AccountIdentity, TrackedAccount
from .event import EventKind, PresenceEvent
from .subscription import Subscription
from .snapshot import ProbeOutcome, ProbeResult, StatusSnapshot

__all__ = [
    'Platform',
    'AccountIdentity',
    'TrackedAccount',
    'EventKind',
    'PresenceEvent',
    'Subscription',
    'ProbeOutcome',
    'ProbeResult',
    'StatusSnapshot',
]

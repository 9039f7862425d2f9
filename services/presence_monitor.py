import asyncio
import dataclasses
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from interfaces.repository_interface import IAccountRepository, IEventStore
from models import EventKind, PresenceEvent, StatusSnapshot, TrackedAccount
from services.config_manager import MonitorSettings
from services.logging_service import LoggingService
from services.notification_dispatcher import NotificationDispatcher
from services.stream_service import PlatformStatusProvider
from utils.batching import run_in_batches

logger = logging.getLogger(__name__)


class ServiceStatus(Enum):
    RUNNING = "Running"
    STOPPED = "Stopped"
    ERROR = "Error"


class AccountCheckStatus:
    def __init__(self):
        self.last_check = None
        self.last_successful_check = None
        self.last_error = None
        self.consecutive_failures = 0
        self.is_live = False
        self.success_count = 0
        self.unknown_count = 0
        self.error_count = 0


def apply_snapshot(account: TrackedAccount, snapshot: StatusSnapshot) -> Tuple[TrackedAccount, List[PresenceEvent]]:
    """Diff a fresh snapshot against the last known state.

    Returns the updated copy of the account and the transition events it
    implies. The passed account is not modified.
    """
    now = snapshot.captured_at
    was_live = account.is_live
    updated = dataclasses.replace(account, last_checked_at=now)
    events: List[PresenceEvent] = []

    def event(kind: EventKind, title: Optional[str], url: Optional[str], thumbnail: Optional[str]) -> PresenceEvent:
        return PresenceEvent(
            account_id=account.id,
            kind=kind,
            title=title,
            url=url,
            thumbnail_url=thumbnail,
            viewer_count=snapshot.viewer_count,
            timestamp=now,
            metadata={'started_at': snapshot.started_at.isoformat()} if snapshot.started_at else {}
        )

    if snapshot.is_live:
        updated.is_live = True
        updated.last_stream_url = snapshot.stream_url or account.last_stream_url
        updated.last_thumbnail = snapshot.thumbnail_url or account.last_thumbnail
        if not was_live:
            updated.live_since = snapshot.started_at or now
            updated.last_title = snapshot.title
            events.append(event(EventKind.WENT_LIVE, snapshot.title, updated.last_stream_url, snapshot.thumbnail_url))
        elif snapshot.title is not None and snapshot.title != account.last_title:
            updated.last_title = snapshot.title
            events.append(event(EventKind.TITLE_CHANGED, snapshot.title, updated.last_stream_url,
                                snapshot.thumbnail_url))
    elif was_live:
        updated.is_live = False
        updated.live_since = None
        events.append(event(EventKind.WENT_OFFLINE, account.last_title, account.last_stream_url,
                            account.last_thumbnail))

    return updated, events


class PresenceMonitor:
    """Polls every tracked account on a fixed cadence and reacts to transitions.

    A ``None`` snapshot means the platform could not be read this cycle;
    the account is then left exactly as it was. Checks for the same account
    never overlap, and a failure for one account never stops the others.
    """

    def __init__(self, provider: PlatformStatusProvider, account_repository: IAccountRepository,
                 event_store: IEventStore, dispatcher: NotificationDispatcher,
                 settings: Optional[MonitorSettings] = None,
                 logging_service: Optional[LoggingService] = None):
        self.provider = provider
        self.account_repository = account_repository
        self.event_store = event_store
        self.dispatcher = dispatcher
        self.settings = settings or MonitorSettings()
        self.logging_service = logging_service or LoggingService()
        self.check_tasks: Dict[str, AccountCheckStatus] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self.main_task: Optional[asyncio.Task] = None
        self.service_status = ServiceStatus.STOPPED
        self.last_error = None
        self.start_time = None
        self.cycle_count = 0
        self.last_cycle_at = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """Start the periodic check loop (warm-up check first)"""
        if self._running:
            logger.warning("Stream monitor is already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self.service_status = ServiceStatus.RUNNING
        self.start_time = datetime.now(timezone.utc)
        self.main_task = asyncio.create_task(self._check_streams_loop())
        await self.logging_service.log_info(
            f"Stream monitor started with {self.settings.check_interval_minutes:g} minute intervals"
        )

    async def stop(self):
        """Stop scheduling new cycles and wait for the running one to finish"""
        if not self._running:
            return

        self._running = False
        self._stop_event.set()
        if self.main_task and not self.main_task.done():
            try:
                await self.main_task
            except asyncio.CancelledError:
                pass
        self.main_task = None
        self.service_status = ServiceStatus.STOPPED
        await self.logging_service.log_info("Stream monitor stopped")

    async def _check_streams_loop(self):
        """Main loop: warm-up check, then one cycle per interval"""
        loop = asyncio.get_running_loop()
        if await self._wait_for_stop(self.settings.warmup_delay):
            return

        while self._running:
            cycle_started = loop.time()
            await self.check_all_streams()
            next_run = cycle_started + self.settings.check_interval_seconds
            if await self._wait_for_stop(max(next_run - loop.time(), 0)):
                return

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True if stop was requested meanwhile"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def check_all_streams(self) -> Dict[str, Any]:
        """Run one poll cycle over every tracked account"""
        summary = {'checked': 0, 'events': 0, 'failed': 0}
        try:
            accounts = await self.account_repository.list_all()
        except Exception as e:
            self.service_status = ServiceStatus.ERROR
            self.last_error = e
            await self.logging_service.log_error(e, "Error checking all streams")
            return summary

        logger.debug(f"Checking {len(accounts)} streamers for status updates")
        results = await run_in_batches(accounts, self.check_account,
                                       self.settings.batch_size, self.settings.batch_pause,
                                       stop_requested=self._stop_requested)
        if len(results) < len(accounts):
            logger.info(f"Stop requested, skipping {len(accounts) - len(results)} remaining streamers")

        for account, result in zip(accounts, results):
            summary['checked'] += 1
            if isinstance(result, BaseException):
                summary['failed'] += 1
                self._status_for(account).error_count += 1
                self._status_for(account).last_error = str(result)
                await self.logging_service.log_error(
                    result, f"Error checking status for {account.display_name} ({account.platform.value})"
                )
            else:
                summary['events'] += len(result)

        self.cycle_count += 1
        self.last_cycle_at = datetime.now(timezone.utc)
        if self._running:
            self.service_status = ServiceStatus.RUNNING
        return summary

    async def check_account(self, account: TrackedAccount) -> List[PresenceEvent]:
        """Check one account and persist/notify any transition"""
        lock = self._locks.setdefault(account.key, asyncio.Lock())
        async with lock:
            status = self._status_for(account)
            status.last_check = datetime.now(timezone.utc)

            snapshot = await self.provider.get_status(account.platform, account.native_id, account.handle)
            if snapshot is None:
                status.unknown_count += 1
                status.consecutive_failures += 1
                logger.debug(f"Could not fetch status for {account.display_name} ({account.platform.value})")
                return []

            current = await self.account_repository.get(account.platform, account.native_id) or account
            updated, events = apply_snapshot(current, snapshot)
            await self.account_repository.save(updated)
            try:
                for event in events:
                    await self.event_store.append(event)
            except Exception:
                # stored state never runs ahead of the event log
                await self.account_repository.save(current)
                raise

            status.last_successful_check = status.last_check
            status.success_count += 1
            status.consecutive_failures = 0
            status.is_live = updated.is_live

            for event in events:
                await self._announce(updated, event, snapshot)

            return events

    async def _announce(self, account: TrackedAccount, event: PresenceEvent, snapshot: StatusSnapshot):
        name = f"{account.display_name} ({account.platform.value})"
        if event.kind is EventKind.WENT_LIVE:
            await self.logging_service.log_info(f"{name} went live: {snapshot.title or 'No title'}")
            await self.dispatcher.dispatch(account, snapshot)
        elif event.kind is EventKind.WENT_OFFLINE:
            await self.logging_service.log_info(f"{name} went offline")
        elif event.kind is EventKind.TITLE_CHANGED:
            logger.info(f"{name} changed title: {snapshot.title}")

    def _status_for(self, account: TrackedAccount) -> AccountCheckStatus:
        return self.check_tasks.setdefault(account.key, AccountCheckStatus())

    def get_service_status(self) -> Dict[str, Any]:
        """Get detailed service status information"""
        return {
            "service": {
                "status": self.service_status.value,
                "uptime": str(datetime.now(timezone.utc) - self.start_time) if self.start_time else "Not started",
                "cycles": self.cycle_count,
                "last_cycle": self.last_cycle_at.isoformat() if self.last_cycle_at else None,
                "last_error": str(self.last_error) if self.last_error else None
            },
            "streams": {
                key: {
                    "last_check": status.last_check.isoformat() if status.last_check else None,
                    "last_successful_check": (status.last_successful_check.isoformat()
                                              if status.last_successful_check else None),
                    "is_live": status.is_live,
                    "success_count": status.success_count,
                    "unknown_count": status.unknown_count,
                    "error_count": status.error_count,
                    "consecutive_failures": status.consecutive_failures,
                    "last_error": status.last_error
                } for key, status in self.check_tasks.items()
            }
        }

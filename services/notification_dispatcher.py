import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional

from interfaces.repository_interface import ISubscriptionRepository
from interfaces.service_interface import Destination, INotificationSink, RenderedMessage
from models import StatusSnapshot, Subscription, TrackedAccount
from services.config_manager import DEFAULT_MESSAGE_TEMPLATE
from services.logging_service import LoggingService

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r'\{(streamer|platform|title|url)\}')


@dataclass
class DispatchReport:
    account_key: str
    sent: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.sent + self.failed


def format_mention(mention: str) -> str:
    """Bare numeric ids are role ids; anything else is used verbatim"""
    mention = mention.strip()
    if mention.isdigit():
        return f"<@&{mention}>"
    return mention


def render_message(template: Optional[str], account: TrackedAccount, snapshot: StatusSnapshot,
                   mention: Optional[str] = None, default_template: str = DEFAULT_MESSAGE_TEMPLATE) -> str:
    """Fill {streamer}, {platform}, {title} and {url} in a notification template.

    Substitution is a single pass, so placeholder-like text inside the
    substituted values is left alone.
    """
    values = {
        'streamer': account.display_name,
        'platform': account.platform.display_name,
        'title': snapshot.title or 'No title',
        'url': snapshot.stream_url or account.profile_url,
    }
    content = _PLACEHOLDER_RE.sub(lambda match: values[match.group(1)], template or default_template)
    if mention and mention.strip():
        content = f"{format_mention(mention)}\n{content}"
    return content


class NotificationDispatcher:
    """Sends went-live notifications to every active subscriber of an account"""

    def __init__(self, subscription_repository: ISubscriptionRepository, sink: INotificationSink,
                 logging_service: Optional[LoggingService] = None,
                 default_template: str = DEFAULT_MESSAGE_TEMPLATE):
        self.subscription_repository = subscription_repository
        self.sink = sink
        self.logging_service = logging_service or LoggingService()
        self.default_template = default_template

    async def dispatch(self, account: TrackedAccount, snapshot: StatusSnapshot) -> DispatchReport:
        report = DispatchReport(account_key=account.key)
        try:
            subscriptions = await self.subscription_repository.list_active_for_account(account.id)
        except Exception as e:
            await self.logging_service.log_error(e, f"Error loading subscriptions for {account.display_name}")
            return report

        subscriptions = [s for s in subscriptions if s.is_active]
        if not subscriptions:
            logger.debug(f"No active subscriptions for {account.display_name} ({account.platform.value})")
            return report

        results = await asyncio.gather(
            *(self._deliver(subscription, account, snapshot) for subscription in subscriptions),
            return_exceptions=True
        )

        for subscription, result in zip(subscriptions, results):
            if isinstance(result, BaseException):
                report.failed += 1
                await self.logging_service.log_error(
                    result,
                    f"Error sending notification for {account.display_name} to channel {subscription.channel_id}"
                )
            else:
                report.sent += 1

        logger.info(f"Live notifications for {account.display_name}: {report.sent} sent, {report.failed} failed")
        return report

    def build_message(self, subscription: Subscription, account: TrackedAccount,
                      snapshot: StatusSnapshot) -> RenderedMessage:
        return RenderedMessage(
            content=render_message(subscription.message_template, account, snapshot,
                                   subscription.mention, self.default_template),
            streamer=account.display_name,
            platform=account.platform.display_name,
            title=snapshot.title,
            url=snapshot.stream_url or account.profile_url,
            thumbnail_url=snapshot.thumbnail_url,
            avatar_url=account.avatar_url,
            viewer_count=snapshot.viewer_count,
            started_at=snapshot.started_at or account.live_since
        )

    async def _deliver(self, subscription: Subscription, account: TrackedAccount, snapshot: StatusSnapshot) -> None:
        message = self.build_message(subscription, account, snapshot)
        await self.sink.send(Destination(subscription.guild_id, subscription.channel_id), message)
        logger.debug(f"Sent live notification for {account.display_name} to channel {subscription.channel_id}")

"""
Notification handling for the Ticket Release Notifier.
"""
import logging
from datetime import datetime
from typing import Optional

import httpx

from .errors import NotifyError
from .models import EventState, Notification, NotificationConfig, Stage

logger = logging.getLogger(__name__)

TEMPLATES = {
    Stage.NEXT_DATE: (
        "{mention}📅 Next meet: **{meet}**. "
        "Tickets go on sale {release_full} ({release_relative}).{link}"
    ),
    Stage.ON_SALE: "{mention}🎟️ Tickets for **{meet}** are on sale now!{link}",
    Stage.SOLD_OUT: "{mention}❌ Tickets for **{meet}** are sold out.{link}",
}


def format_mention(mention_id: Optional[str]) -> str:
    """Turn the configured mention into message markup.

    Numeric ids are role mentions; anything else (e.g. ``@everyone``) is used as-is.
    """
    if not mention_id:
        return ""
    mention_id = mention_id.strip()
    if mention_id.isdigit():
        return f"<@&{mention_id}> "
    return f"{mention_id} "


def _format_meet(meet_date: Optional[datetime]) -> str:
    if meet_date is None:
        return "the next meet"
    return f"{meet_date:%A} {meet_date.day} {meet_date:%B %Y}"


def _format_timestamp(value: Optional[datetime], style: str) -> str:
    if value is None:
        return "soon"
    return f"<t:{int(value.timestamp())}:{style}>"


def format_message(
    stage: Stage,
    state: EventState,
    mention_id: Optional[str] = None,
    event_url: Optional[str] = None,
) -> str:
    """Render the message template for a lifecycle stage."""
    return TEMPLATES[stage].format(
        mention=format_mention(mention_id),
        meet=_format_meet(state.meet_date),
        release_full=_format_timestamp(state.release_date, "F"),
        release_relative=_format_timestamp(state.release_date, "R"),
        link=f"\n{event_url}" if event_url else "",
    )


class NotificationService:
    """Base class for notification services."""

    def __init__(self, config: NotificationConfig):
        self.config = config

    async def send(self, notification: Notification) -> None:
        """Send a notification.

        Raises:
            NotifyError: If the channel does not acknowledge the message.
        """
        await self._send_impl(notification)
        logger.info(f"📨 Sent {notification.stage.value} notification")

    async def _send_impl(self, notification: Notification) -> None:
        """Implementation of the notification sending logic."""
        raise NotImplementedError("Subclasses must implement this method")


class DiscordWebhookService(NotificationService):
    """Notification service for Discord-compatible webhooks."""

    def __init__(self, config: NotificationConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        if not config.notify_target:
            raise NotifyError("No webhook URL configured")
        self.webhook_url = config.notify_target
        self.transport = transport

    async def _send_impl(self, notification: Notification) -> None:
        """Post the message to the webhook."""
        payload = {"content": notification.content}
        if self.config.username:
            payload["username"] = self.config.username

        try:
            async with httpx.AsyncClient(
                timeout=float(self.config.timeout), transport=self.transport
            ) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise NotifyError(f"Webhook request failed: {e}") from e

        if not response.is_success:
            raise NotifyError(
                f"Webhook rejected {notification.stage.value} notification "
                f"(HTTP {response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )


class Notifier:
    """Renders lifecycle messages and hands them to the configured service."""

    def __init__(
        self,
        config: NotificationConfig,
        service: Optional[NotificationService] = None,
        event_url: Optional[str] = None,
    ):
        self.config = config
        self.event_url = event_url
        self.service = service or DiscordWebhookService(config)

    async def send(self, stage: Stage, state: EventState) -> None:
        """Send the message for ``stage`` describing ``state``."""
        notification = Notification(
            stage=stage,
            content=format_message(stage, state, self.config.mention_id, self.event_url),
        )
        logger.debug(f"Notification content: {notification.content}")
        await self.service.send(notification)


def create_notifier(config: NotificationConfig, event_url: Optional[str] = None) -> Notifier:
    """Create a notifier with the given config."""
    return Notifier(config, event_url=event_url)

"""Outbound messaging through the bridge (single sends and bulk delivery)."""

from __future__ import annotations

import logging
from typing import Any

from ..api.bridge import BridgeClient, BridgeUnavailable
from ..schemas.entities import Actor
from ..sync.reconciler import Notifier
from .dispatch_svc import Channel, DeliverFn, dispatch_address
from .mutation_svc import DataService

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_SUBJECT = "Message from Nexus CRM"


class MessagingService:
    """Binds the bridge to the data pipeline."""

    def __init__(self, bridge: BridgeClient, data: DataService, notifier: Notifier):
        self.bridge = bridge
        self.data = data
        self.notifier = notifier

    def deliver_fn(self, channel: Channel, subject: str | None = None) -> DeliverFn:
        """A deliver(address, content) callable for the channel."""
        if channel == "email":
            async def deliver_email(address: str, content: str) -> Any:
                return await self.bridge.send_email(address, subject or DEFAULT_EMAIL_SUBJECT, content)

            return deliver_email

        async def deliver_whatsapp(address: str, content: str) -> Any:
            return await self.bridge.send_whatsapp(address, content)

        return deliver_whatsapp

    async def send_single(
        self,
        actor: Actor | None,
        target: dict[str, Any],
        channel: Channel,
        content: str,
        subject: str | None = None,
    ) -> bool:
        """Send one message; records the contact and inbox history on success."""
        address = dispatch_address(target, channel)
        if address is None:
            raise ValueError(f"Target has no valid {channel} address")

        try:
            await self.deliver_fn(channel, subject)(address, content)
        except BridgeUnavailable as e:
            logger.warning("Single %s send to %s failed: %s", channel, address, e)
            self.notifier.notify("Send failed", f"Messaging bridge is offline ({e}).", "warning")
            return False

        name = target.get("name") or target.get("contactPerson") or address
        self.data.record_outbound_contact(target, channel, content, actor)
        self.data.add_inbox_interaction(
            name,
            channel,
            content,
            contact_identifier=address,
            tenant=actor.organization_id if actor else None,
        )
        self.notifier.notify("Message sent", f"{channel} sent to {name}.", "success")
        return True

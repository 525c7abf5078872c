"""Outbound webhook delivery."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..schemas.entities import WebhookSubscription

logger = logging.getLogger(__name__)


async def deliver_webhook(
    subscription: WebhookSubscription,
    payload: dict[str, Any],
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Call one subscriber with the entity as JSON body.

    Never raises: a failure produces a single log line and returns False.
    The response body is not read.
    """
    headers = {"Content-Type": "application/json", **(subscription.headers or {})}
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            if subscription.method == "GET":
                resp = await client.get(subscription.url, headers=headers)
            else:
                resp = await client.post(subscription.url, json=payload, headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("Webhook %s delivery to %s failed: %s", subscription.name, subscription.url, e)
        return False

    if resp.status_code >= 400:
        logger.error(
            "Webhook %s delivery to %s failed: HTTP %s",
            subscription.name,
            subscription.url,
            resp.status_code,
        )
        return False

    logger.debug("Webhook %s delivered (HTTP %s)", subscription.name, resp.status_code)
    return True

"""Tests for single sends and bridge-backed delivery."""

from unittest.mock import AsyncMock

import pytest

from nexus_crm.api.bridge import BridgeUnavailable


@pytest.fixture
def bridge(app_context):
    app_context.bridge.send_whatsapp = AsyncMock(return_value={"success": True})
    app_context.bridge.send_email = AsyncMock(return_value={"success": True})
    return app_context.bridge


class TestSendSingle:
    """Tests for MessagingService.send_single."""

    @pytest.mark.asyncio
    async def test_whatsapp_send_records_history(self, app_context, bridge, actor):
        app_context.data.add(actor, "leads", {"id": "L-1", "name": "Bob", "phone": "5511999990001"})
        target = app_context.store.find("leads", "L-1")

        ok = await app_context.messaging.send_single(actor, target, "whatsapp", "Hello Bob")

        assert ok is True
        bridge.send_whatsapp.assert_awaited_once_with("5511999990001", "Hello Bob")
        assert app_context.store.get("activities")[0]["completed"] is True
        assert app_context.store.find("leads", "L-1")["lastContact"]
        assert app_context.store.get("inbox_conversations")[0]["contactName"] == "Bob"
        assert app_context.notifications.notifications[0].severity == "success"

    @pytest.mark.asyncio
    async def test_email_send_uses_subject(self, app_context, bridge, actor):
        target = {"id": "C-1", "name": "Acme", "email": "ops@acme.com"}
        await app_context.messaging.send_single(actor, target, "email", "<p>Hi</p>", subject="Renewal")
        bridge.send_email.assert_awaited_once_with("ops@acme.com", "Renewal", "<p>Hi</p>")

    @pytest.mark.asyncio
    async def test_invalid_address(self, app_context, bridge, actor):
        with pytest.raises(ValueError):
            await app_context.messaging.send_single(actor, {"name": "Nobody"}, "whatsapp", "Hi")

    @pytest.mark.asyncio
    async def test_bridge_offline(self, app_context, bridge, actor):
        bridge.send_whatsapp.side_effect = BridgeUnavailable()
        ok = await app_context.messaging.send_single(actor, {"name": "Bob", "phone": "5511999990001"}, "whatsapp", "Hi")

        assert ok is False
        assert app_context.store.get("activities") == []
        assert app_context.notifications.notifications[0].severity == "warning"


class TestBulkThroughBridge:
    @pytest.mark.asyncio
    async def test_broadcast_records_contacts(self, app_context, bridge, actor):
        targets = [
            {"id": "C-1", "name": "Acme", "phone": "5511999990001"},
            {"id": "C-2", "name": "Globex", "phone": "5511999990002"},
        ]
        app_context.data.add_many(actor, "clients", targets)

        job = app_context.dispatcher.start(
            app_context.store.get("clients"),
            "Hi {name}",
            app_context.messaging.deliver_fn("whatsapp"),
            actor=actor,
        )
        progress = await job.wait()

        assert progress.sent == 2
        assert bridge.send_whatsapp.await_count == 2
        assert len(app_context.store.get("activities")) == 2
        assert all(c.get("lastContact") for c in app_context.store.get("clients"))

"""Tests for templated notification email (F3)."""

import json

import httpx
import pytest

from accreda.backend.functions import FunctionsClient, FunctionsConfig
from accreda.config.app_config import EmailConfig
from accreda.core.email import EmailNotifier
from accreda.core.notifications import NotificationSender
from accreda.db import accounts_repository, notifications_repository


class RecordingHandler:
    """MockTransport handler keeping the JSON bodies it receives."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.bodies: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={})


def _notifier(handler, enabled: bool = True) -> EmailNotifier:
    functions = FunctionsClient(
        FunctionsConfig(functions_url="http://functions.test/functions/v1"),
        transport=httpx.MockTransport(handler),
    )
    return EmailNotifier(functions, EmailConfig(enabled=enabled, app_url="https://app.test"))


class TestEmailNotifier:
    """Tests for EmailNotifier.send."""

    @pytest.mark.asyncio
    async def test_renders_and_sends(self, make_supervisor):
        supervisor = make_supervisor(full_name="Sam Lee", email="sam@sup.test")
        handler = RecordingHandler()

        sent = await _notifier(handler).send(
            supervisor, "request", "connection_request", eit_name="Alex <Doe>"
        )

        assert sent is True
        body = handler.bodies[0]
        assert body["to"] == "sam@sup.test"
        assert body["subject"] == "New EIT connection request"
        assert "Hi Sam Lee" in body["html"]
        assert "Alex &lt;Doe&gt;" in body["html"]
        assert "https://app.test/dashboard" in body["html"]

    @pytest.mark.asyncio
    async def test_preference_suppresses(self, make_supervisor):
        supervisor = make_supervisor()
        accounts_repository.save_preferences(supervisor, {"connection_requests": False})
        handler = RecordingHandler()

        sent = await _notifier(handler).send(
            supervisor, "request", "connection_request", eit_name="Alex"
        )

        assert sent is False
        assert handler.bodies == []

    @pytest.mark.asyncio
    async def test_nudge_ignores_preferences(self, make_eit):
        eit = make_eit()
        accounts_repository.save_preferences(
            eit, {name: False for name in accounts_repository.PREFERENCE_FIELDS}
        )
        handler = RecordingHandler()

        assert await _notifier(handler).send(eit, "nudge", "nudge", sender_name="Sam") is True

    @pytest.mark.asyncio
    async def test_disabled_sends_nothing(self, make_eit):
        handler = RecordingHandler()
        assert await _notifier(handler, enabled=False).send(make_eit(), "nudge", "nudge") is False
        assert handler.bodies == []

    @pytest.mark.asyncio
    async def test_unknown_recipient(self, db):
        handler = RecordingHandler()
        assert await _notifier(handler).send("nobody", "nudge", "nudge") is False

    @pytest.mark.asyncio
    async def test_function_failure_is_not_raised(self, make_eit):
        handler = RecordingHandler(status_code=503)
        assert await _notifier(handler).send(make_eit(), "nudge", "nudge", sender_name="S") is False

    @pytest.mark.asyncio
    async def test_missing_template_is_not_raised(self, make_eit):
        handler = RecordingHandler()
        assert await _notifier(handler).send(make_eit(), "nudge", "no_such_template") is False


class TestSenderWithEmail:
    @pytest.mark.asyncio
    async def test_failed_email_still_stores_notification(self, make_eit, feed):
        eit = make_eit()
        sender = NotificationSender(feed, _notifier(RecordingHandler(status_code=500)))

        record = await sender.skill_approval(eit, "Quality Assurance")

        assert record.type == "approval"
        assert record.message == "Your Quality Assurance has been approved by your supervisor."

    @pytest.mark.asyncio
    async def test_non_json_reply_still_stores_notification(self, make_supervisor, feed):
        supervisor = make_supervisor()
        sender = NotificationSender(
            feed, _notifier(lambda request: httpx.Response(200, text="OK"))
        )

        record = await sender.supervisor_request(supervisor, "Alex Doe")

        assert record.type == "request"
        stored = notifications_repository.list_notifications(supervisor)
        assert [n.id for n in stored] == [record.id]

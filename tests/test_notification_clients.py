"""Tests for the outbound Slack / Chatwork / SMS clients and event fan-out."""

import httpx
import pytest
from conftest import WORKSPACE_ID

from rendezvous.models_notifications import WorkspaceNotificationSettings
from rendezvous.security_utils import encrypt_secret
from rendezvous.services import notification_service
from rendezvous.services.chatwork_client import build_chatwork_body, send_chatwork_message
from rendezvous.services.http_retry import SendResult, post_with_retry
from rendezvous.services.notification_service import (
    NotificationEvent,
    NotificationService,
    NotificationTargets,
    dispatch_event,
)
from rendezvous.services.slack_client import build_slack_payload, send_slack_webhook
from rendezvous.services.sms_client import send_sms

WEBHOOK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"


def sequence_transport(*responses):
    """MockTransport answering with the given status codes (or exceptions) in order"""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        item = responses[min(len(calls), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        status, body = item if isinstance(item, tuple) else (item, None)
        return httpx.Response(status, json=body) if body is not None else httpx.Response(status, text="ok")

    return httpx.MockTransport(handler), calls


# ─────────────────────────────────────────────────────────────────────────────
# Retry helper
# ─────────────────────────────────────────────────────────────────────────────


class TestPostWithRetry:
    async def test_success_first_try(self):
        transport, calls = sequence_transport(200)

        result, response = await post_with_retry("https://example.com/hook", "Test", transport=transport)

        assert result.success is True
        assert result.retry_count == 0
        assert response.status_code == 200
        assert len(calls) == 1

    async def test_retries_server_errors(self):
        transport, calls = sequence_transport(503, 429, 200)

        result, _ = await post_with_retry("https://example.com/hook", "Test", initial_delay=0, transport=transport)

        assert result.success is True
        assert result.retry_count == 2
        assert len(calls) == 3

    async def test_client_error_is_not_retried(self):
        transport, calls = sequence_transport(400)

        result, _ = await post_with_retry("https://example.com/hook", "Test", initial_delay=0, transport=transport)

        assert result.success is False
        assert result.status_code == 400
        assert len(calls) == 1

    async def test_gives_up_after_max_retries(self):
        transport, calls = sequence_transport(500)

        result, response = await post_with_retry(
            "https://example.com/hook", "Test", max_retries=3, initial_delay=0, transport=transport
        )

        assert result.success is False
        assert result.status_code == 500
        assert result.retry_count == 2
        assert "Test API error (500)" in result.error
        assert response.status_code == 500
        assert len(calls) == 3

    async def test_network_errors_are_returned_not_raised(self):
        transport, calls = sequence_transport(httpx.ConnectError("connection refused"))

        result, response = await post_with_retry(
            "https://example.com/hook", "Test", initial_delay=0, transport=transport
        )

        assert result.success is False
        assert "connection refused" in result.error
        assert response is None
        assert len(calls) == 3

    async def test_recovers_after_network_error(self):
        transport, calls = sequence_transport(httpx.ConnectError("connection reset"), 200)

        result, response = await post_with_retry(
            "https://example.com/hook", "Test", initial_delay=0, transport=transport
        )

        assert result.success is True
        assert result.retry_count == 1
        assert response.status_code == 200
        assert len(calls) == 2

    async def test_single_attempt_when_retries_disabled(self):
        transport, calls = sequence_transport(503, 200)

        result, _ = await post_with_retry(
            "https://example.com/hook", "Test", max_retries=1, initial_delay=0, transport=transport
        )

        assert result.success is False
        assert result.status_code == 503
        assert result.retry_count == 0
        assert len(calls) == 1


# ─────────────────────────────────────────────────────────────────────────────
# Clients
# ─────────────────────────────────────────────────────────────────────────────


class TestSlack:
    async def test_posts_json_payload(self):
        transport, calls = sequence_transport(200)
        payload = build_slack_payload("New booking", ["1/21(Tue) 13:00-14:00"], "https://app.example.com/x")

        result = await send_slack_webhook(WEBHOOK_URL, payload, transport=transport)

        assert result.success is True
        assert calls[0].url == WEBHOOK_URL
        assert b"New booking" in calls[0].content

    def test_payload_has_link_button(self):
        payload = build_slack_payload("Title", ["a", "b"], "https://app.example.com/open/t")

        section = payload["blocks"][0]
        assert payload["text"] == "Title"
        assert section["text"]["text"] == "*Title*\na\nb"
        assert section["accessory"]["url"] == "https://app.example.com/open/t"

    def test_payload_without_link(self):
        assert "accessory" not in build_slack_payload("Title", [])["blocks"][0]


class TestChatwork:
    async def test_sends_token_header_and_reads_message_id(self):
        transport, calls = sequence_transport((200, {"message_id": "1234"}))

        result = await send_chatwork_message("cw-token", "42", "hello", transport=transport)

        assert result.success is True
        assert result.message_id == "1234"
        assert calls[0].headers["X-ChatWorkToken"] == "cw-token"
        assert calls[0].url.path == "/v2/rooms/42/messages"

    def test_body_markup(self):
        body = build_chatwork_body("Title", ["line"], "https://app.example.com/i/t")

        assert body == "[info][title]Title[/title]line\nhttps://app.example.com/i/t[/info]"


class TestSms:
    async def test_not_configured(self):
        result = await send_sms("+819012345678", "hi")

        assert result.success is False
        assert result.error == "SMS not configured"

    async def test_rejects_non_e164(self):
        result = await send_sms("09012345678", "hi", account_sid="AC1", auth_token="tok", from_number="+15005550006")

        assert result.success is False
        assert "E.164" in result.error

    async def test_sends_with_basic_auth(self):
        transport, calls = sequence_transport((201, {"sid": "SM123"}))

        result = await send_sms(
            "+819012345678",
            "hi",
            account_sid="AC1",
            auth_token="tok",
            from_number="+15005550006",
            transport=transport,
        )

        assert result.success is True
        assert result.message_id == "SM123"
        assert calls[0].headers["Authorization"].startswith("Basic ")
        assert calls[0].url.path == "/2010-04-01/Accounts/AC1/Messages.json"


# ─────────────────────────────────────────────────────────────────────────────
# Fan-out
# ─────────────────────────────────────────────────────────────────────────────


class TestNotificationService:
    def test_collects_decrypted_targets(self, db):
        db.add(
            WorkspaceNotificationSettings(
                workspace_id=WORKSPACE_ID,
                slack_enabled=True,
                slack_webhook_url=encrypt_secret(WEBHOOK_URL),
                chatwork_enabled=True,
                chatwork_api_token=encrypt_secret("cw-token"),
                chatwork_room_id="42",
                sms_enabled=True,
                sms_to_phone="+819012345678",
            )
        )
        db.commit()

        targets = NotificationService(db).collect_targets(WORKSPACE_ID)

        assert targets.slack_webhook_url == WEBHOOK_URL
        assert targets.chatwork_api_token == "cw-token"
        assert targets.chatwork_room_id == "42"
        # Twilio credentials are not configured in tests
        assert targets.sms_to_phone is None

    def test_disabled_channels_are_skipped(self, db):
        db.add(
            WorkspaceNotificationSettings(
                workspace_id=WORKSPACE_ID,
                slack_enabled=False,
                slack_webhook_url=encrypt_secret(WEBHOOK_URL),
            )
        )
        db.commit()

        assert NotificationService(db).collect_targets(WORKSPACE_ID).is_empty()

    def test_unknown_workspace_has_no_targets(self, db):
        assert NotificationService(db).collect_targets("ws-none").is_empty()

    async def test_one_failing_channel_does_not_stop_others(self, monkeypatch):
        async def broken_slack(webhook_url, payload):
            raise RuntimeError("slack exploded")

        async def fake_chatwork(api_token, room_id, body):
            return SendResult(success=True)

        monkeypatch.setattr(notification_service, "send_slack_webhook", broken_slack)
        monkeypatch.setattr(notification_service, "send_chatwork_message", fake_chatwork)

        result = await dispatch_event(
            NotificationTargets(slack_webhook_url=WEBHOOK_URL, chatwork_api_token="t", chatwork_room_id="1"),
            NotificationEvent(event_type="open_slot_booked", title="Booked"),
        )

        assert result == {"slack_sent": False, "chatwork_sent": True, "sms_sent": False}


@pytest.mark.parametrize("secret", ["", None])
def test_encrypt_passes_through_empty(secret):
    assert encrypt_secret(secret) == secret

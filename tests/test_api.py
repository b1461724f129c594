"""End-to-end API tests: invite → re-proposals → open slots → booking."""

import pytest

THREAD_PAYLOAD = {
    "title": "Intro call",
    "invitee": {"name": "Hanako", "email": "Hanako@Example.com"},
    "duration": 60,
    "timezone": "Asia/Tokyo",
    "slots": [{"start_at": "2030-01-07T01:00:00Z", "end_at": "2030-01-07T02:00:00Z"}],
}

ALTERNATE = {"range": "next_week", "prefer": "afternoon"}


@pytest.fixture
def created_thread(client, organizer_headers):
    response = client.post("/one-on-one/threads", json=THREAD_PAYLOAD, headers=organizer_headers)
    assert response.status_code == 200
    return response.json()


def escalate(client, invite_token):
    for _ in range(2):
        assert client.post(f"/i/{invite_token}/request-alternate", json=ALTERNATE).status_code == 200
    return client.post(f"/i/{invite_token}/request-alternate", json=ALTERNATE).json()


# ─────────────────────────────────────────────────────────────────────────────
# Threads and invites
# ─────────────────────────────────────────────────────────────────────────────


class TestThreads:
    def test_create_with_explicit_slots(self, created_thread):
        assert created_thread["success"] is True
        assert created_thread["proposal_version"] == 1
        assert created_thread["invite_url"] == f"https://app.example.com/i/{created_thread['invite_token']}"
        assert len(created_thread["slots"]) == 1
        assert created_thread["slots"][0]["label"] == "1/7(Mon) 10:00-11:00"

    def test_invite_view(self, client, created_thread):
        response = client.get(f"/i/{created_thread['invite_token']}")

        body = response.json()
        assert response.status_code == 200
        assert body["candidate_name"] == "Hanako"
        assert body["remaining_proposals"] == 2
        assert body["max_reached"] is False
        assert body["open_slots_url"] is None

    def test_thread_detail(self, client, created_thread, organizer_headers):
        response = client.get(f"/one-on-one/threads/{created_thread['thread_id']}", headers=organizer_headers)

        body = response.json()
        assert body["status"] == "sent"
        assert body["slot_policy"] == "fixed"
        assert body["decision"]["action"] == "repropose"
        assert body["failure_summary"]["escalation_level"] == 0

    def test_thread_detail_other_workspace(self, client, created_thread):
        response = client.get(
            f"/one-on-one/threads/{created_thread['thread_id']}",
            headers={"X-Workspace-Id": "ws-other", "X-User-Id": "someone"},
        )

        assert response.status_code == 404

    def test_invalid_timezone(self, client, organizer_headers):
        response = client.post(
            "/one-on-one/threads", json={**THREAD_PAYLOAD, "timezone": "Mars/Olympus"}, headers=organizer_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


# ─────────────────────────────────────────────────────────────────────────────
# Request alternate
# ─────────────────────────────────────────────────────────────────────────────


class TestRequestAlternate:
    def test_reproposal_response(self, client, created_thread):
        response = client.post(f"/i/{created_thread['invite_token']}/request-alternate", json=ALTERNATE)

        body = response.json()
        assert response.status_code == 200
        assert body["max_reached"] is False
        assert body["new_proposal_version"] == 2
        assert body["remaining_proposals"] == 1
        assert len(body["slots"]) == 3
        assert "open_slots_url" not in body

    def test_third_request_escalates(self, client, created_thread):
        body = escalate(client, created_thread["invite_token"])

        assert body["success"] is True
        assert body["max_reached"] is True
        assert body["auto_open_slots"] is True
        assert "/open/" in body["open_slots_url"]
        assert "slots" not in body

    def test_invite_view_after_escalation(self, client, created_thread):
        body = escalate(client, created_thread["invite_token"])

        view = client.get(f"/i/{created_thread['invite_token']}").json()
        assert view["max_reached"] is True
        assert view["remaining_proposals"] == 0
        assert view["open_slots_url"] == body["open_slots_url"]

    def test_unknown_token(self, client):
        response = client.post("/i/no-such-token/request-alternate", json=ALTERNATE)

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "not_found",
            "message": "This link is invalid or has expired",
        }

    def test_bad_range(self, client, created_thread):
        response = client.post(
            f"/i/{created_thread['invite_token']}/request-alternate", json={"range": "someday", "prefer": "any"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


# ─────────────────────────────────────────────────────────────────────────────
# Open slots
# ─────────────────────────────────────────────────────────────────────────────


class TestOpenSlotsFlow:
    def test_select_then_conflict(self, client, created_thread, organizer_headers):
        token = escalate(client, created_thread["invite_token"])["open_slots_token"]

        page = client.get(f"/open/{token}").json()
        slot_id = page["slots"][0]["id"]
        selection = {"slot_id": slot_id, "name": "Hanako", "email": "hanako@example.com"}

        first = client.post(f"/open/{token}/select", json=selection)
        assert first.status_code == 200
        assert first.json()["redirect_url"].endswith(f"/open/{token}/thanks")

        second = client.post(f"/open/{token}/select", json={**selection, "name": "Taro"})
        assert second.status_code == 409
        assert second.json()["error"] == "slot_already_selected"

        detail = client.get(f"/one-on-one/threads/{created_thread['thread_id']}", headers=organizer_headers).json()
        assert detail["status"] == "confirmed"
        assert detail["slot_policy"] == "open_slots"
        assert detail["final_slot_id"] is not None

    def test_invalid_slot_id(self, client):
        response = client.post(
            "/open/some-token/select", json={"slot_id": "not-a-uuid", "name": "Hanako", "email": "hanako@example.com"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["message"].startswith("slot_id")

    def test_unknown_page(self, client):
        assert client.get("/open/no-such-token").status_code == 404

    def test_create_and_cancel(self, client, organizer_headers):
        created = client.post(
            "/one-on-one/open-slots",
            json={"title": "Coffee chat", "invitee": {"name": "Taro"}, "constraints": {"prefer": "morning"}},
            headers=organizer_headers,
        )
        assert created.status_code == 200
        body = created.json()
        assert body["slots_count"] == len(body["slots"]) > 0
        assert body["share_url"] == f"https://app.example.com/open/{body['token']}"

        cancelled = client.post(f"/one-on-one/open-slots/{body['token']}/cancel", headers=organizer_headers)
        assert cancelled.json() == {"success": True, "status": "cancelled"}
        assert client.get(f"/open/{body['token']}").status_code == 404

    def test_unknown_weekday_rejected(self, client, organizer_headers):
        response = client.post(
            "/one-on-one/open-slots",
            json={"invitee": {"name": "Taro"}, "constraints": {"days": ["funday"]}},
            headers=organizer_headers,
        )

        assert response.status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Organizer auth
# ─────────────────────────────────────────────────────────────────────────────


class TestTenant:
    def test_missing_user_header(self, client):
        response = client.get("/one-on-one/threads/anything")

        assert response.status_code == 401

    def test_missing_user_header_on_failures(self, client):
        assert client.get("/failures/stats").status_code == 401


# ─────────────────────────────────────────────────────────────────────────────
# Failures
# ─────────────────────────────────────────────────────────────────────────────


class TestFailureEndpoints:
    def test_record_summarize_reset(self, client, created_thread, organizer_headers):
        url = f"/threads/{created_thread['thread_id']}/failures"
        failure = {"failure_type": "no_common_slot", "stage": "propose", "participant_key": "a@example.com"}

        client.post(url, json=failure, headers=organizer_headers)
        recorded = client.post(url, json={**failure, "meta": {"reason": "busy"}}, headers=organizer_headers).json()
        assert recorded["count"] == 2
        assert recorded["meta_json"] == {"reason": "busy"}

        summary = client.get(url, headers=organizer_headers).json()
        assert summary["total_failures"] == 2
        assert summary["escalation_level"] == 2

        stats = client.get("/failures/stats", params={"days": 7}, headers=organizer_headers).json()
        assert stats["total_failures"] == 2
        assert stats["threads_with_failures"] == 1

        reset = client.delete(url, params={"failure_type": "no_common_slot"}, headers=organizer_headers).json()
        assert reset == {"deleted": 1}
        assert client.get(url, headers=organizer_headers).json()["escalation_level"] == 0

    def test_unknown_failure_type(self, client, created_thread, organizer_headers):
        response = client.post(
            f"/threads/{created_thread['thread_id']}/failures",
            json={"failure_type": "bad_luck", "stage": "propose"},
            headers=organizer_headers,
        )

        assert response.status_code == 400

    def test_stats_days_bounds(self, client, organizer_headers):
        assert client.get("/failures/stats", params={"days": 0}, headers=organizer_headers).status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Notification settings
# ─────────────────────────────────────────────────────────────────────────────


class TestNotificationSettings:
    def test_defaults(self, client, organizer_headers):
        body = client.get("/workspace/notifications", headers=organizer_headers).json()

        assert body["slack_enabled"] is False
        assert body["chatwork_api_token_masked"] is None

    def test_secrets_are_masked(self, client, organizer_headers):
        response = client.put(
            "/workspace/notifications",
            json={
                "chatwork_enabled": True,
                "chatwork_api_token": "abcdef123456",
                "chatwork_room_id": "42",
                "sms_enabled": True,
                "sms_to_phone": "090-1234-5678",
            },
            headers=organizer_headers,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["chatwork_api_token_masked"] == "********3456"
        assert body["sms_to_phone"] == "+819012345678"

        again = client.get("/workspace/notifications", headers=organizer_headers).json()
        assert again["chatwork_room_id"] == "42"
        assert again["chatwork_enabled"] is True

    def test_invalid_room_id(self, client, organizer_headers):
        response = client.put(
            "/workspace/notifications", json={"chatwork_room_id": "room-42"}, headers=organizer_headers
        )

        assert response.status_code == 400

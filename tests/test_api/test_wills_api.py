"""End-to-end tests for the Will and circle endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from will_engine.main import create_app

T0 = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def client(container):
    app = create_app(container)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


class TestIdentityAndErrors:
    async def test_missing_user_header_is_401(self, client):
        response = await client.get("/wills/1")

        assert response.status_code == 401
        body = response.json()
        assert body["error"]["message"] == "Missing X-User-Id header"
        assert body["request_id"]

    async def test_unknown_will_is_404(self, client):
        response = await client.get("/wills/999", headers=as_user("alice"))

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "WillNotFound"

    async def test_private_will_is_403(self, client, store):
        will = await store.will(status="active")

        response = await client.get(f"/wills/{will.id}", headers=as_user("mallory"))

        assert response.status_code == 403
        assert response.json()["error"]["type"] == "AuthorizationError"

    async def test_request_id_is_echoed(self, client):
        response = await client.get("/", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    async def test_unexpected_errors_become_500(self, client, container):
        class BrokenWills:
            async def get_will_details(self, will_id, user_id):
                raise RuntimeError("database exploded")

        container.register_instance("wills", BrokenWills())

        response = await client.get("/wills/1", headers=as_user("alice"))

        assert response.status_code == 500
        assert response.json()["error"] == {
            "message": "Internal server error",
            "type": "InternalError",
        }


class TestWillLifecycleEndpoints:
    async def test_create_solo_will(self, client):
        response = await client.post(
            "/wills",
            json={
                "mode": "solo",
                "startDate": "2024-03-11T09:00:00Z",
                "endDate": "2024-03-18T09:00:00Z",
                "what": "Run every morning",
                "why": "Energy",
                "timezone": "America/New_York",
            },
            headers=as_user("alice"),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "scheduled"
        assert body["displayStatus"] == "scheduled"
        assert body["timezone"] == "America/New_York"
        assert [c["userId"] for c in body["commitments"]] == ["alice"]

    async def test_new_will_gate_reports_acknowledgment_counts(self, client, store):
        done = await store.will(status="completed")
        await store.commit(done.id, "alice")

        response = await client.post(
            "/wills",
            json={
                "startDate": "2024-03-11T09:00:00Z",
                "endDate": "2024-03-12T09:00:00Z",
                "what": "a",
                "why": "b",
            },
            headers=as_user("alice"),
        )

        assert response.status_code == 400
        details = response.json()["error"]["details"]
        assert details["requires_acknowledgment"] is True
        assert (details["acknowledged_count"], details["commitment_count"]) == (0, 1)

    async def test_update_dates(self, client, store):
        will = await store.will(status="scheduled", start=T0 + timedelta(days=1))

        response = await client.put(
            f"/wills/{will.id}",
            json={"startDate": "2024-03-12T00:00:00Z", "endDate": "2024-03-20T00:00:00Z"},
            headers=as_user("alice"),
        )

        assert response.status_code == 200
        assert response.json()["startDate"] == "2024-03-12T00:00:00+00:00"

    async def test_pause_resume_delete(self, client, store):
        will = await store.will(status="active")
        headers = as_user("alice")

        assert (await client.post(f"/wills/{will.id}/pause", headers=headers)).json() == {
            "status": "paused"
        }
        assert (await client.post(f"/wills/{will.id}/resume", headers=headers)).json() == {
            "status": "active"
        }
        response = await client.delete(f"/wills/{will.id}", headers=headers)
        assert response.json()["status"] == "terminated"
        assert (await store.get_will(will.id)).status == "terminated"

    async def test_request_end_of_indefinite_will(self, client, store):
        will = await store.will(status="active", is_indefinite=True)
        await store.commit(will.id, "alice")

        response = await client.post(f"/wills/{will.id}/end", headers=as_user("alice"))

        assert response.status_code == 200
        assert response.json()["endRequestedAt"] == T0.isoformat()


class TestCommitmentEndpoints:
    async def test_commit_and_edit(self, client, store):
        circle = await store.circle("alice", "bob")
        will = await store.will(
            status="pending", mode="circle", circle_id=circle.id, start=T0 + timedelta(days=1)
        )

        created = await client.post(
            f"/wills/{will.id}/commitments",
            json={"what": "Read", "why": "Calm"},
            headers=as_user("bob"),
        )
        assert created.status_code == 201
        commitment = created.json()
        assert (commitment["willId"], commitment["userId"]) == (will.id, "bob")

        edited = await client.put(
            f"/will-commitments/{commitment['id']}",
            json={"what": "Read daily", "why": "Calm"},
            headers=as_user("bob"),
        )
        assert edited.json()["what"] == "Read daily"

        forbidden = await client.put(
            f"/will-commitments/{commitment['id']}",
            json={"what": "x", "why": "y"},
            headers=as_user("alice"),
        )
        assert forbidden.status_code == 403


class TestCheckInEndpoints:
    async def test_check_in_flow(self, client, store):
        will = await store.will(status="active")
        await store.commit(will.id, "alice")
        headers = as_user("alice")

        first = await client.post(
            f"/wills/{will.id}/check-ins",
            json={"date": "2024-03-10", "status": "partial"},
            headers=headers,
        )
        assert first.status_code == 200
        again = await client.post(
            f"/wills/{will.id}/check-ins",
            json={"date": "2024-03-10", "status": "yes"},
            headers=headers,
        )
        assert again.json()["id"] == first.json()["id"]
        assert again.json()["status"] == "yes"

        listed = await client.get(f"/wills/{will.id}/check-ins", headers=headers)
        assert [(c["date"], c["status"]) for c in listed.json()] == [("2024-03-10", "yes")]

        progress = (
            await client.get(f"/wills/{will.id}/check-in-progress", headers=headers)
        ).json()
        assert progress["totalDays"] == 2
        assert progress["checkedInDays"] == 1
        assert progress["successRate"] == 100
        assert progress["streak"] == 1

    async def test_malformed_date_is_400(self, client, store):
        will = await store.will(status="active")
        await store.commit(will.id, "alice")

        response = await client.post(
            f"/wills/{will.id}/check-ins",
            json={"date": "2024-3-10", "status": "yes"},
            headers=as_user("alice"),
        )

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "DomainValidationError"

    async def test_progress_hidden_from_strangers(self, client, store):
        will = await store.will(status="active")

        response = await client.get(
            f"/wills/{will.id}/check-in-progress", headers=as_user("mallory")
        )

        assert response.status_code == 403


class TestReviewEndpoints:
    async def test_review_once(self, client, store):
        will = await store.will(status="will_review")
        await store.commit(will.id, "alice")
        headers = as_user("alice")

        created = await client.post(
            f"/wills/{will.id}/review",
            json={"followThrough": "mostly", "reflectionText": "  Good week  "},
            headers=headers,
        )
        assert created.status_code == 201
        assert created.json()["followThrough"] == "mostly"
        assert created.json()["reflectionText"] == "Good week"

        duplicate = await client.post(
            f"/wills/{will.id}/review", json={"followThrough": "yes"}, headers=headers
        )
        assert duplicate.status_code == 400
        assert "already submitted" in duplicate.json()["error"]["message"]

    async def test_acknowledge(self, client, store):
        will = await store.will(status="completed")
        await store.commit(will.id, "alice", "bob")

        response = await client.post(f"/wills/{will.id}/acknowledge", headers=as_user("alice"))

        assert response.json() == {
            "acknowledged": True,
            "created": True,
            "acknowledgedCount": 1,
            "commitmentCount": 2,
            "readyForNewWill": False,
        }
        detail = await client.get(f"/wills/{will.id}", headers=as_user("alice"))
        assert detail.json()["displayStatus"] == "completed"


class TestEndRoomEndpoints:
    async def test_unscheduled(self, client, store):
        will = await store.will(status="active")

        body = (await client.get(f"/wills/{will.id}/end-room", headers=as_user("alice"))).json()

        assert body["endRoomScheduledAt"] is None
        assert body["isOpen"] is False

    async def test_schedule_and_read(self, client, store):
        circle = await store.circle("alice", "bob")
        will = await store.will(
            status="will_review", mode="circle", circle_id=circle.id, end=T0 - timedelta(hours=1)
        )

        response = await client.put(
            f"/wills/{will.id}/end-room",
            json={"endRoomScheduledAt": "2024-03-10T12:00:00Z"},
            headers=as_user("alice"),
        )
        assert response.status_code == 200
        assert response.json()["isOpen"] is True
        assert response.json()["closesAt"] == "2024-03-10T12:30:00+00:00"

        seen_by_bob = await client.get(f"/wills/{will.id}/end-room", headers=as_user("bob"))
        assert seen_by_bob.json()["endRoomStatus"] == "open"

    async def test_too_late_is_rejected(self, client, store):
        circle = await store.circle("alice", "bob")
        will = await store.will(
            status="will_review", mode="circle", circle_id=circle.id, end=T0 - timedelta(hours=1)
        )

        response = await client.put(
            f"/wills/{will.id}/end-room",
            json={"endRoomScheduledAt": "2024-03-13T12:00:00Z"},
            headers=as_user("alice"),
        )

        assert response.status_code == 400


class TestCircleEndpoints:
    async def test_create_join_leave(self, client):
        created = await client.post("/circles", headers=as_user("alice"))
        assert created.status_code == 201
        code = created.json()["inviteCode"]

        joined = await client.post(
            "/circles/join", json={"inviteCode": code.lower()}, headers=as_user("bob")
        )
        assert joined.json()["members"] == ["alice", "bob"]
        assert joined.json()["memberCount"] == 2

        mine = await client.get("/circles/mine", headers=as_user("bob"))
        assert mine.json()["id"] == created.json()["id"]

        await client.post("/circles/leave", headers=as_user("bob"))
        gone = await client.get("/circles/mine", headers=as_user("bob"))
        assert gone.status_code == 404

    async def test_unknown_invite_code(self, client):
        response = await client.post(
            "/circles/join", json={"inviteCode": "ZZZZZZ"}, headers=as_user("bob")
        )
        assert response.status_code == 404
        assert response.json()["error"]["type"] == "CircleNotFound"

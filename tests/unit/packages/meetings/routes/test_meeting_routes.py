from datetime import timedelta

from common.db.base import utcnow


class TestStartAndEnd:
    async def test_start_then_end(self, client, free_user, auth_headers):
        headers = auth_headers(free_user.id)

        started = await client.post(
            "/api/v1/meetings/start",
            json={"title": "Standup", "estimated_minutes": 15},
            headers=headers,
        )

        assert started.status_code == 201
        body = started.json()
        assert body["decision"]["allowed"] is True
        assert body["max_minutes"] == 20
        meeting_id = body["meeting"]["id"]

        ended = await client.post(f"/api/v1/meetings/{meeting_id}/end", headers=headers)

        assert ended.status_code == 200
        assert ended.json()["end_reason"] == "user"
        assert ended.json()["duration_minutes"] == 0

    async def test_second_trial_in_week_is_403(self, client, free_user, auth_headers):
        headers = auth_headers(free_user.id)
        first = await client.post(
            "/api/v1/meetings/start", json={"estimated_minutes": 10}, headers=headers
        )
        await client.post(f"/api/v1/meetings/{first.json()['meeting']['id']}/end", headers=headers)

        second = await client.post(
            "/api/v1/meetings/start", json={"estimated_minutes": 10}, headers=headers
        )

        assert second.status_code == 403
        assert second.json()["decision"]["allowed"] is False
        assert second.json()["meeting"] is None

    async def test_free_meeting_too_long_is_403(self, client, free_user, auth_headers):
        response = await client.post(
            "/api/v1/meetings/start",
            json={"estimated_minutes": 45},
            headers=auth_headers(free_user.id),
        )

        assert response.status_code == 403

    async def test_other_users_meeting_is_404(
        self, client, free_user, plus_user, auth_headers, make_meeting
    ):
        meeting = await make_meeting(plus_user.id, utcnow() - timedelta(minutes=5))

        response = await client.post(
            f"/api/v1/meetings/{meeting.id}/end", headers=auth_headers(free_user.id)
        )

        assert response.status_code == 404


class TestQueries:
    async def test_can_start(self, client, plus_user, auth_headers):
        response = await client.post(
            "/api/v1/meetings/can-start",
            json={"estimated_minutes": 60},
            headers=auth_headers(plus_user.id),
        )

        assert response.status_code == 200
        assert response.json()["allowed"] is True

    async def test_timer_for_open_meeting(
        self, client, plus_user, auth_headers, make_meeting
    ):
        meeting = await make_meeting(plus_user.id, utcnow() - timedelta(minutes=10))

        response = await client.get(
            f"/api/v1/meetings/{meeting.id}/timer", headers=auth_headers(plus_user.id)
        )

        body = response.json()
        assert response.status_code == 200
        assert body["is_open"] is True
        assert body["max_minutes"] == 90
        assert body["expired"] is False

    async def test_list_and_get(self, client, plus_user, auth_headers, make_meeting):
        meeting = await make_meeting(plus_user.id, utcnow() - timedelta(hours=2), 30)
        headers = auth_headers(plus_user.id)

        listed = await client.get("/api/v1/meetings", headers=headers)
        fetched = await client.get(f"/api/v1/meetings/{meeting.id}", headers=headers)

        assert listed.json()["total"] == 1
        assert fetched.json()["duration_minutes"] == 30

    async def test_usage(self, client, plus_user, auth_headers):
        response = await client.get("/api/v1/meetings/usage", headers=auth_headers(plus_user.id))

        body = response.json()
        assert body["plan_id"] == "plus"
        assert body["minutes_limit"] == 1000
        assert body["has_active_meeting"] is False

    async def test_requires_auth(self, client):
        response = await client.get("/api/v1/meetings")
        assert response.status_code == 401

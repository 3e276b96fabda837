"""
Tests for attendance code, check-in and finalisation endpoints.
"""

from datetime import timedelta


class TestAttendanceCode:
    """Test cases for generating and redeeming codes."""

    def test_generate_code(self, client, create_event_via_api, coordinator_headers):
        event = create_event_via_api()

        response = client.post(f"/api/v1/events/{event['id']}/attendance-code", headers=coordinator_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data["code"]) == 32
        assert data["expires_at"].startswith("2025-03-01T09:05:00")

    def test_student_cannot_generate(self, client, create_event_via_api, student_headers):
        event = create_event_via_api()

        response = client.post(f"/api/v1/events/{event['id']}/attendance-code", headers=student_headers)

        assert response.status_code == 403

    def test_pending_event_cannot_generate(self, client, create_event_via_api, coordinator_headers):
        event = create_event_via_api(headers=coordinator_headers)

        response = client.post(f"/api/v1/events/{event['id']}/attendance-code", headers=coordinator_headers)

        assert response.status_code == 409

    def test_check_in_is_idempotent(self, client, create_event_via_api, coordinator_headers, student_headers):
        event = create_event_via_api(invitation_mode="open")
        code = client.post(
            f"/api/v1/events/{event['id']}/attendance-code", headers=coordinator_headers
        ).json()["code"]

        first = client.post(f"/api/v1/events/{event['id']}/check-in", json={"code": code}, headers=student_headers)
        second = client.post(f"/api/v1/events/{event['id']}/check-in", json={"code": code}, headers=student_headers)

        assert first.json()["message"] == "Checked in"
        assert second.status_code == 200
        assert second.json()["message"] == "Already checked in"
        assert second.json()["already_checked_in"] is True

    def test_expired_code(self, client, clock, create_event_via_api, coordinator_headers, student_headers):
        event = create_event_via_api(invitation_mode="open")
        code = client.post(
            f"/api/v1/events/{event['id']}/attendance-code", headers=coordinator_headers
        ).json()["code"]

        clock.advance(timedelta(minutes=6))
        response = client.post(f"/api/v1/events/{event['id']}/check-in", json={"code": code}, headers=student_headers)

        assert response.status_code == 410
        assert response.json()["error_code"] == "EXPIRED"

    def test_wrong_code(self, client, create_event_via_api, coordinator_headers, student_headers):
        event = create_event_via_api(invitation_mode="open")
        client.post(f"/api/v1/events/{event['id']}/attendance-code", headers=coordinator_headers)

        response = client.post(
            f"/api/v1/events/{event['id']}/check-in", json={"code": "0" * 32}, headers=student_headers
        )

        assert response.status_code == 400
        assert response.json()["error_message"] == "Invalid code"

    def test_record_and_list_attendance(self, client, create_event_via_api, coordinator_headers, student_headers):
        event = create_event_via_api(invitation_mode="open")
        client.post(f"/api/v1/events/{event['id']}/register", headers=student_headers)

        recorded = client.post(
            f"/api/v1/events/{event['id']}/attendance", json={"user_id": 20}, headers=coordinator_headers
        )
        listed = client.get(f"/api/v1/events/{event['id']}/attendance", headers=coordinator_headers)

        assert recorded.json()["message"] == "Attendance marked"
        assert [u["id"] for u in listed.json()] == [20]


class TestFinalizeEndpoint:
    """Test cases for finalisation and the dean report."""

    def test_finalize_sends_report_once(self, client, create_event_via_api, coordinator_headers, notifier):
        event = create_event_via_api()

        first = client.post(
            f"/api/v1/events/{event['id']}/finalize", json={"notes": "Went well"}, headers=coordinator_headers
        )
        second = client.post(f"/api/v1/events/{event['id']}/finalize", json={}, headers=coordinator_headers)

        assert first.status_code == 200
        assert first.json()["message"] == "Event finalised and report sent to deans"
        assert first.json()["notified"] == [1, 2]
        assert first.json()["report"]["notes"] == "Went well"
        assert second.json()["message"] == "Report already sent to deans"
        assert second.json()["notified"] == []
        assert len(notifier.sent) == 2

    def test_force_resend(self, client, create_event_via_api, coordinator_headers, notifier):
        event = create_event_via_api()
        client.post(f"/api/v1/events/{event['id']}/finalize", json={}, headers=coordinator_headers)

        response = client.post(
            f"/api/v1/events/{event['id']}/finalize", json={"force_resend": True}, headers=coordinator_headers
        )

        assert response.json()["notified"] == [1, 2]
        assert len(notifier.sent) == 4

    def test_finalized_event_rejects_codes(self, client, create_event_via_api, coordinator_headers):
        event = create_event_via_api()
        client.post(f"/api/v1/events/{event['id']}/finalize", json={}, headers=coordinator_headers)

        response = client.post(f"/api/v1/events/{event['id']}/attendance-code", headers=coordinator_headers)

        assert response.status_code == 409

    def test_outsider_cannot_finalize(self, client, create_event_via_api, other_coordinator_headers):
        event = create_event_via_api()

        response = client.post(f"/api/v1/events/{event['id']}/finalize", json={}, headers=other_coordinator_headers)

        assert response.status_code == 403

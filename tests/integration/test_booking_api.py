"""End-to-end tests of the HTTP API against a real SQLite database."""
from datetime import time

import pytest
from fastapi.testclient import TestClient

from consultation_booking.api.dependencies import build_container
from consultation_booking.api_server import create_app
from consultation_booking.notifications.dispatcher import NotificationDispatcher
from consultation_booking.rate_limiter import RateLimiter

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "s3cret-pass"


@pytest.fixture
def notifiers(fake_notifier):
    return {"email": fake_notifier("email"), "telegram": fake_notifier("telegram", configured=False)}


@pytest.fixture
def container(tmp_path, notifiers):
    container = build_container(
        database_url=f"sqlite:///{tmp_path / 'api.db'}",
        dispatcher=NotificationDispatcher(email=notifiers["email"], telegram=notifiers["telegram"]),
        hide_past_dates=False,
        notification_wait=2,
    )
    container.database.init()
    container.admin_users.create_admin_user(ADMIN_EMAIL, ADMIN_PASSWORD)
    return container


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as client:
        yield client


@pytest.fixture
def admin_client(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def tuesday_9_to_11(container):
    consultant = container.schedule_store.add_consultant("Anna")
    container.schedule_store.add_schedule_entry(2, time(9, 0), time(11, 0), consultant_id=consultant.id)


class TestPublicBooking:
    def test_create_booking_returns_201(self, client, booking_payload, notifiers):
        response = client.post("/api/bookings", json=booking_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["booking"]["date"] == "2025-06-10"
        assert body["booking"]["time"] == "10:00"
        assert isinstance(body["booking"]["id"], int)
        assert body["notifications"] == {"telegram": False, "email": True}
        assert len(notifiers["email"].sent) == 1

    def test_same_slot_twice_returns_409(self, client, booking_payload):
        assert client.post("/api/bookings", json=booking_payload()).status_code == 201

        response = client.post("/api/bookings", json=booking_payload(fullName="Second", email="s@example.com"))

        assert response.status_code == 409
        assert response.json()["error"] == "Time slot already occupied"
        assert response.json()["code"] == "SLOT_TAKEN"

    def test_validation_error_returns_400_naming_field(self, client, booking_payload):
        response = client.post("/api/bookings", json=booking_payload(email="broken"))

        assert response.status_code == 400
        assert response.json()["detail"] == "email"

    def test_missing_field_returns_400(self, client, booking_payload):
        payload = booking_payload()
        del payload["phone"]

        response = client.post("/api/bookings", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"] == "phone"

    def test_malformed_body_returns_400(self, client):
        response = client.post("/api/bookings", content="not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_notification_failure_still_201(self, client, booking_payload, notifiers):
        notifiers["email"].error = RuntimeError("provider down")

        response = client.post("/api/bookings", json=booking_payload())

        assert response.status_code == 201
        assert response.json()["notifications"] == {"telegram": False, "email": False}

    def test_occupied_times(self, client, booking_payload):
        client.post("/api/bookings", json=booking_payload(time="14:00"))
        client.post("/api/bookings", json=booking_payload(time="09:00"))

        response = client.get("/api/bookings/occupied/2025-06-10")

        assert response.status_code == 200
        assert response.json() == {"date": "2025-06-10", "occupiedTimes": ["09:00", "14:00"]}

    def test_occupied_times_invalid_date(self, client):
        assert client.get("/api/bookings/occupied/june-10").status_code == 400

    def test_available_slots_before_any_booking(self, client, tuesday_9_to_11):
        response = client.get("/api/schedule/available/2025-06-10")

        assert response.status_code == 200
        assert response.json() == {
            "date": "2025-06-10",
            "slots": [
                {"time": "09:00", "consultant": "Anna", "available": True},
                {"time": "10:00", "consultant": "Anna", "available": True},
            ],
        }

    def test_booked_slot_disappears_from_availability(self, client, booking_payload, tuesday_9_to_11):
        client.post("/api/bookings", json=booking_payload(time="10:00"))

        slots = client.get("/api/schedule/available/2025-06-10").json()["slots"]

        assert [s["time"] for s in slots] == ["09:00"]


class TestAuth:
    def test_protected_route_without_session_is_401(self, client):
        response = client.get("/api/bookings")

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_login_sets_httponly_cookie(self, client):
        response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})

        assert response.status_code == 200
        assert response.json()["user"]["email"] == ADMIN_EMAIL
        set_cookie = response.headers["set-cookie"]
        assert "booking_session=" in set_cookie
        assert "httponly" in set_cookie.lower()
        assert "Max-Age=86400" in set_cookie

    def test_wrong_password_is_401(self, client):
        response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-pass"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    def test_login_missing_password_is_400(self, client):
        assert client.post("/api/auth/login", json={"email": ADMIN_EMAIL}).status_code == 400

    def test_check_reports_session(self, client):
        assert client.get("/api/auth/check").json() == {"authenticated": False}

        client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        body = client.get("/api/auth/check").json()

        assert body["authenticated"] is True
        assert body["user"]["email"] == ADMIN_EMAIL

    def test_logout_ends_session(self, admin_client):
        assert admin_client.get("/api/bookings").status_code == 200

        assert admin_client.post("/api/auth/logout").json() == {"success": True}

        assert admin_client.get("/api/bookings").status_code == 401

    def test_login_limited_after_five_failures(self, client):
        for _ in range(5):
            response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-pass"})
            assert response.status_code == 401

        response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0

    def test_successful_logins_not_counted(self, client):
        for _ in range(8):
            response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
            assert response.status_code == 200


class TestAdminBookings:
    def test_round_trip(self, admin_client, booking_payload):
        created = admin_client.post("/api/bookings", json=booking_payload(category="parent")).json()
        booking_id = created["booking"]["id"]

        booking = admin_client.get(f"/api/bookings/{booking_id}").json()

        assert booking["date"] == "2025-06-10"
        assert booking["time"] == "10:00"
        assert booking["category"] == "parent"
        assert booking["status"] == "pending"
        occupied = admin_client.get("/api/bookings/occupied/2025-06-10").json()["occupiedTimes"]
        assert "10:00" in occupied

    def test_list_and_search(self, admin_client, booking_payload):
        admin_client.post("/api/bookings", json=booking_payload(time="09:00", fullName="Olga", email="olga@example.com"))
        admin_client.post("/api/bookings", json=booking_payload(time="10:00", fullName="Pavel", email="pavel@example.com"))

        everything = admin_client.get("/api/bookings").json()
        searched = admin_client.get("/api/bookings", params={"search": "olga"}).json()

        assert everything["total"] == 2
        assert [b["full_name"] for b in everything["bookings"]] == ["Pavel", "Olga"]
        assert searched["total"] == 1

    def test_unknown_booking_is_404(self, admin_client):
        response = admin_client.get("/api/bookings/9999")

        assert response.status_code == 404
        assert response.json()["error"] == "Booking not found"

    def test_delete_frees_slot(self, admin_client, booking_payload, tuesday_9_to_11):
        booking_id = admin_client.post("/api/bookings", json=booking_payload()).json()["booking"]["id"]

        response = admin_client.delete(f"/api/bookings/{booking_id}")

        assert response.json() == {"success": True, "deleted": {"id": booking_id}}
        assert admin_client.get("/api/bookings").json()["total"] == 0
        slots = admin_client.get("/api/schedule/available/2025-06-10").json()["slots"]
        assert [s["time"] for s in slots] == ["09:00", "10:00"]
        assert admin_client.delete(f"/api/bookings/{booking_id}").status_code == 404

    def test_status_update(self, admin_client, booking_payload):
        booking_id = admin_client.post("/api/bookings", json=booking_payload()).json()["booking"]["id"]

        response = admin_client.put(f"/api/bookings/{booking_id}/status", json={"status": "confirmed"})

        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "confirmed"

    @pytest.mark.parametrize("body", [{}, {"status": "archived"}])
    def test_status_update_rejects_bad_status(self, admin_client, booking_payload, body):
        booking_id = admin_client.post("/api/bookings", json=booking_payload()).json()["booking"]["id"]

        response = admin_client.put(f"/api/bookings/{booking_id}/status", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == "status"

    def test_status_update_unknown_booking(self, admin_client):
        assert admin_client.put("/api/bookings/9999/status", json={"status": "confirmed"}).status_code == 404

    def test_cancel_frees_slot_and_revive_conflicts(self, admin_client, booking_payload):
        first_id = admin_client.post("/api/bookings", json=booking_payload()).json()["booking"]["id"]
        admin_client.put(f"/api/bookings/{first_id}/status", json={"status": "cancelled"})

        second = admin_client.post("/api/bookings", json=booking_payload(fullName="Second"))
        revive = admin_client.put(f"/api/bookings/{first_id}/status", json={"status": "pending"})

        assert second.status_code == 201
        assert revive.status_code == 409

    def test_export_all_as_ics(self, admin_client, booking_payload):
        admin_client.post("/api/bookings", json=booking_payload(time="09:00"))
        admin_client.post("/api/bookings", json=booking_payload(time="10:00"))

        response = admin_client.get("/api/bookings/export.ics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert response.text.count("BEGIN:VEVENT") == 2

    def test_export_single_booking_as_ics(self, admin_client, booking_payload):
        booking_id = admin_client.post("/api/bookings", json=booking_payload()).json()["booking"]["id"]

        response = admin_client.get(f"/api/bookings/{booking_id}/ics")

        assert f"UID:booking-{booking_id}@consultation.local" in response.text
        assert "DTSTART:20250610T100000" in response.text

    def test_overview(self, admin_client, booking_payload):
        admin_client.post("/api/bookings", json=booking_payload(category="applicant"))

        body = admin_client.get("/api/bookings/overview").json()

        assert body["rows"][0]["date"] == "10.06.2025"
        assert body["stats"]["total"] == 1
        assert body["stats"]["applicants"] == 1


class TestAdminSchedule:
    def test_block_date_removes_availability(self, admin_client, tuesday_9_to_11):
        response = admin_client.post("/api/schedule/blocked-dates", json={"date": "2025-06-10", "reason": "Holiday"})

        assert response.status_code == 200
        blocked_id = response.json()["blockedDate"]["id"]
        assert admin_client.get("/api/schedule/available/2025-06-10").json()["slots"] == []

        listed = admin_client.get("/api/schedule/blocked-dates").json()["blockedDates"]
        assert [b["date"] for b in listed] == ["2025-06-10"]

        assert admin_client.delete(f"/api/schedule/blocked-dates/{blocked_id}").json() == {"success": True}
        assert len(admin_client.get("/api/schedule/available/2025-06-10").json()["slots"]) == 2

    def test_block_invalid_date_is_400(self, admin_client):
        assert admin_client.post("/api/schedule/blocked-dates", json={"date": "31.12.2025"}).status_code == 400

    def test_block_with_unknown_consultant_is_400(self, admin_client):
        response = admin_client.post(
            "/api/schedule/blocked-dates",
            json={"date": "2025-07-01", "consultantId": 999},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "consultantId"
        assert admin_client.get("/api/schedule/blocked-dates").json()["blockedDates"] == []

    def test_remove_unknown_block_is_404(self, admin_client):
        assert admin_client.delete("/api/schedule/blocked-dates/999").status_code == 404

    def test_blocked_dates_require_auth(self, client):
        assert client.get("/api/schedule/blocked-dates").status_code == 401
        assert client.post("/api/schedule/blocked-dates", json={"date": "2025-06-10"}).status_code == 401

    def test_all_schedules(self, admin_client, tuesday_9_to_11):
        schedules = admin_client.get("/api/schedule/all").json()["schedules"]

        assert len(schedules) == 1
        assert schedules[0]["day_of_week"] == 2
        assert schedules[0]["start_time"] == "09:00:00"
        assert schedules[0]["consultant_name"] == "Anna"

    def test_settings(self, admin_client):
        response = admin_client.put("/api/schedule/settings/slot_duration_minutes", json={"value": "60"})

        assert response.json() == {"success": True, "setting": {"key": "slot_duration_minutes", "value": "60"}}
        assert admin_client.get("/api/schedule/settings").json() == {"settings": {"slot_duration_minutes": "60"}}


class TestServerBehaviour:
    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["database"] == "ok"

    def test_unknown_route_is_404(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_request_id_header(self, client):
        assert client.get("/health").headers["X-Request-ID"].startswith("req-")

    def test_general_rate_limit(self, container, client):
        container.rate_limiter = RateLimiter(requests=3, window_seconds=900, message="Too many requests")

        for _ in range(3):
            assert client.get("/health").status_code == 200

        response = client.get("/health")

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests"
        assert "Retry-After" in response.headers

from cleanday.constants import TimeOffStatus, UserRole
from cleanday.models import TimeOffRequest, User

from .conftest import PASSWORD, make_booking, make_cleaner, tomorrow_at

NEW_MEMBER = {
    "email": "Morgan@Sparkle.test",
    "password": PASSWORD,
    "first_name": "Morgan",
    "phone": "512-555-0142",
    "hourly_rate": 22.5,
    "specialties": ["deep clean"],
    "availability": {"monday": {"start": "08:00", "end": "16:00"}},
}


class TestMembers:
    def test_create_member_makes_a_cleaner_login(self, db, seed, admin_client):
        response = admin_client.post("/api/team", json=NEW_MEMBER)

        assert response.status_code == 201, response.text
        member = response.json()["data"]
        assert member["email"] == "morgan@sparkle.test"
        assert member["phone"] == "+15125550142"
        assert member["total_jobs_completed"] == 0
        user = db.query(User).filter(User.email == "morgan@sparkle.test").one()
        assert user.role == UserRole.CLEANER
        assert user.company_id == seed.company.id

    def test_duplicate_email_is_409(self, seed, admin_client):
        response = admin_client.post("/api/team", json={**NEW_MEMBER, "email": seed.cleaner_user.email})
        assert response.status_code == 409
        assert response.json()["error"] == "Email already registered"

    def test_unknown_weekday_is_rejected(self, seed, admin_client):
        response = admin_client.post("/api/team", json={**NEW_MEMBER, "availability": {"funday": {}}})
        assert response.status_code == 422

    def test_deactivated_cleaner_cannot_sign_in(self, db, seed, admin_client, anon):
        response = admin_client.delete(f"/api/team/{seed.cleaner.id}")
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False

        login = anon.post("/api/auth/login", json={"email": seed.cleaner_user.email, "password": PASSWORD})
        assert login.status_code == 403

    def test_update_splits_user_and_profile_fields(self, db, seed, admin_client):
        response = admin_client.patch(
            f"/api/team/{seed.cleaner.id}", json={"first_name": "Cassidy", "hourly_rate": 30}
        )
        assert response.status_code == 200
        db.expire_all()
        assert seed.cleaner.user.first_name == "Cassidy"
        assert seed.cleaner.hourly_rate == 30

    def test_schedule_lists_assigned_jobs(self, db, seed, admin_client):
        booking = make_booking(db, seed.company, seed.client, seed.address, assigned_cleaner_id=seed.cleaner.id)
        response = admin_client.get(
            f"/api/team/{seed.cleaner.id}/schedule", params={"from": tomorrow_at(0).date().isoformat()}
        )
        assert [b["id"] for b in response.json()["data"]] == [booking.id]

    def test_cleaners_cannot_manage_the_team(self, seed, cleaner_client):
        assert cleaner_client.get("/api/team").status_code == 403


def request_time_off(client, start, end, **extra):
    return client.post(
        "/api/cleaner/time-off",
        json={"start_date": start.isoformat(), "end_date": end.isoformat(), **extra},
    )


class TestTimeOff:
    def test_request_covers_whole_days(self, seed, cleaner_client):
        response = request_time_off(cleaner_client, tomorrow_at(13), tomorrow_at(15), type="SICK")

        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["status"] == TimeOffStatus.PENDING
        assert data["start_date"].endswith("T00:00:00")
        assert data["end_date"].startswith(tomorrow_at(0).date().isoformat())

    def test_end_before_start_is_rejected(self, seed, cleaner_client):
        response = request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9).replace(year=2020))
        assert response.status_code == 400

    def test_unknown_type_is_422(self, seed, cleaner_client):
        response = request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9), type="SABBATICAL")
        assert response.status_code == 422

    def test_cleaner_cancels_only_pending_requests(self, db, seed, cleaner_client, admin_client):
        first = request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9)).json()["data"]
        second = request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9)).json()["data"]
        admin_client.post(f"/api/team/time-off/{second['id']}/approve")

        assert cleaner_client.delete(f"/api/cleaner/time-off/{first['id']}").status_code == 200
        refused = cleaner_client.delete(f"/api/cleaner/time-off/{second['id']}")
        assert refused.status_code == 400
        db.expire_all()
        assert db.query(TimeOffRequest).count() == 1

    def test_approve_and_deny_only_once(self, seed, cleaner_client, admin_client):
        pending = request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9)).json()["data"]

        approved = admin_client.post(
            f"/api/team/time-off/{pending['id']}/approve", json={"note": "Enjoy"}
        ).json()["data"]
        assert approved["status"] == TimeOffStatus.APPROVED
        assert approved["reviewed_by_id"] == seed.admin.id
        assert approved["review_note"] == "Enjoy"

        again = admin_client.post(f"/api/team/time-off/{pending['id']}/deny")
        assert again.status_code == 400
        assert again.json()["error"] == "Request is already approved"

    def test_admin_list_filters_by_status(self, seed, cleaner_client, admin_client):
        request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9))
        denied = request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9)).json()["data"]
        admin_client.post(f"/api/team/time-off/{denied['id']}/deny")

        listed = admin_client.get("/api/team/time-off", params={"status": "denied"}).json()["data"]
        assert [r["id"] for r in listed] == [denied["id"]]
        assert listed[0]["team_member_name"]


class TestConflictCheck:
    def test_approved_leave_marks_the_cleaner_unavailable(self, db, seed, cleaner_client, admin_client):
        other = make_cleaner(db, seed.company, "riley@sparkle.test", first_name="Riley")
        db.commit()
        pending = request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9)).json()["data"]
        admin_client.post(f"/api/team/time-off/{pending['id']}/approve")

        response = admin_client.post(
            "/api/team/time-off/check-conflicts", json={"date": tomorrow_at(12).isoformat()}
        )

        data = response.json()["data"]
        assert data["has_conflicts"] is True
        assert data["unavailable_team_member_ids"] == [seed.cleaner.id]
        assert [m["id"] for m in data["available_team_members"]] == [other.id]

    def test_pending_leave_is_not_a_conflict(self, seed, cleaner_client, admin_client):
        request_time_off(cleaner_client, tomorrow_at(9), tomorrow_at(9))
        response = admin_client.post(
            "/api/team/time-off/check-conflicts", json={"date": tomorrow_at(12).isoformat()}
        )
        assert response.json()["data"]["has_conflicts"] is False

    def test_date_or_range_is_required(self, seed, admin_client):
        response = admin_client.post("/api/team/time-off/check-conflicts", json={})
        assert response.status_code == 400

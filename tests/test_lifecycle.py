from datetime import timedelta

import pytest

from cleanday.constants import BookingStatus, MessageStatus, MessageType, TimeOffStatus
from cleanday.models import Booking, TimeOffRequest
from cleanday.models_messaging import Message
from cleanday.shared.dates import utcnow

from .conftest import bearer, make_booking, make_cleaner, tomorrow_at


@pytest.fixture
def job(db, seed):
    return make_booking(db, seed.company, seed.client, seed.address, assigned_cleaner_id=seed.cleaner.id)


class TestCleanerFlow:
    def test_full_day_from_on_my_way_to_approval(self, db, seed, job, cleaner_client, admin_client, sms):
        on_way = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/on-my-way")
        assert on_way.status_code == 200, on_way.text
        assert on_way.json()["sms_sent"] is True
        assert "on the way" in sms.bodies()[-1]

        clock_in = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/clock-in")
        assert clock_in.json()["data"]["clocked_in_at"] is not None

        clock_out = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/clock-out")
        assert clock_out.status_code == 200
        assert clock_out.json()["data"]["status"] == BookingStatus.CLEANER_COMPLETED
        assert clock_out.json()["duration"] == 0

        approve = admin_client.post(f"/api/bookings/{job.id}/approve", json={"notes": "Looks great"})
        assert approve.status_code == 200, approve.text
        data = approve.json()["data"]
        assert data["status"] == BookingStatus.COMPLETED
        assert data["approved_at"] is not None
        assert "Approval note: Looks great" in data["internal_notes"]
        assert [h["action"] for h in data["status_history"]] == [
            "ON_MY_WAY",
            "CLOCKED_IN",
            "CLOCKED_OUT",
            "APPROVED",
        ]

        db.expire_all()
        assert seed.cleaner.total_jobs_completed == 1
        assert seed.cleaner.total_earnings == 100
        assert seed.client.total_bookings == 1
        assert seed.client.total_spent == 100

        booking = db.query(Booking).filter(Booking.id == job.id).one()
        assert booking.feedback_token
        assert booking.feedback_sent_at is not None
        assert "/feedback/" in sms.bodies()[-1]

    def test_on_my_way_only_once(self, job, cleaner_client):
        cleaner_client.post(f"/api/cleaner/jobs/{job.id}/on-my-way")
        again = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/on-my-way")
        assert again.status_code == 400
        assert again.json()["error"] == "On my way already sent"

    def test_failed_text_does_not_block_the_milestone(self, db, job, cleaner_client, sms):
        sms.fail = True
        response = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/on-my-way")

        assert response.status_code == 200
        assert response.json()["sms_sent"] is False
        assert response.json()["data"]["on_my_way_at"] is not None
        logged = db.query(Message).filter(Message.booking_id == job.id).one()
        assert logged.status == MessageStatus.FAILED
        assert logged.type == MessageType.ON_MY_WAY
        assert "21211" in logged.error_message

    def test_clock_out_requires_clock_in(self, job, cleaner_client):
        response = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/clock-out")
        assert response.status_code == 400
        assert response.json()["error"] == "You must clock in before clocking out"

    def test_double_clock_in(self, job, cleaner_client):
        cleaner_client.post(f"/api/cleaner/jobs/{job.id}/clock-in")
        again = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/clock-in")
        assert again.status_code == 400

    def test_complete_without_clock_data(self, job, cleaner_client):
        response = cleaner_client.post(
            f"/api/cleaner/jobs/{job.id}/complete", json={"cleaner_notes": "Dog was friendly"}
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == BookingStatus.CLEANER_COMPLETED
        assert response.json()["data"]["cleaner_notes"] == "Dog was friendly"

        again = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/complete")
        assert again.status_code == 400

    def test_cannot_touch_another_cleaners_job(self, db, seed, cleaner_client):
        other = make_cleaner(db, seed.company, "riley@sparkle.test", first_name="Riley")
        db.commit()
        theirs = make_booking(db, seed.company, seed.client, seed.address, assigned_cleaner_id=other.id)

        response = cleaner_client.post(f"/api/cleaner/jobs/{theirs.id}/clock-in")
        assert response.status_code == 404

    def test_cancelled_jobs_reject_actions(self, db, seed, cleaner_client):
        cancelled = make_booking(
            db,
            seed.company,
            seed.client,
            seed.address,
            assigned_cleaner_id=seed.cleaner.id,
            status=BookingStatus.CANCELLED,
        )
        assert cleaner_client.post(f"/api/cleaner/jobs/{cancelled.id}/clock-in").status_code == 400
        assert cleaner_client.post(f"/api/cleaner/jobs/{cancelled.id}/complete").status_code == 400

    def test_job_cancelled_mid_clean_cannot_be_clocked_out(self, db, seed, job, cleaner_client, admin_client):
        assert cleaner_client.post(f"/api/cleaner/jobs/{job.id}/clock-in").status_code == 200
        cancel = admin_client.delete(f"/api/bookings/{job.id}")
        assert cancel.json()["data"]["status"] == BookingStatus.CANCELLED

        clock_out = cleaner_client.post(f"/api/cleaner/jobs/{job.id}/clock-out")

        assert clock_out.status_code == 400
        assert clock_out.json()["error"] == "Booking is not scheduled"
        assert admin_client.post(f"/api/bookings/{job.id}/approve").status_code == 404
        db.expire_all()
        assert job.status == BookingStatus.CANCELLED
        assert job.clocked_out_at is None

    def test_admins_are_not_cleaners(self, job, admin_client):
        response = admin_client.post(f"/api/cleaner/jobs/{job.id}/clock-in")
        assert response.status_code == 403

    def test_mobile_bearer_token_works(self, seed, job, anon):
        response = anon.get(
            "/api/cleaner/jobs",
            params={"date": job.scheduled_date.date().isoformat()},
            headers=bearer(seed.cleaner_user),
        )
        assert response.status_code == 200
        assert [j["id"] for j in response.json()["data"]] == [job.id]
        assert "internal_notes" not in response.json()["data"][0]


class TestApproval:
    def test_only_pending_jobs_can_be_approved(self, job, admin_client):
        response = admin_client.post(f"/api/bookings/{job.id}/approve")
        assert response.status_code == 404
        assert "not pending approval" in response.json()["error"]

    def test_no_show(self, job, admin_client):
        response = admin_client.post(f"/api/bookings/{job.id}/no-show", json={"notes": "Locked out"})
        assert response.json()["data"]["status"] == BookingStatus.NO_SHOW
        assert admin_client.post(f"/api/bookings/{job.id}/no-show").status_code == 400


class TestAssignment:
    def test_auto_assign_skips_busy_and_on_leave_cleaners(self, db, seed, admin_client):
        busy = seed.cleaner
        away = make_cleaner(db, seed.company, "avery@sparkle.test", first_name="Avery")
        free = make_cleaner(db, seed.company, "fran@sparkle.test", first_name="Fran")
        day = tomorrow_at(0)
        db.add(
            TimeOffRequest(
                company_id=seed.company.id,
                team_member_id=away.id,
                type="VACATION",
                start_date=day,
                end_date=day + timedelta(hours=23, minutes=59),
                status=TimeOffStatus.APPROVED,
            )
        )
        db.commit()
        make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(9), assigned_cleaner_id=busy.id)
        target = make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(10))

        response = admin_client.post(f"/api/bookings/{target.id}/assign", json={"auto_assign": True})

        assert response.status_code == 200, response.text
        assert response.json()["method"] == "AUTO"
        assert response.json()["data"]["assigned_cleaner_id"] == free.id

    def test_job_running_past_midnight_keeps_the_cleaner_busy(self, db, seed, admin_client):
        night_owl = seed.cleaner
        free = make_cleaner(db, seed.company, "fran@sparkle.test", first_name="Fran")
        seed.client.preferred_cleaner_id = night_owl.id
        db.commit()
        make_booking(
            db,
            seed.company,
            seed.client,
            seed.address,
            tomorrow_at(0) - timedelta(hours=2),
            duration=240,
            assigned_cleaner_id=night_owl.id,
        )
        target = make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(1))

        response = admin_client.post(f"/api/bookings/{target.id}/assign", json={"auto_assign": True})

        assert response.status_code == 200, response.text
        assert response.json()["data"]["assigned_cleaner_id"] == free.id

    def test_preferred_cleaner_wins(self, db, seed, admin_client):
        preferred = make_cleaner(db, seed.company, "pat@sparkle.test", first_name="Pat")
        seed.client.preferred_cleaner_id = preferred.id
        db.commit()
        target = make_booking(db, seed.company, seed.client, seed.address)

        response = admin_client.post(f"/api/bookings/{target.id}/assign", json={"auto_assign": True})
        assert response.json()["data"]["assigned_cleaner_id"] == preferred.id

    def test_nobody_free(self, db, seed, admin_client):
        make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(10), assigned_cleaner_id=seed.cleaner.id)
        target = make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(11))

        response = admin_client.post(f"/api/bookings/{target.id}/assign", json={"auto_assign": True})
        assert response.status_code == 404

    def test_manual_assignment_reports_overlap(self, db, seed, admin_client):
        existing = make_booking(
            db, seed.company, seed.client, seed.address, tomorrow_at(10), assigned_cleaner_id=seed.cleaner.id
        )
        target = make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(11))

        response = admin_client.post(f"/api/bookings/{target.id}/assign", json={"cleaner_id": seed.cleaner.id})
        assert response.json()["method"] == "MANUAL"
        assert response.json()["conflicts"] == [existing.id]

    def test_closed_bookings_cannot_be_assigned(self, db, seed, admin_client):
        done = make_booking(db, seed.company, seed.client, seed.address, status=BookingStatus.COMPLETED)
        response = admin_client.post(f"/api/bookings/{done.id}/assign", json={"cleaner_id": seed.cleaner.id})
        assert response.status_code == 400

    def test_assign_needs_a_target(self, job, admin_client):
        assert admin_client.post(f"/api/bookings/{job.id}/assign", json={}).status_code == 422


class TestFeedback:
    def finished(self, db, seed, **overrides):
        return make_booking(
            db,
            seed.company,
            seed.client,
            seed.address,
            assigned_cleaner_id=seed.cleaner.id,
            status=BookingStatus.COMPLETED,
            feedback_token="tok-123",
            **overrides,
        )

    def test_happy_client_gets_review_link(self, db, seed, anon):
        seed.company.google_review_url = "https://g.page/r/sparkle/review"
        db.commit()
        self.finished(db, seed)

        page = anon.get("/api/feedback/tok-123")
        assert page.json()["data"]["already_submitted"] is False

        response = anon.post("/api/feedback/tok-123", json={"rating": 5, "comment": "Spotless"})
        assert response.status_code == 200
        assert response.json()["data"]["google_review_url"] == "https://g.page/r/sparkle/review"
        db.expire_all()
        assert seed.cleaner.average_rating == 5
        assert seed.cleaner.rating_count == 1

    def test_unhappy_client_gets_no_review_link(self, db, seed, anon):
        seed.company.google_review_url = "https://g.page/r/sparkle/review"
        db.commit()
        self.finished(db, seed)
        response = anon.post("/api/feedback/tok-123", json={"rating": 2})
        assert response.json()["data"]["google_review_url"] is None

    def test_feedback_only_once(self, db, seed, anon):
        self.finished(db, seed, feedback_submitted_at=utcnow(), customer_rating=4)
        response = anon.post("/api/feedback/tok-123", json={"rating": 5})
        assert response.status_code == 400
        assert response.json()["error"] == "Feedback already submitted"

    def test_unknown_token(self, anon):
        assert anon.get("/api/feedback/nope").status_code == 404

    def test_rating_range(self, db, seed, anon):
        self.finished(db, seed)
        assert anon.post("/api/feedback/tok-123", json={"rating": 6}).status_code == 422


class TestEarnings:
    def test_summary(self, db, seed, cleaner_client):
        seed.cleaner.hourly_rate = 20
        db.commit()
        start = utcnow() - timedelta(days=2)
        make_booking(
            db,
            seed.company,
            seed.client,
            seed.address,
            start,
            duration=90,
            assigned_cleaner_id=seed.cleaner.id,
            status=BookingStatus.COMPLETED,
            tip_amount=10,
            clocked_in_at=start,
            clocked_out_at=start + timedelta(hours=2),
        )
        make_booking(
            db,
            seed.company,
            seed.client,
            seed.address,
            start + timedelta(hours=4),
            duration=60,
            assigned_cleaner_id=seed.cleaner.id,
            status=BookingStatus.CLEANER_COMPLETED,
        )

        response = cleaner_client.get("/api/cleaner/earnings")

        assert response.status_code == 200, response.text
        summary = response.json()["data"]["summary"]
        assert summary["jobs_completed"] == 1
        assert summary["jobs_pending_approval"] == 1
        assert summary["hours_worked"] == 3
        assert summary["tips"] == 10
        assert summary["job_revenue"] == 100
        assert summary["estimated_pay"] == 60

    def test_inverted_range(self, cleaner_client):
        response = cleaner_client.get("/api/cleaner/earnings", params={"from": "2025-05-10", "to": "2025-05-01"})
        assert response.status_code == 400

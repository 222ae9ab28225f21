import asyncio
from contextlib import contextmanager
from datetime import timedelta

import pytest

from cleanday import auth, worker
from cleanday.constants import BookingStatus, CreditStatus, CreditType, RecurrenceFrequency
from cleanday.models import Booking, CreditTransaction
from cleanday.services import cron_tasks
from cleanday.shared.dates import utcnow

from .conftest import TestingSessionLocal, make_booking, tomorrow_at


class TestCronSecret:
    def test_open_when_no_secret_is_configured(self, anon):
        assert anon.get("/api/cron/send-reminders").status_code == 200

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}])
    def test_rejects_bad_or_missing_secret(self, anon, monkeypatch, headers):
        monkeypatch.setattr(auth, "CRON_SECRET", "s3cret")
        response = anon.get("/api/cron/send-reminders", headers=headers)
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_accepts_the_secret(self, anon, monkeypatch):
        monkeypatch.setattr(auth, "CRON_SECRET", "s3cret")
        response = anon.get("/api/cron/send-reminders", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200


def add_grant(db, client, amount, expires_in_days=None, remaining=None):
    grant = CreditTransaction(
        client_id=client.id,
        type=CreditType.MANUAL,
        amount=amount,
        balance=amount,
        remaining=amount if remaining is None else remaining,
        status=CreditStatus.ACTIVE,
        expires_at=utcnow() + timedelta(days=expires_in_days) if expires_in_days is not None else None,
    )
    db.add(grant)
    return grant


class TestExpireCredits:
    def test_preview_then_expire(self, db, seed, anon):
        # 20 of the expired grant was already spent
        expired = add_grant(db, seed.client, 30, expires_in_days=-1, remaining=10)
        live = add_grant(db, seed.client, 15, expires_in_days=10)
        seed.client.credit_balance = 25
        db.commit()

        preview = anon.get("/api/cron/expire-credits").json()["data"]
        assert preview == {"expired_count": 1, "expired_amount": 10}

        result = anon.post("/api/cron/expire-credits").json()["data"]
        assert result == {"expired_count": 1, "expired_amount": 10}

        db.expire_all()
        assert seed.client.credit_balance == 15
        assert expired.status == CreditStatus.EXPIRED
        assert expired.remaining == 0
        assert live.status == CreditStatus.ACTIVE
        row = db.query(CreditTransaction).filter(CreditTransaction.type == CreditType.EXPIRED).one()
        assert row.amount == -10
        assert row.reference_id == expired.id

        assert anon.post("/api/cron/expire-credits").json()["data"]["expired_count"] == 0

    def test_only_the_unspent_remainder_expires(self, db, seed, admin_client, sms):
        expiring = add_grant(db, seed.client, 50, expires_in_days=5)
        lasting = add_grant(db, seed.client, 50)
        seed.client.credit_balance = 100
        db.commit()

        response = admin_client.post(
            "/api/bookings",
            json={
                "client_id": seed.client.id,
                "address_id": seed.address.id,
                "service_type": "STANDARD",
                "scheduled_date": tomorrow_at(10).isoformat(),
                "duration": 120,
                "base_price": 100,
                "credits_applied": 30,
            },
        )
        assert response.status_code == 201, response.text

        db.expire_all()
        assert seed.client.credit_balance == 70
        assert (expiring.status, expiring.remaining) == (CreditStatus.ACTIVE, 20)
        assert lasting.remaining == 50

        result = cron_tasks.expire_credits(db, utcnow() + timedelta(days=6))

        assert result == {"expired_count": 1, "expired_amount": 20}
        db.expire_all()
        assert seed.client.credit_balance == 50
        assert lasting.status == CreditStatus.ACTIVE


class TestReviewRequests:
    def rated_booking(self, db, seed, hours_ago, rating=5, **overrides):
        return make_booking(
            db,
            seed.company,
            seed.client,
            seed.address,
            utcnow() - timedelta(hours=hours_ago + 3),
            status=BookingStatus.COMPLETED,
            customer_rating=rating,
            feedback_submitted_at=utcnow() - timedelta(hours=hours_ago),
            **overrides,
        )

    def test_only_happy_clients_inside_the_window(self, db, seed, anon, sms):
        seed.company.google_review_url = "https://g.page/r/sparkle/review"
        db.commit()
        due = self.rated_booking(db, seed, hours_ago=60)
        self.rated_booking(db, seed, hours_ago=10)
        self.rated_booking(db, seed, hours_ago=100)
        self.rated_booking(db, seed, hours_ago=60, rating=3)
        self.rated_booking(db, seed, hours_ago=60, review_request_sent_at=utcnow())

        data = anon.get("/api/cron/send-review-requests").json()["data"]

        assert (data["total"], data["successful"], data["failed"]) == (1, 1, 0)
        assert set(data["time_window"]) == {"from", "to"}
        assert "https://g.page/r/sparkle/review" in sms.bodies()[0]
        db.expire_all()
        assert due.review_request_sent_at is not None

        assert anon.get("/api/cron/send-review-requests").json()["data"]["total"] == 0

    def test_companies_without_a_review_link_are_skipped(self, db, seed, anon, sms):
        self.rated_booking(db, seed, hours_ago=60)
        data = anon.get("/api/cron/send-review-requests").json()["data"]
        assert data["total"] == 0
        assert sms.sent == []


class TestReminders:
    def test_next_day_bookings_get_one_reminder(self, db, seed, anon, sms):
        soon = make_booking(db, seed.company, seed.client, seed.address, utcnow() + timedelta(hours=20))
        make_booking(db, seed.company, seed.client, seed.address, utcnow() + timedelta(hours=30))
        make_booking(
            db,
            seed.company,
            seed.client,
            seed.address,
            utcnow() + timedelta(hours=5),
            status=BookingStatus.CANCELLED,
        )

        data = anon.get("/api/cron/send-reminders").json()["data"]

        assert data == {"total": 1, "successful": 1, "failed": 0}
        assert "Reminder" in sms.bodies()[0]
        db.expire_all()
        assert soon.reminder_sent_at is not None
        assert anon.get("/api/cron/send-reminders").json()["data"]["total"] == 0

    def test_failed_reminder_is_retried_next_run(self, db, seed, anon, sms):
        make_booking(db, seed.company, seed.client, seed.address, utcnow() + timedelta(hours=2))
        sms.fail = True
        assert anon.get("/api/cron/send-reminders").json()["data"]["failed"] == 1
        sms.fail = False
        assert anon.get("/api/cron/send-reminders").json()["data"]["successful"] == 1


class TestRecurring:
    def recurring_parent(self, db, seed, **overrides):
        values = {"is_recurring": True, "recurrence_frequency": RecurrenceFrequency.WEEKLY}
        values.update(overrides)
        return make_booking(db, seed.company, seed.client, seed.address, utcnow() + timedelta(days=1), **values)

    def test_series_is_topped_up_to_the_horizon(self, db, seed, anon):
        parent = self.recurring_parent(db, seed)

        data = anon.get("/api/cron/recurring").json()["data"]

        assert data["series_checked"] == 1
        assert data["series_extended"] == 1
        children = (
            db.query(Booking)
            .filter(Booking.recurrence_parent_id == parent.id)
            .order_by(Booking.scheduled_date)
            .all()
        )
        assert len(children) == data["bookings_generated"] >= 7
        assert children[0].scheduled_date == parent.scheduled_date + timedelta(weeks=1)
        assert children[-1].scheduled_date <= utcnow() + timedelta(weeks=8)
        assert all(c.credits_applied == 0 for c in children)

        again = anon.get("/api/cron/recurring").json()["data"]
        assert again["bookings_generated"] == 0

    def test_end_date_caps_the_series(self, db, seed, anon):
        self.recurring_parent(db, seed, recurrence_end_date=utcnow() + timedelta(days=16))
        data = anon.get("/api/cron/recurring").json()["data"]
        assert data["bookings_generated"] == 2

    def test_paused_and_finished_series_are_left_alone(self, db, seed, anon):
        self.recurring_parent(db, seed, is_paused=True)
        self.recurring_parent(db, seed, recurrence_end_date=utcnow() - timedelta(days=1))

        data = anon.get("/api/cron/recurring").json()["data"]

        assert data["series_checked"] == 1
        assert data["bookings_generated"] == 0


class TestWorker:
    @pytest.fixture(autouse=True)
    def worker_sessions(self, monkeypatch):
        @contextmanager
        def scope():
            session = TestingSessionLocal()
            try:
                yield session
            finally:
                session.close()

        monkeypatch.setattr(worker, "session_scope", scope)

    def test_reminder_task_runs_the_same_job(self, db, seed, sms):
        make_booking(db, seed.company, seed.client, seed.address, utcnow() + timedelta(hours=3))

        result = asyncio.run(worker.send_reminders_task({"job_id": "test"}))

        assert result == {"total": 1, "successful": 1, "failed": 0}
        assert len(sms.sent) == 1

    def test_expiry_task(self, db, seed):
        add_grant(db, seed.client, 10, expires_in_days=-2)
        seed.client.credit_balance = 10
        db.commit()

        result = asyncio.run(worker.expire_credits_task({}))

        assert result == {"expired_count": 1, "expired_amount": 10}

    def test_every_task_is_scheduled(self):
        scheduled = {job.coroutine for job in worker.WorkerSettings.cron_jobs}
        assert scheduled == set(worker.WorkerSettings.functions)

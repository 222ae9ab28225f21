from datetime import timedelta

from cleanday.constants import BookingStatus, CreditStatus, CreditType
from cleanday.models import Booking, CreditTransaction
from cleanday.shared.dates import utcnow

from .conftest import make_booking, make_cleaner, tomorrow_at


def booking_payload(seed, **overrides):
    payload = {
        "client_id": seed.client.id,
        "address_id": seed.address.id,
        "service_type": "DEEP",
        "scheduled_date": tomorrow_at(10).isoformat(),
        "duration": 120,
        "base_price": 100,
    }
    payload.update(overrides)
    return payload


class TestCreateBooking:
    def test_pricing_with_addons_discount_and_tax(self, db, seed, admin_client, sms):
        seed.company.tax_rate = 10
        db.commit()

        response = admin_client.post(
            "/api/bookings",
            json=booking_payload(
                seed,
                addons=[{"name": "Inside oven", "price": 25, "quantity": 2}],
                discount_amount=10,
            ),
        )

        assert response.status_code == 201, response.text
        body = response.json()
        booking = body["data"]
        assert booking["subtotal"] == 150
        assert booking["tax_amount"] == 14
        assert booking["final_price"] == 154
        assert booking["status"] == BookingStatus.SCHEDULED
        assert booking["booking_number"].startswith("BK-")
        assert booking["status_history"][0]["action"] == "CREATED"
        assert body["sms_sent"] is True
        assert "confirmed" in sms.bodies()[0]

    def test_credits_reduce_the_price_and_balance(self, db, seed, admin_client):
        seed.client.credit_balance = 20
        db.add(
            CreditTransaction(
                client_id=seed.client.id,
                type=CreditType.MANUAL,
                amount=20,
                balance=20,
                status=CreditStatus.ACTIVE,
                expires_at=utcnow() + timedelta(days=30),
            )
        )
        db.commit()

        response = admin_client.post("/api/bookings", json=booking_payload(seed, credits_applied=20))

        assert response.status_code == 201, response.text
        assert response.json()["data"]["final_price"] == 80
        db.expire_all()
        assert seed.client.credit_balance == 0
        ledger = db.query(CreditTransaction).order_by(CreditTransaction.id).all()
        assert ledger[0].status == CreditStatus.USED
        assert ledger[0].remaining == 0
        assert ledger[1].type == CreditType.REDEEMED
        assert ledger[1].amount == -20

    def test_credits_above_balance_are_rejected(self, seed, admin_client):
        response = admin_client.post("/api/bookings", json=booking_payload(seed, credits_applied=5))
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Insufficient credit balance"}

    def test_minimum_booking_price(self, db, seed, admin_client):
        seed.company.minimum_booking_price = 150
        db.commit()
        response = admin_client.post("/api/bookings", json=booking_payload(seed))
        assert response.status_code == 400
        assert "Minimum booking price" in response.json()["error"]

    def test_unknown_address_is_404(self, seed, admin_client):
        response = admin_client.post("/api/bookings", json=booking_payload(seed, address_id=9999))
        assert response.status_code == 404

    def test_recurring_series_generates_children(self, db, seed, admin_client):
        start = tomorrow_at(9)
        response = admin_client.post(
            "/api/bookings",
            json=booking_payload(
                seed,
                scheduled_date=start.isoformat(),
                is_recurring=True,
                recurrence_frequency="WEEKLY",
                recurrence_end_date=(start + timedelta(days=21)).isoformat(),
            ),
        )

        assert response.status_code == 201, response.text
        parent_id = response.json()["data"]["id"]
        assert response.json()["generated_bookings"] == 3
        children = db.query(Booking).filter(Booking.recurrence_parent_id == parent_id).all()
        assert sorted(c.scheduled_date for c in children) == [
            start + timedelta(weeks=1),
            start + timedelta(weeks=2),
            start + timedelta(weeks=3),
        ]
        assert all(c.credits_applied == 0 for c in children)

    def test_recurring_series_listing(self, seed, admin_client):
        start = tomorrow_at(9)
        admin_client.post(
            "/api/bookings",
            json=booking_payload(
                seed,
                scheduled_date=start.isoformat(),
                is_recurring=True,
                recurrence_frequency="BIWEEKLY",
                recurrence_end_date=(start + timedelta(days=28)).isoformat(),
            ),
        )

        series = admin_client.get("/api/bookings/recurring").json()["data"]

        assert len(series) == 1
        assert series[0]["child_count"] == 2
        assert series[0]["next_occurrence"] == start.isoformat()

    def test_recurring_requires_frequency(self, seed, admin_client):
        response = admin_client.post("/api/bookings", json=booking_payload(seed, is_recurring=True))
        assert response.status_code == 422
        assert response.json()["error"] == "Validation failed"

    def test_overlapping_assignment_reports_conflicts(self, db, seed, admin_client):
        first = make_booking(db, seed.company, seed.client, seed.address, assigned_cleaner_id=seed.cleaner.id)
        response = admin_client.post(
            "/api/bookings",
            json=booking_payload(
                seed,
                scheduled_date=tomorrow_at(11).isoformat(),
                assigned_cleaner_id=seed.cleaner.id,
            ),
        )
        assert response.status_code == 201, response.text
        assert response.json()["conflicts"] == [first.id]
        assert response.json()["assignment"] == {"cleaner_id": seed.cleaner.id, "method": "MANUAL"}


class TestCalendar:
    def test_day_view_lists_overlapping_pairs(self, db, seed, admin_client):
        a = make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(10), duration=120)
        b = make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(11), duration=60)
        make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(12), duration=60)

        response = admin_client.get("/api/calendar", params={"date": tomorrow_at(0).date().isoformat()})

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert len(data["bookings"]) == 3
        assert data["conflicts"] == [{"booking_id": a.id, "overlaps": [b.id]}]

    def test_week_view_uses_sunday_start(self, db, seed, admin_client):
        make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(10))
        response = admin_client.get(
            "/api/calendar", params={"date": tomorrow_at(0).date().isoformat(), "view": "week"}
        )
        data = response.json()["data"]
        assert data["view"] == "week"
        assert len(data["bookings"]) == 1

    def test_bad_date_is_400(self, seed, admin_client):
        response = admin_client.get("/api/calendar", params={"date": "next tuesday"})
        assert response.status_code == 400

    def test_cleaners_cannot_open_the_calendar(self, seed, cleaner_client):
        response = cleaner_client.get("/api/calendar")
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Admin access required"}


class TestListAndUpdate:
    def test_cleaner_sees_own_and_unassigned_jobs_only(self, db, seed, cleaner_client):
        other = make_cleaner(db, seed.company, "riley@sparkle.test", first_name="Riley")
        db.commit()
        mine = make_booking(db, seed.company, seed.client, seed.address, assigned_cleaner_id=seed.cleaner.id)
        open_job = make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(14))
        make_booking(db, seed.company, seed.client, seed.address, tomorrow_at(16), assigned_cleaner_id=other.id)

        response = cleaner_client.get("/api/bookings")

        assert response.status_code == 200
        assert {b["id"] for b in response.json()["data"]} == {mine.id, open_job.id}
        assert response.json()["pagination"]["total"] == 2

    def test_update_recomputes_final_price(self, db, seed, admin_client):
        booking = make_booking(db, seed.company, seed.client, seed.address)
        response = admin_client.put(f"/api/bookings/{booking.id}", json={"tip_amount": 15})
        assert response.status_code == 200
        assert response.json()["data"]["final_price"] == 115

    def test_status_change_is_recorded(self, db, seed, admin_client):
        booking = make_booking(db, seed.company, seed.client, seed.address)
        response = admin_client.put(
            f"/api/bookings/{booking.id}", json={"status": "NO_SHOW", "status_notes": "Nobody home"}
        )
        history = response.json()["data"]["status_history"]
        assert history[-1]["status"] == "NO_SHOW"
        assert history[-1]["notes"] == "Nobody home"


class TestCancel:
    def test_cancel_then_cancel_again(self, db, seed, admin_client):
        booking = make_booking(db, seed.company, seed.client, seed.address)

        response = admin_client.delete(f"/api/bookings/{booking.id}", params={"reason": "Client sick"})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == BookingStatus.CANCELLED
        assert response.json()["data"]["cancellation_reason"] == "Client sick"

        again = admin_client.delete(f"/api/bookings/{booking.id}")
        assert again.status_code == 400
        assert again.json()["error"] == "Booking is already cancelled"

    def test_late_cancellation_fee(self, db, seed, admin_client):
        seed.company.cancellation_fee_percent = 50
        seed.company.cancellation_window_hours = 24
        db.commit()
        soon = (utcnow() + timedelta(hours=3)).replace(microsecond=0)
        booking = make_booking(db, seed.company, seed.client, seed.address, soon, price=120)

        response = admin_client.delete(
            f"/api/bookings/{booking.id}", params={"apply_cancellation_fee": "true"}
        )

        assert response.json()["cancellation_fee"] == 60

    def test_hard_delete_only_before_work_starts(self, db, seed, admin_client):
        untouched = make_booking(db, seed.company, seed.client, seed.address)
        started = make_booking(db, seed.company, seed.client, seed.address, clocked_in_at=utcnow())

        ok = admin_client.delete(f"/api/bookings/{untouched.id}", params={"hard_delete": "true"})
        refused = admin_client.delete(f"/api/bookings/{started.id}", params={"hard_delete": "true"})

        assert ok.json()["message"] == "Booking deleted"
        assert refused.status_code == 400
        db.expire_all()
        assert db.query(Booking).filter(Booking.id == untouched.id).first() is None

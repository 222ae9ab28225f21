"""Booking service - creation, pricing, updates and cancellation"""

import logging
import secrets
import string
from datetime import timedelta
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import and_, asc, desc, or_
from sqlalchemy.orm import Query, Session, joinedload

from ...auth import get_client_profile, get_team_member
from ...constants import (
    BookingStatus,
    CreditStatus,
    CreditType,
    MessageType,
    PaymentStatus,
    UserRole,
)
from ...models import Address, Booking, Client, Company, CreditTransaction, TeamMember, User
from ...services.notification_service import notify_staff_booking_update, send_booking_sms
from ...shared.dates import base36, epoch_millis, utcnow
from ...shared.pagination import paginate
from .assignment import find_best_cleaner
from .schemas import BookingCreate, BookingUpdate, CancelBookingRequest
from .time_utils import do_time_slots_overlap, generate_recurring_dates, slot_end

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "scheduled_date": Booking.scheduled_date,
    "created_at": Booking.created_at,
    "final_price": Booking.final_price,
    "status": Booking.status,
    "booking_number": Booking.booking_number,
}

# Timestamps that mean work has started; such bookings can never be hard-deleted
LIFECYCLE_FIELDS = ("on_my_way_at", "clocked_in_at", "clocked_out_at", "completed_at", "approved_at")

# Fields a PUT may explicitly null out
CLEARABLE_FIELDS = {"customer_notes", "internal_notes", "payment_method"}


def generate_booking_number() -> str:
    """BK-<base36 epoch ms>-<4 random chars>, e.g. BK-M1ZQ3K2A-X7QD"""
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(4))
    return f"BK-{base36(epoch_millis(utcnow())).upper()}-{suffix}"


def append_history(
    booking: Booking,
    status: str,
    user_id: Optional[int],
    action: Optional[str] = None,
    notes: Optional[str] = None,
) -> None:
    """Append a status_history entry. The JSON list is reassigned so the change is tracked."""
    entry = {"status": status, "timestamp": utcnow().isoformat(), "user_id": user_id}
    if action:
        entry["action"] = action
    if notes:
        entry["notes"] = notes
    booking.status_history = [*(booking.status_history or []), entry]


def calculate_pricing(
    base_price: float,
    addons: List[dict],
    discount_amount: float,
    tax_rate: float,
    credits_applied: float,
) -> dict:
    """
    subtotal = base + sum(addon price x quantity)
    tax is charged on the discounted subtotal; credits come off last.
    Neither the discounted subtotal nor the final price can go below zero.
    """
    addon_total = sum(a["price"] * a.get("quantity", 1) for a in addons)
    subtotal = round(base_price + addon_total, 2)
    after_discount = max(0.0, subtotal - discount_amount)
    tax_amount = round(after_discount * (tax_rate or 0) / 100, 2)
    final_price = round(max(0.0, after_discount + tax_amount - credits_applied), 2)
    return {
        "subtotal": subtotal,
        "discount_amount": round(discount_amount, 2),
        "tax_amount": tax_amount,
        "credits_applied": round(credits_applied, 2),
        "final_price": final_price,
    }


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookup and scoping
    # ------------------------------------------------------------------

    def _base_query(self) -> Query:
        return self.db.query(Booking).options(
            joinedload(Booking.client),
            joinedload(Booking.address),
            joinedload(Booking.assigned_cleaner).joinedload(TeamMember.user),
        )

    def scoped_query(self, user: User) -> Query:
        """Bookings the user may see: admins all, cleaners own + unassigned, clients own"""
        query = self._base_query().filter(Booking.company_id == user.company_id)
        if user.role == UserRole.CLEANER:
            member = get_team_member(self.db, user)
            query = query.filter(
                or_(Booking.assigned_cleaner_id == member.id, Booking.assigned_cleaner_id.is_(None))
            )
        elif user.role == UserRole.CLIENT:
            client = get_client_profile(self.db, user)
            query = query.filter(Booking.client_id == (client.id if client else -1))
        return query

    def get_booking(self, booking_id: int, user: User) -> Booking:
        booking = self.scoped_query(user).filter(Booking.id == booking_id).first()
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_company_booking(self, booking_id: int, company_id: int) -> Booking:
        booking = (
            self._base_query()
            .filter(Booking.id == booking_id, Booking.company_id == company_id)
            .first()
        )
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def list_bookings(
        self,
        user: User,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        statuses: Optional[str] = None,
        date_from=None,
        date_to=None,
        client_id: Optional[int] = None,
        cleaner_id: Optional[int] = None,
        service_type: Optional[str] = None,
        is_recurring: Optional[bool] = None,
        is_paid: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: str = "scheduled_date",
        sort_order: str = "asc",
    ) -> tuple[list, dict]:
        query = self.scoped_query(user)

        if status:
            query = query.filter(Booking.status == status)
        elif statuses:
            wanted = [s.strip() for s in statuses.split(",") if s.strip()]
            query = query.filter(Booking.status.in_(wanted))
        if date_from:
            query = query.filter(Booking.scheduled_date >= date_from)
        if date_to:
            query = query.filter(Booking.scheduled_date <= date_to)
        if client_id:
            query = query.filter(Booking.client_id == client_id)
        if cleaner_id:
            query = query.filter(Booking.assigned_cleaner_id == cleaner_id)
        if service_type:
            query = query.filter(Booking.service_type == service_type)
        if is_recurring is not None:
            query = query.filter(Booking.is_recurring.is_(is_recurring))
        if is_paid is not None:
            query = query.filter(Booking.is_paid.is_(is_paid))
        if search:
            term = f"%{search.strip()}%"
            query = (
                query.join(Client, Booking.client_id == Client.id)
                .join(Address, Booking.address_id == Address.id)
                .filter(
                    or_(
                        Booking.booking_number.ilike(term),
                        Client.first_name.ilike(term),
                        Client.last_name.ilike(term),
                        Address.street.ilike(term),
                    )
                )
            )

        column = SORTABLE_FIELDS.get(sort_by, Booking.scheduled_date)
        query = query.order_by(desc(column) if sort_order == "desc" else asc(column), Booking.id)
        return paginate(query, page, limit)

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    def find_cleaner_conflicts(
        self,
        company_id: int,
        cleaner_id: int,
        start,
        duration: int,
        exclude_ids: Optional[List[int]] = None,
    ) -> List[Booking]:
        """Non-cancelled bookings of the cleaner overlapping [start, start + duration)"""
        window_start = start - timedelta(days=1)
        window_end = slot_end(start, duration)
        candidates = (
            self.db.query(Booking)
            .filter(
                Booking.company_id == company_id,
                Booking.assigned_cleaner_id == cleaner_id,
                Booking.status != BookingStatus.CANCELLED,
                Booking.scheduled_date >= window_start,
                Booking.scheduled_date < window_end,
            )
            .all()
        )
        exclude = set(exclude_ids or [])
        return [
            b
            for b in candidates
            if b.id not in exclude
            and do_time_slots_overlap(start, duration, b.scheduled_date, b.duration)
        ]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _get_active_cleaner(self, company_id: int, cleaner_id: int) -> TeamMember:
        cleaner = (
            self.db.query(TeamMember)
            .filter(
                TeamMember.id == cleaner_id,
                TeamMember.company_id == company_id,
                TeamMember.is_active.is_(True),
            )
            .first()
        )
        if not cleaner:
            raise HTTPException(status_code=400, detail="Cleaner not found or inactive")
        return cleaner

    def _redeem_credits(self, client: Client, amount: float, booking: Booking) -> None:
        """Debit client credits, consuming the soonest-expiring grants first"""
        new_balance = round(client.credit_balance - amount, 2)
        client.credit_balance = new_balance
        self.db.add(
            CreditTransaction(
                client_id=client.id,
                type=CreditType.REDEEMED,
                amount=-amount,
                balance=new_balance,
                description=f"Applied to booking {booking.booking_number}",
                status=CreditStatus.USED,
                reference_id=booking.id,
            )
        )

        to_redeem = amount
        grants = (
            self.db.query(CreditTransaction)
            .filter(
                CreditTransaction.client_id == client.id,
                CreditTransaction.status == CreditStatus.ACTIVE,
                CreditTransaction.remaining > 0,
            )
            .order_by(CreditTransaction.expires_at.is_(None), CreditTransaction.expires_at, CreditTransaction.id)
            .all()
        )
        for grant in grants:
            if to_redeem <= 0:
                break
            taken = min(to_redeem, grant.remaining)
            grant.remaining = round(grant.remaining - taken, 2)
            if grant.remaining <= 0:
                grant.status = CreditStatus.USED
            to_redeem = round(to_redeem - taken, 2)

    async def create_booking(self, data: BookingCreate, user: User) -> dict:
        company = self.db.query(Company).filter(Company.id == user.company_id).first()

        client = (
            self.db.query(Client)
            .filter(Client.id == data.client_id, Client.company_id == user.company_id)
            .first()
        )
        address = None
        if client:
            address = (
                self.db.query(Address)
                .filter(Address.id == data.address_id, Address.client_id == client.id)
                .first()
            )
        if not client or not address:
            raise HTTPException(status_code=404, detail="Client or address not found")

        addons = [a.model_dump() for a in data.addons]
        pricing = calculate_pricing(
            base_price=data.base_price,
            addons=addons,
            discount_amount=data.discount_amount,
            tax_rate=company.tax_rate or 0,
            credits_applied=data.credits_applied,
        )

        if company.minimum_booking_price and pricing["final_price"] < company.minimum_booking_price:
            raise HTTPException(
                status_code=400,
                detail=f"Minimum booking price is ${company.minimum_booking_price:.2f}",
            )

        if data.credits_applied > 0 and data.credits_applied > (client.credit_balance or 0) + 1e-9:
            raise HTTPException(status_code=400, detail="Insufficient credit balance")

        deposit_amount = None
        if company.require_deposit:
            deposit_amount = round(pricing["final_price"] * (company.deposit_percent or 25) / 100, 2)

        assigned_cleaner_id = None
        assignment_method = None
        if data.assigned_cleaner_id:
            assigned_cleaner_id = self._get_active_cleaner(user.company_id, data.assigned_cleaner_id).id
            assignment_method = "MANUAL"
        elif data.auto_assign:
            best = find_best_cleaner(
                self.db,
                company_id=user.company_id,
                start=data.scheduled_date,
                duration=data.duration,
                preferred_cleaner_id=client.preferred_cleaner_id,
            )
            if best:
                assigned_cleaner_id = best.id
                assignment_method = "AUTO"
            else:
                logger.info(f"ℹ️ No free cleaner to auto-assign for client {client.id}")

        now = utcnow()
        booking = Booking(
            company_id=user.company_id,
            booking_number=generate_booking_number(),
            client_id=client.id,
            address_id=address.id,
            service_type=data.service_type,
            scheduled_date=data.scheduled_date,
            scheduled_end_date=slot_end(data.scheduled_date, data.duration),
            duration=data.duration,
            status=BookingStatus.SCHEDULED,
            status_history=[],
            base_price=data.base_price,
            addons=addons,
            deposit_amount=deposit_amount,
            payment_method=data.payment_method,
            payment_status=PaymentStatus.PENDING,
            customer_notes=data.customer_notes,
            internal_notes=data.internal_notes,
            is_recurring=data.is_recurring,
            recurrence_frequency=data.recurrence_frequency if data.is_recurring else None,
            recurrence_end_date=data.recurrence_end_date if data.is_recurring else None,
            assigned_cleaner_id=assigned_cleaner_id,
            assignment_method=assignment_method,
            assigned_at=now if assigned_cleaner_id else None,
            **pricing,
        )
        append_history(booking, BookingStatus.SCHEDULED, user.id, action="CREATED")
        self.db.add(booking)
        self.db.flush()

        if data.credits_applied > 0:
            self._redeem_credits(client, pricing["credits_applied"], booking)

        conflicts = []
        if assigned_cleaner_id:
            conflicts = [
                b.id
                for b in self.find_cleaner_conflicts(
                    user.company_id,
                    assigned_cleaner_id,
                    booking.scheduled_date,
                    booking.duration,
                    exclude_ids=[booking.id],
                )
            ]

        children = []
        if data.is_recurring:
            end_date = data.recurrence_end_date or data.scheduled_date + timedelta(days=365)
            dates = generate_recurring_dates(data.scheduled_date, data.recurrence_frequency, end_date)
            children = self.create_occurrences(booking, dates, user.id)

        self.db.commit()
        self.db.refresh(booking)

        logger.info(
            f"✅ Booking {booking.booking_number} created for client {client.id}"
            f" ({len(children)} recurring instances)"
        )

        sms_sent, sms_error = await send_booking_sms(
            self.db, booking, MessageType.CONFIRMATION, user_id=user.id
        )
        await notify_staff_booking_update(self.db, booking, "New booking scheduled")

        message = f"Booking {booking.booking_number} created successfully"
        if children:
            message += f" with {len(children)} recurring instances"
        if assignment_method == "AUTO":
            message += " (cleaner auto-assigned)"

        return {
            "booking": booking,
            "generated_bookings": len(children),
            "conflicts": conflicts,
            "assignment": (
                {"cleaner_id": assigned_cleaner_id, "method": assignment_method}
                if assigned_cleaner_id
                else None
            ),
            "sms_sent": sms_sent,
            "sms_error": sms_error,
            "message": message,
        }

    def create_occurrences(self, parent: Booking, dates: list, user_id: Optional[int]) -> List[Booking]:
        """
        Child bookings of a recurring parent. They copy the parent's pricing
        without credits, which only apply to the first visit.
        """
        children = []
        final_price = round(parent.subtotal - parent.discount_amount + parent.tax_amount, 2)
        for date in dates:
            child = Booking(
                company_id=parent.company_id,
                booking_number=generate_booking_number(),
                client_id=parent.client_id,
                address_id=parent.address_id,
                service_type=parent.service_type,
                scheduled_date=date,
                scheduled_end_date=slot_end(date, parent.duration),
                duration=parent.duration,
                status=BookingStatus.SCHEDULED,
                status_history=[],
                base_price=parent.base_price,
                addons=list(parent.addons or []),
                subtotal=parent.subtotal,
                discount_amount=parent.discount_amount,
                tax_amount=parent.tax_amount,
                credits_applied=0,
                final_price=final_price,
                deposit_amount=parent.deposit_amount,
                payment_status=PaymentStatus.PENDING,
                customer_notes=parent.customer_notes,
                internal_notes=parent.internal_notes,
                is_recurring=True,
                recurrence_frequency=parent.recurrence_frequency,
                recurrence_parent_id=parent.id,
            )
            append_history(child, BookingStatus.SCHEDULED, user_id, action="GENERATED")
            self.db.add(child)
            children.append(child)
        return children

    # ------------------------------------------------------------------
    # Update / cancel
    # ------------------------------------------------------------------

    def update_booking(self, booking_id: int, data: BookingUpdate, user: User) -> Booking:
        booking = self.get_company_booking(booking_id, user.company_id)
        updates = data.model_dump(exclude_unset=True)
        status_notes = updates.pop("status_notes", None)

        if "address_id" in updates:
            address = (
                self.db.query(Address)
                .filter(Address.id == updates["address_id"], Address.client_id == booking.client_id)
                .first()
            )
            if not address:
                raise HTTPException(status_code=404, detail="Address not found")

        if "assigned_cleaner_id" in updates:
            cleaner_id = updates.pop("assigned_cleaner_id")
            if cleaner_id != booking.assigned_cleaner_id:
                if cleaner_id is not None:
                    self._get_active_cleaner(user.company_id, cleaner_id)
                booking.assigned_cleaner_id = cleaner_id
                booking.assignment_method = "MANUAL" if cleaner_id else None
                booking.assigned_at = utcnow() if cleaner_id else None

        new_status = updates.pop("status", None)

        price_fields = {"base_price", "discount_amount", "tax_amount", "tip_amount", "credits_applied"}
        for key, value in updates.items():
            if value is None and key not in CLEARABLE_FIELDS:
                continue
            setattr(booking, key, value)

        if "scheduled_date" in updates or "duration" in updates:
            booking.scheduled_end_date = slot_end(booking.scheduled_date, booking.duration)

        if price_fields & updates.keys():
            booking.final_price = round(
                (booking.base_price or 0)
                - (booking.discount_amount or 0)
                + (booking.tax_amount or 0)
                + (booking.tip_amount or 0)
                - (booking.credits_applied or 0),
                2,
            )

        if "is_paid" in updates:
            booking.paid_at = utcnow() if booking.is_paid else None
            booking.payment_status = PaymentStatus.PAID if booking.is_paid else PaymentStatus.PENDING

        if new_status and new_status != booking.status:
            logger.info(f"🔄 Booking {booking.booking_number}: {booking.status} → {new_status}")
            booking.status = new_status
            if new_status == BookingStatus.CANCELLED:
                booking.cancelled_at = utcnow()
                booking.cancelled_by_id = user.id
            append_history(booking, new_status, user.id, action="STATUS_CHANGED", notes=status_notes)

        self.db.commit()
        self.db.refresh(booking)
        return booking

    def cancel_booking(self, booking_id: int, data: CancelBookingRequest, user: User) -> dict:
        booking = self.get_company_booking(booking_id, user.company_id)

        if data.hard_delete:
            started = any(getattr(booking, field) for field in LIFECYCLE_FIELDS)
            if booking.status != BookingStatus.SCHEDULED or started:
                raise HTTPException(
                    status_code=400,
                    detail="Only scheduled bookings that have not started can be deleted",
                )
            number = booking.booking_number
            self.db.query(Booking).filter(Booking.recurrence_parent_id == booking.id).update(
                {Booking.recurrence_parent_id: None}, synchronize_session=False
            )
            self.db.delete(booking)
            self.db.commit()
            logger.info(f"🗑️ Booking {number} deleted by user {user.id}")
            return {"deleted": True, "booking": None, "cancellation_fee": None}

        if booking.status in BookingStatus.CLOSED:
            raise HTTPException(status_code=400, detail=f"Booking is already {booking.status.lower()}")

        company = booking.company
        now = utcnow()
        fee = None
        window = timedelta(hours=company.cancellation_window_hours or 0)
        if (
            data.apply_cancellation_fee
            and company.cancellation_fee_percent
            and booking.scheduled_date - now < window
        ):
            fee = round(booking.final_price * company.cancellation_fee_percent / 100, 2)

        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = now
        booking.cancelled_by_id = user.id
        booking.cancellation_reason = data.reason
        booking.cancellation_fee = fee
        append_history(booking, BookingStatus.CANCELLED, user.id, action="CANCELLED", notes=data.reason)
        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"🚫 Booking {booking.booking_number} cancelled (fee={fee})")
        return {"deleted": False, "booking": booking, "cancellation_fee": fee}

    # ------------------------------------------------------------------
    # Recurring series
    # ------------------------------------------------------------------

    def list_recurring(self, user: User) -> List[dict]:
        parents = (
            self._base_query()
            .filter(
                Booking.company_id == user.company_id,
                Booking.is_recurring.is_(True),
                Booking.recurrence_parent_id.is_(None),
            )
            .order_by(Booking.scheduled_date)
            .all()
        )
        now = utcnow()
        result = []
        for parent in parents:
            children = self.db.query(Booking).filter(Booking.recurrence_parent_id == parent.id)
            next_occurrence = (
                self.db.query(Booking)
                .filter(
                    or_(Booking.id == parent.id, Booking.recurrence_parent_id == parent.id),
                    and_(Booking.scheduled_date >= now, Booking.status == BookingStatus.SCHEDULED),
                )
                .order_by(Booking.scheduled_date)
                .first()
            )
            result.append(
                {
                    "booking": parent,
                    "child_count": children.count(),
                    "next_occurrence": next_occurrence.scheduled_date if next_occurrence else None,
                }
            )
        return result

"""Client repository - Database operations for clients"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Query, Session

from ...constants import BookingStatus
from ...models import Address, Booking, Client, CreditTransaction


class ClientRepository:
    """Repository for client database operations"""

    @staticmethod
    def search_query(db: Session, company_id: int, search: Optional[str] = None, tag: Optional[str] = None) -> Query:
        query = db.query(Client).filter(Client.company_id == company_id)
        if search:
            term = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Client.first_name.ilike(term),
                    Client.last_name.ilike(term),
                    Client.email.ilike(term),
                    Client.phone.ilike(term),
                )
            )
        if tag:
            # JSON list column; match the quoted tag inside its text form
            query = query.filter(cast(Client.tags, String).ilike(f'%"{tag}"%'))
        return query.order_by(Client.created_at.desc(), Client.id.desc())

    @staticmethod
    def get_client_by_id(db: Session, client_id: int, company_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id, Client.company_id == company_id).first()

    @staticmethod
    def get_address(db: Session, client_id: int, address_id: int) -> Optional[Address]:
        return db.query(Address).filter(Address.id == address_id, Address.client_id == client_id).first()

    @staticmethod
    def clear_primary(db: Session, client_id: int, keep_id: Optional[int] = None) -> None:
        query = db.query(Address).filter(Address.client_id == client_id, Address.is_primary.is_(True))
        if keep_id:
            query = query.filter(Address.id != keep_id)
        for address in query.all():
            address.is_primary = False

    @staticmethod
    def recent_bookings(db: Session, client_id: int, limit: int = 10) -> list[Booking]:
        return (
            db.query(Booking)
            .filter(Booking.client_id == client_id)
            .order_by(Booking.scheduled_date.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def count_future_bookings(db: Session, client_id: int, now: datetime) -> int:
        return (
            db.query(Booking)
            .filter(
                Booking.client_id == client_id,
                Booking.scheduled_date >= now,
                Booking.status != BookingStatus.CANCELLED,
            )
            .count()
        )

    @staticmethod
    def address_in_use(db: Session, address_id: int) -> bool:
        return db.query(Booking.id).filter(Booking.address_id == address_id).first() is not None

    @staticmethod
    def credit_history(db: Session, client_id: int) -> list[CreditTransaction]:
        return (
            db.query(CreditTransaction)
            .filter(CreditTransaction.client_id == client_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .all()
        )

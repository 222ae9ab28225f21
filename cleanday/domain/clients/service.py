"""Client service - Business logic for client operations"""

import csv
import logging
from datetime import timedelta
from io import StringIO
from typing import Optional

from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...constants import CreditStatus, CreditType
from ...models import Address, Client, Company, CreditTransaction, TeamMember, User
from ...shared.dates import utcnow
from ...shared.pagination import paginate
from .repository import ClientRepository
from .schemas import AddressCreate, AddressUpdate, ClientCreate, ClientUpdate, CreditCreate

logger = logging.getLogger(__name__)


class ClientService:
    """Service layer for client business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClientRepository()

    def list_clients(
        self, user: User, page: int = 1, limit: int = 20, search: Optional[str] = None, tag: Optional[str] = None
    ) -> tuple[list[Client], dict]:
        query = self.repo.search_query(self.db, user.company_id, search, tag)
        return paginate(query, page, limit)

    def get_client(self, client_id: int, user: User) -> Client:
        """Get a client of the caller's company"""
        client = self.repo.get_client_by_id(self.db, client_id, user.company_id)
        if not client:
            raise HTTPException(status_code=404, detail="Client not found")
        return client

    def get_client_detail(self, client_id: int, user: User) -> dict:
        client = self.get_client(client_id, user)
        return {
            "client": client,
            "addresses": client.addresses,
            "recent_bookings": self.repo.recent_bookings(self.db, client.id),
        }

    def _check_preferred_cleaner(self, company_id: int, cleaner_id: Optional[int]) -> None:
        if not cleaner_id:
            return
        exists = (
            self.db.query(TeamMember.id)
            .filter(TeamMember.id == cleaner_id, TeamMember.company_id == company_id)
            .first()
        )
        if not exists:
            raise HTTPException(status_code=400, detail="Preferred cleaner not found")

    def create_client(self, data: ClientCreate, user: User) -> Client:
        """Create a client, optionally with its first address"""
        logger.info(f"📥 Creating client for company_id: {user.company_id}")
        self._check_preferred_cleaner(user.company_id, data.preferred_cleaner_id)

        client = Client(
            company_id=user.company_id,
            **data.model_dump(exclude={"address"}),
        )
        self.db.add(client)
        self.db.flush()

        if data.address:
            # The first address is always the primary one
            self.db.add(Address(client_id=client.id, **{**data.address.model_dump(), "is_primary": True}))

        self.db.commit()
        self.db.refresh(client)
        logger.info(f"✅ Client {client.id} created")
        return client

    def update_client(self, client_id: int, data: ClientUpdate, user: User) -> Client:
        client = self.get_client(client_id, user)
        updates = data.model_dump(exclude_unset=True)
        if "preferred_cleaner_id" in updates:
            self._check_preferred_cleaner(user.company_id, updates["preferred_cleaner_id"])
        if "first_name" in updates and not updates["first_name"]:
            raise HTTPException(status_code=400, detail="first_name cannot be empty")

        for key, value in updates.items():
            setattr(client, key, value)

        self.db.commit()
        self.db.refresh(client)
        return client

    def delete_client(self, client_id: int, user: User) -> None:
        client = self.get_client(client_id, user)

        upcoming = self.repo.count_future_bookings(self.db, client.id, utcnow())
        if upcoming:
            raise HTTPException(
                status_code=409,
                detail=f"Client has {upcoming} upcoming booking(s). Cancel them before deleting.",
            )

        # Past bookings keep the row referenced; only an unused client is removed
        if client.bookings:
            raise HTTPException(status_code=409, detail="Client has booking history and cannot be deleted")

        self.db.delete(client)
        self.db.commit()
        logger.info(f"🗑️ Client {client_id} deleted by user {user.id}")

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    def add_address(self, client_id: int, data: AddressCreate, user: User) -> Address:
        client = self.get_client(client_id, user)
        values = data.model_dump()
        if not client.addresses:
            values["is_primary"] = True

        address = Address(client_id=client.id, **values)
        self.db.add(address)
        self.db.flush()
        if address.is_primary:
            self.repo.clear_primary(self.db, client.id, keep_id=address.id)

        self.db.commit()
        self.db.refresh(address)
        return address

    def update_address(self, client_id: int, address_id: int, data: AddressUpdate, user: User) -> Address:
        client = self.get_client(client_id, user)
        address = self.repo.get_address(self.db, client.id, address_id)
        if not address:
            raise HTTPException(status_code=404, detail="Address not found")

        for key, value in data.model_dump(exclude_unset=True).items():
            if value is None and key in ("street", "city", "state", "zip", "is_primary", "has_pets"):
                continue
            setattr(address, key, value)

        if address.is_primary:
            self.repo.clear_primary(self.db, client.id, keep_id=address.id)

        self.db.commit()
        self.db.refresh(address)
        return address

    def delete_address(self, client_id: int, address_id: int, user: User) -> None:
        client = self.get_client(client_id, user)
        address = self.repo.get_address(self.db, client.id, address_id)
        if not address:
            raise HTTPException(status_code=404, detail="Address not found")
        if self.repo.address_in_use(self.db, address.id):
            raise HTTPException(status_code=409, detail="Address is used by bookings and cannot be deleted")

        was_primary = address.is_primary
        self.db.delete(address)
        self.db.flush()

        if was_primary:
            remaining = self.db.query(Address).filter(Address.client_id == client.id).order_by(Address.id).first()
            if remaining:
                remaining.is_primary = True

        self.db.commit()

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    def list_credits(self, client_id: int, user: User) -> dict:
        client = self.get_client(client_id, user)
        return {"balance": client.credit_balance, "transactions": self.repo.credit_history(self.db, client.id)}

    def add_credit(self, client_id: int, data: CreditCreate, user: User) -> CreditTransaction:
        """Grant a manual credit; it expires after the company's credit window unless overridden"""
        client = self.get_client(client_id, user)
        company = self.db.query(Company).filter(Company.id == user.company_id).first()

        days = data.expires_in_days or company.credit_expiry_days
        client.credit_balance = round((client.credit_balance or 0) + data.amount, 2)
        grant = CreditTransaction(
            client_id=client.id,
            type=CreditType.MANUAL,
            amount=data.amount,
            balance=client.credit_balance,
            remaining=data.amount,
            description=data.description or "Manual credit",
            status=CreditStatus.ACTIVE,
            expires_at=utcnow() + timedelta(days=days) if days else None,
        )
        self.db.add(grant)
        self.db.commit()
        self.db.refresh(grant)
        logger.info(f"💳 Added ${data.amount:.2f} credit to client {client.id}")
        return grant

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_clients_csv(self, user: User, search: Optional[str] = None, tag: Optional[str] = None) -> StreamingResponse:
        """Export clients as CSV"""
        logger.info(f"📊 CSV Export requested by user {user.id} ({user.email})")
        clients = self.repo.search_query(self.db, user.company_id, search, tag).all()

        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(
            [
                "ID",
                "First Name",
                "Last Name",
                "Email",
                "Phone",
                "Tags",
                "Source",
                "Total Bookings",
                "Total Spent",
                "Credit Balance",
                "Last Booking",
                "Marketing Opt Out",
                "Created At",
            ]
        )
        for client in clients:
            writer.writerow(
                [
                    client.id,
                    client.first_name,
                    client.last_name or "",
                    client.email or "",
                    client.phone or "",
                    ";".join(client.tags or []),
                    client.source or "",
                    client.total_bookings,
                    f"{client.total_spent:.2f}",
                    f"{client.credit_balance:.2f}",
                    client.last_booking_date.strftime("%Y-%m-%d") if client.last_booking_date else "",
                    "yes" if client.marketing_opt_out else "no",
                    client.created_at.strftime("%Y-%m-%d %H:%M:%S") if client.created_at else "",
                ]
            )

        output.seek(0)
        filename = f"clients_export_{utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
        logger.info(f"✅ CSV export successful: {filename} ({len(clients)} clients)")

        return StreamingResponse(
            iter([output.getvalue()]),
            media_type="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename={filename}",
                "Cache-Control": "no-cache",
            },
        )

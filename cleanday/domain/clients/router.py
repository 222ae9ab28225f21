"""Client router - FastAPI endpoints for client operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from ..scheduling.schemas import BookingResponse
from .schemas import (
    AddressCreate,
    AddressResponse,
    AddressUpdate,
    ClientCreate,
    ClientResponse,
    ClientUpdate,
    CreditCreate,
    CreditTransactionResponse,
)
from .service import ClientService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["Clients"])


def get_client_service(db: Session = Depends(get_db)) -> ClientService:
    """Dependency injection for ClientService"""
    return ClientService(db)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("")
async def list_clients(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    clients, pagination = service.list_clients(current_user, page, limit, search, tag)
    return {
        "success": True,
        "data": [ClientResponse.model_validate(c) for c in clients],
        "pagination": pagination,
    }


@router.get("/export")
async def export_clients_csv(
    search: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    """Export clients as CSV with optional filters"""
    return service.export_clients_csv(current_user, search, tag)


@router.post("", status_code=201)
async def create_client(
    data: ClientCreate,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    client = service.create_client(data, current_user)
    return {
        "success": True,
        "data": {
            **ClientResponse.model_validate(client).model_dump(),
            "addresses": [AddressResponse.model_validate(a) for a in client.addresses],
        },
    }


@router.get("/{client_id}")
async def get_client(
    client_id: int,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    """Client with addresses and the latest bookings"""
    detail = service.get_client_detail(client_id, current_user)
    return {
        "success": True,
        "data": {
            **ClientResponse.model_validate(detail["client"]).model_dump(),
            "addresses": [AddressResponse.model_validate(a) for a in detail["addresses"]],
            "recent_bookings": [BookingResponse.model_validate(b) for b in detail["recent_bookings"]],
        },
    }


@router.patch("/{client_id}")
async def update_client(
    client_id: int,
    data: ClientUpdate,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    client = service.update_client(client_id, data, current_user)
    return {"success": True, "data": ClientResponse.model_validate(client)}


@router.delete("/{client_id}")
async def delete_client(
    client_id: int,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    service.delete_client(client_id, current_user)
    return {"success": True, "data": None, "message": "Client deleted"}


# ============================================================================
# ADDRESSES
# ============================================================================


@router.post("/{client_id}/addresses", status_code=201)
async def add_address(
    client_id: int,
    data: AddressCreate,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    address = service.add_address(client_id, data, current_user)
    return {"success": True, "data": AddressResponse.model_validate(address)}


@router.patch("/{client_id}/addresses/{address_id}")
async def update_address(
    client_id: int,
    address_id: int,
    data: AddressUpdate,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    address = service.update_address(client_id, address_id, data, current_user)
    return {"success": True, "data": AddressResponse.model_validate(address)}


@router.delete("/{client_id}/addresses/{address_id}")
async def delete_address(
    client_id: int,
    address_id: int,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    service.delete_address(client_id, address_id, current_user)
    return {"success": True, "data": None, "message": "Address deleted"}


# ============================================================================
# CREDITS
# ============================================================================


@router.get("/{client_id}/credits")
async def list_credits(
    client_id: int,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    result = service.list_credits(client_id, current_user)
    return {
        "success": True,
        "data": {
            "balance": result["balance"],
            "transactions": [CreditTransactionResponse.model_validate(t) for t in result["transactions"]],
        },
    }


@router.post("/{client_id}/credits", status_code=201)
async def add_credit(
    client_id: int,
    data: CreditCreate,
    current_user: User = Depends(require_admin),
    service: ClientService = Depends(get_client_service),
):
    grant = service.add_credit(client_id, data, current_user)
    return {
        "success": True,
        "data": CreditTransactionResponse.model_validate(grant),
        "message": f"Added ${data.amount:.2f} in credits",
    }

"""Marketing router - campaigns and prospects"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...models import User
from .schemas import (
    CampaignCreate,
    CampaignResponse,
    CampaignUpdate,
    ProspectCreate,
    ProspectResponse,
    ProspectUpdate,
)
from .service import CampaignService, ProspectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/marketing/campaigns", tags=["Marketing"])
prospects_router = APIRouter(prefix="/api", tags=["Marketing"])


def get_campaign_service(db: Session = Depends(get_db)) -> CampaignService:
    return CampaignService(db)


def get_prospect_service(db: Session = Depends(get_db)) -> ProspectService:
    return ProspectService(db)


# ============================================================================
# CAMPAIGNS
# ============================================================================


@router.get("")
async def list_campaigns(
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    campaigns = service.list_campaigns(current_user, status)
    return {"success": True, "data": [CampaignResponse.model_validate(c) for c in campaigns]}


@router.post("", status_code=201)
async def create_campaign(
    data: CampaignCreate,
    current_user: User = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    campaign = service.create_campaign(data, current_user)
    return {"success": True, "data": CampaignResponse.model_validate(campaign)}


@router.get("/{campaign_id}")
async def get_campaign(
    campaign_id: int,
    current_user: User = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    return {"success": True, "data": CampaignResponse.model_validate(service.get_campaign(campaign_id, current_user))}


@router.patch("/{campaign_id}")
async def update_campaign(
    campaign_id: int,
    data: CampaignUpdate,
    current_user: User = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    campaign = service.update_campaign(campaign_id, data, current_user)
    return {"success": True, "data": CampaignResponse.model_validate(campaign)}


@router.delete("/{campaign_id}")
async def delete_campaign(
    campaign_id: int,
    current_user: User = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    service.delete_campaign(campaign_id, current_user)
    return {"success": True, "data": None, "message": "Campaign deleted"}


@router.get("/{campaign_id}/preview-recipients")
async def preview_recipients(
    campaign_id: int,
    current_user: User = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    """Who the campaign would reach right now"""
    return {"success": True, "data": service.preview_recipients(campaign_id, current_user)}


@router.post("/{campaign_id}/send")
async def send_campaign(
    campaign_id: int,
    current_user: User = Depends(require_admin),
    service: CampaignService = Depends(get_campaign_service),
):
    campaign = await service.send_campaign(campaign_id, current_user)
    return {
        "success": True,
        "data": CampaignResponse.model_validate(campaign),
        "message": f"Campaign sent to {campaign.sent_count} of {campaign.recipient_count} recipient(s)",
    }


# ============================================================================
# PROSPECTS
# ============================================================================


@prospects_router.post("/public/prospects", status_code=201)
async def create_prospect(data: ProspectCreate, service: ProspectService = Depends(get_prospect_service)):
    """Public lead capture, no authentication"""
    prospect = service.create_prospect(data)
    return {"success": True, "data": {"id": prospect.id}, "message": "Thanks! We'll be in touch soon."}


@prospects_router.get("/prospects")
async def list_prospects(
    status: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    service: ProspectService = Depends(get_prospect_service),
):
    prospects = service.list_prospects(current_user, status)
    return {"success": True, "data": [ProspectResponse.model_validate(p) for p in prospects]}


@prospects_router.patch("/prospects/{prospect_id}")
async def update_prospect(
    prospect_id: int,
    data: ProspectUpdate,
    current_user: User = Depends(require_admin),
    service: ProspectService = Depends(get_prospect_service),
):
    prospect = service.update_prospect(prospect_id, data, current_user)
    return {"success": True, "data": ProspectResponse.model_validate(prospect)}

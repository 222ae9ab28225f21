"""
Campaign service

Segments a company's clients and sends a personalised SMS and/or e-mail
to each one. Every attempt lands in the message log through the SMS and
e-mail helpers.
"""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...constants import BookingStatus, CampaignStatus, MessageChannel, MessageType, ProspectStatus
from ...email_service import send_campaign_email
from ...models import Booking, Client, Company, User
from ...models_messaging import Campaign, Prospect
from ...services.notification_service import fill_template
from ...services.twilio_service import send_sms
from ...shared.dates import utcnow
from .schemas import CampaignCreate, CampaignUpdate, ProspectCreate, ProspectUpdate

logger = logging.getLogger(__name__)

EMAIL_CHANNELS = (MessageChannel.EMAIL, MessageChannel.BOTH)
SMS_CHANNELS = (MessageChannel.SMS, MessageChannel.BOTH)


def can_receive(client: Client, channel: str) -> bool:
    if channel == MessageChannel.SMS:
        return bool(client.phone)
    if channel == MessageChannel.EMAIL:
        return bool(client.email)
    return bool(client.phone or client.email)


def personalize(text: str, client: Client, company: Company) -> str:
    return fill_template(text, {"first_name": client.first_name, "company_name": company.name})


class CampaignService:
    """Service layer for marketing campaigns"""

    def __init__(self, db: Session):
        self.db = db

    def list_campaigns(self, user: User, status: Optional[str] = None) -> list[Campaign]:
        query = self.db.query(Campaign).filter(Campaign.company_id == user.company_id)
        if status:
            query = query.filter(Campaign.status == status.upper())
        return query.order_by(Campaign.created_at.desc(), Campaign.id.desc()).all()

    def get_campaign(self, campaign_id: int, user: User) -> Campaign:
        campaign = (
            self.db.query(Campaign)
            .filter(Campaign.id == campaign_id, Campaign.company_id == user.company_id)
            .first()
        )
        if not campaign:
            raise HTTPException(status_code=404, detail="Campaign not found")
        return campaign

    @staticmethod
    def _check_subject(channel: str, subject: Optional[str]) -> None:
        if channel in EMAIL_CHANNELS and not (subject or "").strip():
            raise HTTPException(status_code=400, detail="Subject is required for email campaigns")

    def create_campaign(self, data: CampaignCreate, user: User) -> Campaign:
        self._check_subject(data.channel, data.subject)
        campaign = Campaign(
            company_id=user.company_id,
            user_id=user.id,
            name=data.name,
            channel=data.channel,
            subject=data.subject,
            body=data.body,
            segment_filter=data.segment_filter.model_dump() if data.segment_filter else None,
            status=CampaignStatus.SCHEDULED if data.scheduled_for else CampaignStatus.DRAFT,
            scheduled_for=data.scheduled_for,
        )
        self.db.add(campaign)
        self.db.commit()
        self.db.refresh(campaign)
        logger.info(f"📣 Campaign {campaign.id} created ({campaign.channel})")
        return campaign

    def _require_draft(self, campaign: Campaign, action: str) -> None:
        if campaign.status != CampaignStatus.DRAFT:
            raise HTTPException(status_code=400, detail=f"Only draft campaigns can be {action}")

    def update_campaign(self, campaign_id: int, data: CampaignUpdate, user: User) -> Campaign:
        campaign = self.get_campaign(campaign_id, user)
        self._require_draft(campaign, "edited")

        updates = data.model_dump(exclude_unset=True)
        if "segment_filter" in updates:
            updates["segment_filter"] = data.segment_filter.model_dump() if data.segment_filter else None
        self._check_subject(updates.get("channel", campaign.channel), updates.get("subject", campaign.subject))
        for key, value in updates.items():
            if value is None and key in ("name", "channel", "body"):
                continue
            setattr(campaign, key, value)

        self.db.commit()
        self.db.refresh(campaign)
        return campaign

    def delete_campaign(self, campaign_id: int, user: User) -> None:
        campaign = self.get_campaign(campaign_id, user)
        self._require_draft(campaign, "deleted")
        self.db.delete(campaign)
        self.db.commit()

    # ------------------------------------------------------------------
    # Segmentation
    # ------------------------------------------------------------------

    def _segment(self, campaign: Campaign) -> tuple[list[Client], int]:
        """(recipients, opted_out_count) for the campaign's filter and channel"""
        segment = campaign.segment_filter or {}
        tags = set(segment.get("tags") or [])
        no_booking_days = segment.get("no_booking_days")

        clients = self.db.query(Client).filter(Client.company_id == campaign.company_id).order_by(Client.id).all()
        if tags:
            clients = [c for c in clients if tags.intersection(c.tags or [])]

        if no_booking_days:
            since = utcnow() - timedelta(days=no_booking_days)
            recent = {
                row.client_id
                for row in self.db.query(Booking.client_id).filter(
                    Booking.company_id == campaign.company_id,
                    Booking.status != BookingStatus.CANCELLED,
                    Booking.scheduled_date >= since,
                )
            }
            clients = [c for c in clients if c.id not in recent]

        opted_out = [c for c in clients if c.marketing_opt_out]
        recipients = [c for c in clients if not c.marketing_opt_out and can_receive(c, campaign.channel)]
        return recipients, len(opted_out)

    def preview_recipients(self, campaign_id: int, user: User) -> dict:
        campaign = self.get_campaign(campaign_id, user)
        recipients, opted_out_count = self._segment(campaign)
        return {
            "recipient_count": len(recipients),
            "opted_out_count": opted_out_count,
            "recipients": [
                {"id": c.id, "name": c.full_name, "email": c.email, "phone": c.phone} for c in recipients
            ],
        }

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_campaign(self, campaign_id: int, user: User) -> Campaign:
        campaign = self.get_campaign(campaign_id, user)
        if campaign.status not in CampaignStatus.EDITABLE:
            raise HTTPException(status_code=400, detail=f"Campaign is already {campaign.status.lower()}")
        self._check_subject(campaign.channel, campaign.subject)

        company = self.db.query(Company).filter(Company.id == campaign.company_id).first()
        recipients, _ = self._segment(campaign)

        campaign.status = CampaignStatus.SENDING
        campaign.recipient_count = len(recipients)
        self.db.commit()
        logger.info(f"📣 Sending campaign {campaign.id} to {len(recipients)} recipient(s)")

        sent = failed = 0
        for client in recipients:
            delivered = False
            body = personalize(campaign.body, client, company)

            if campaign.channel in SMS_CHANNELS and client.phone:
                ok, _error = await send_sms(
                    self.db,
                    company,
                    client.phone,
                    body,
                    MessageType.CAMPAIGN,
                    client_id=client.id,
                    campaign_id=campaign.id,
                    user_id=user.id,
                )
                delivered = delivered or ok

            if campaign.channel in EMAIL_CHANNELS and client.email:
                ok, _error = await send_campaign_email(
                    self.db,
                    company,
                    to=client.email,
                    subject=personalize(campaign.subject, client, company),
                    body=body,
                    client_id=client.id,
                    campaign_id=campaign.id,
                )
                delivered = delivered or ok

            if delivered:
                sent += 1
            else:
                failed += 1

        campaign.sent_count = sent
        campaign.failed_count = failed
        campaign.sent_at = utcnow()
        campaign.status = CampaignStatus.SENT if sent else CampaignStatus.FAILED
        self.db.commit()
        self.db.refresh(campaign)
        logger.info(f"✅ Campaign {campaign.id} finished: {sent} sent, {failed} failed")
        return campaign


class ProspectService:
    def __init__(self, db: Session):
        self.db = db

    def create_prospect(self, data: ProspectCreate) -> Prospect:
        """Leads from a company's public form carry its id; platform leads carry none"""
        company_id = None
        if data.company_slug:
            company = self.db.query(Company).filter(Company.slug == data.company_slug).first()
            if not company:
                raise HTTPException(status_code=404, detail="Company not found")
            company_id = company.id

        prospect = Prospect(
            company_id=company_id,
            status=ProspectStatus.NEW,
            **data.model_dump(exclude={"company_slug"}),
        )
        self.db.add(prospect)
        self.db.commit()
        self.db.refresh(prospect)
        logger.info(f"🎯 New prospect {prospect.id} (company {company_id})")
        return prospect

    def list_prospects(self, user: User, status: Optional[str] = None) -> list[Prospect]:
        query = self.db.query(Prospect).filter(Prospect.company_id == user.company_id)
        if status:
            query = query.filter(Prospect.status == status.upper())
        return query.order_by(Prospect.created_at.desc(), Prospect.id.desc()).all()

    def update_prospect(self, prospect_id: int, data: ProspectUpdate, user: User) -> Prospect:
        prospect = (
            self.db.query(Prospect)
            .filter(Prospect.id == prospect_id, Prospect.company_id == user.company_id)
            .first()
        )
        if not prospect:
            raise HTTPException(status_code=404, detail="Prospect not found")

        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(prospect, key, value)
        self.db.commit()
        self.db.refresh(prospect)
        return prospect

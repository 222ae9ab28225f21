from datetime import timedelta

from cleanday.constants import CampaignStatus, MessageChannel, ProspectStatus
from cleanday.models_messaging import Message, Prospect
from cleanday.shared.dates import utcnow

from .conftest import make_booking, make_client


def create_campaign(client, **overrides):
    payload = {"name": "Spring promo", "channel": "SMS", "body": "Hi {{first_name}}, 10% off with {{company_name}}!"}
    payload.update(overrides)
    return client.post("/api/marketing/campaigns", json=payload)


class TestSegmentation:
    def test_tags_match_any_and_opted_out_clients_are_counted(self, db, seed, admin_client):
        make_client(db, seed.company, first_name="Bob", email="bob@example.com", phone="+15555550101", tags=["airbnb"])
        quiet, _ = make_client(db, seed.company, first_name="Quinn", email="q@example.com", tags=["vip"])
        quiet.marketing_opt_out = True
        make_client(db, seed.company, first_name="Nora", email="nora@example.com", tags=["commercial"])
        db.commit()
        campaign = create_campaign(admin_client, segment_filter={"tags": ["vip", "airbnb"]}).json()["data"]

        preview = admin_client.get(f"/api/marketing/campaigns/{campaign['id']}/preview-recipients").json()["data"]

        assert preview["recipient_count"] == 2
        assert sorted(r["name"] for r in preview["recipients"]) == ["Bob Doe", "Jane Doe"]
        assert preview["opted_out_count"] == 1

    def test_no_booking_days_skips_recently_booked_clients(self, db, seed, admin_client):
        lapsed, lapsed_address = make_client(db, seed.company, first_name="Lapsed", email="l@example.com")
        db.commit()
        make_booking(db, seed.company, seed.client, seed.address, utcnow() - timedelta(days=5))
        make_booking(db, seed.company, lapsed, lapsed_address, utcnow() - timedelta(days=90))
        campaign = create_campaign(admin_client, segment_filter={"no_booking_days": 30}).json()["data"]

        preview = admin_client.get(f"/api/marketing/campaigns/{campaign['id']}/preview-recipients").json()["data"]

        assert [r["id"] for r in preview["recipients"]] == [lapsed.id]

    def test_channel_limits_recipients_to_reachable_clients(self, db, seed, admin_client):
        make_client(db, seed.company, first_name="NoPhone", email="np@example.com", phone=None)
        db.commit()
        campaign = create_campaign(admin_client).json()["data"]

        preview = admin_client.get(f"/api/marketing/campaigns/{campaign['id']}/preview-recipients").json()["data"]

        assert [r["id"] for r in preview["recipients"]] == [seed.client.id]


class TestCampaignLifecycle:
    def test_email_campaign_needs_a_subject(self, seed, admin_client):
        response = create_campaign(admin_client, channel="EMAIL")
        assert response.status_code == 400
        assert response.json()["error"] == "Subject is required for email campaigns"

    def test_unknown_channel_is_422(self, seed, admin_client):
        assert create_campaign(admin_client, channel="FAX").status_code == 422

    def test_scheduled_for_sets_status(self, seed, admin_client):
        later = (utcnow() + timedelta(days=2)).isoformat()
        campaign = create_campaign(admin_client, scheduled_for=later).json()["data"]
        assert campaign["status"] == CampaignStatus.SCHEDULED

    def test_send_sms_campaign(self, db, seed, admin_client, sms):
        campaign = create_campaign(admin_client).json()["data"]

        response = admin_client.post(f"/api/marketing/campaigns/{campaign['id']}/send")

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["status"] == CampaignStatus.SENT
        assert (data["recipient_count"], data["sent_count"], data["failed_count"]) == (1, 1, 0)
        assert sms.bodies() == ["Hi Jane, 10% off with Sparkle Clean!"]
        logged = db.query(Message).one()
        assert logged.campaign_id == campaign["id"]

    def test_both_channels_count_a_client_once(self, db, seed, admin_client, sms, outbox):
        campaign = create_campaign(admin_client, channel="BOTH", subject="News for {{first_name}}").json()["data"]

        data = admin_client.post(f"/api/marketing/campaigns/{campaign['id']}/send").json()["data"]

        assert data["sent_count"] == 1
        assert outbox[0]["subject"] == "News for Jane"
        channels = sorted(m.channel for m in db.query(Message).all())
        assert channels == [MessageChannel.EMAIL, MessageChannel.SMS]

    def test_every_delivery_failing_marks_the_campaign_failed(self, seed, admin_client, sms):
        sms.fail = True
        campaign = create_campaign(admin_client).json()["data"]

        data = admin_client.post(f"/api/marketing/campaigns/{campaign['id']}/send").json()["data"]

        assert data["status"] == CampaignStatus.FAILED
        assert data["failed_count"] == 1

    def test_sent_campaigns_are_frozen(self, seed, admin_client):
        campaign = create_campaign(admin_client).json()["data"]
        admin_client.post(f"/api/marketing/campaigns/{campaign['id']}/send")

        edit = admin_client.patch(f"/api/marketing/campaigns/{campaign['id']}", json={"name": "Again"})
        delete = admin_client.delete(f"/api/marketing/campaigns/{campaign['id']}")
        resend = admin_client.post(f"/api/marketing/campaigns/{campaign['id']}/send")

        assert edit.status_code == 400
        assert edit.json()["error"] == "Only draft campaigns can be edited"
        assert delete.status_code == 400
        assert resend.status_code == 400

    def test_draft_can_be_deleted(self, seed, admin_client):
        campaign = create_campaign(admin_client).json()["data"]
        assert admin_client.delete(f"/api/marketing/campaigns/{campaign['id']}").status_code == 200
        assert admin_client.get(f"/api/marketing/campaigns/{campaign['id']}").status_code == 404


class TestProspects:
    def test_public_form_files_the_lead_under_the_company(self, db, seed, anon, admin_client):
        response = anon.post(
            "/api/public/prospects",
            json={"name": "Pat Lee", "phone": "(512) 555-0111", "company_slug": seed.company.slug},
        )

        assert response.status_code == 201, response.text
        listed = admin_client.get("/api/prospects").json()["data"]
        assert [p["name"] for p in listed] == ["Pat Lee"]
        assert listed[0]["phone"] == "+15125550111"
        assert listed[0]["status"] == ProspectStatus.NEW

    def test_contact_detail_is_required(self, anon):
        response = anon.post("/api/public/prospects", json={"name": "Pat Lee"})
        assert response.status_code == 422

    def test_unknown_company_slug(self, anon):
        response = anon.post(
            "/api/public/prospects", json={"name": "Pat Lee", "email": "pat@example.com", "company_slug": "nope"}
        )
        assert response.status_code == 404

    def test_platform_leads_are_not_listed_for_companies(self, db, seed, anon, admin_client):
        anon.post("/api/public/prospects", json={"name": "Pat Lee", "email": "pat@example.com"})

        assert admin_client.get("/api/prospects").json()["data"] == []
        assert db.query(Prospect).one().company_id is None

    def test_status_update(self, seed, anon, admin_client):
        anon.post(
            "/api/public/prospects",
            json={"name": "Pat Lee", "email": "pat@example.com", "company_slug": seed.company.slug},
        )
        prospect = admin_client.get("/api/prospects").json()["data"][0]

        ok = admin_client.patch(f"/api/prospects/{prospect['id']}", json={"status": "CONTACTED"})
        bad = admin_client.patch(f"/api/prospects/{prospect['id']}", json={"status": "MAYBE"})

        assert ok.json()["data"]["status"] == ProspectStatus.CONTACTED
        assert bad.status_code == 422

"""
Pytest configuration and fixtures

An in-memory SQLite database is rebuilt for every test. Outbound Twilio
calls are replaced by a recorder; Resend e-mail is faked on demand through
the ``outbox`` fixture.
"""

import os

# Settings are read at import time, so they must be in place before cleanday loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SESSION_COOKIE_SECURE"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER", "RESEND_API_KEY", "CRON_SECRET"):
    os.environ.pop(name, None)

from datetime import datetime, timedelta  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from cleanday import email_service  # noqa: E402
from cleanday.constants import BookingStatus, PaymentStatus, ServiceType, UserRole  # noqa: E402
from cleanday.database import Base, get_db  # noqa: E402
from cleanday.domain.scheduling.booking_service import generate_booking_number  # noqa: E402
from cleanday.main import app  # noqa: E402
from cleanday.models import Address, Booking, Client, Company, TeamMember, User  # noqa: E402
from cleanday.security_utils import create_jwt_token, encrypt_credential, hash_password  # noqa: E402
from cleanday.services import twilio_service  # noqa: E402
from cleanday.shared.dates import utcnow  # noqa: E402

PASSWORD = "correct-horse-battery"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


class FakeTwilio:
    """Stands in for the Twilio REST call and records every message"""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def __call__(self, account_sid, auth_token, data):
        self.sent.append(data)
        if self.fail:
            return 400, {"message": "The 'To' number is not a valid phone number.", "code": 21211}
        return 201, {"sid": f"SM{len(self.sent):032d}"}

    def bodies(self):
        return [m["Body"] for m in self.sent]


@pytest.fixture(autouse=True)
def sms(monkeypatch):
    fake = FakeTwilio()
    monkeypatch.setattr(twilio_service, "_twilio_post", fake)
    return fake


@pytest.fixture
def outbox(monkeypatch):
    """Turn e-mail on and capture what would go to Resend"""
    sent = []

    def fake_send(email_data):
        sent.append(email_data)
        return {"id": f"em_{len(sent)}"}

    monkeypatch.setattr(email_service, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(email_service, "compile_mjml_to_html", lambda mjml: mjml)
    monkeypatch.setattr(email_service, "_resend_send", fake_send)
    return sent


def make_user(db, company, email, role, first_name="Test"):
    user = User(
        company_id=company.id,
        email=email,
        password_hash=hash_password(PASSWORD),
        first_name=first_name,
        last_name="User",
        role=role,
    )
    db.add(user)
    db.flush()
    return user


def make_company(db, name="Sparkle Clean", slug="sparkle-clean", sms_enabled=True):
    company = Company(name=name, slug=slug, email=f"office@{slug}.test", tax_rate=0)
    if sms_enabled:
        company.twilio_account_sid = "AC" + "0" * 32
        company.twilio_auth_token = encrypt_credential("twilio-secret")
        company.twilio_phone_number = "+15550001111"
    db.add(company)
    db.flush()
    return company


def make_cleaner(db, company, email, first_name="Casey", hourly_rate=25.0):
    user = make_user(db, company, email, UserRole.CLEANER, first_name=first_name)
    member = TeamMember(company_id=company.id, user_id=user.id, hourly_rate=hourly_rate)
    db.add(member)
    db.flush()
    return member


def make_client(db, company, first_name="Jane", email="jane@example.com", phone="+15555550100", tags=None):
    client = Client(
        company_id=company.id,
        first_name=first_name,
        last_name="Doe",
        email=email,
        phone=phone,
        tags=tags or [],
    )
    db.add(client)
    db.flush()
    address = Address(
        client_id=client.id,
        label="Home",
        is_primary=True,
        street="12 Maple St",
        city="Austin",
        state="TX",
        zip="78701",
    )
    db.add(address)
    db.flush()
    return client, address


def make_booking(db, company, client, address, scheduled_date=None, duration=120, price=100.0, **overrides):
    scheduled_date = scheduled_date or tomorrow_at(10)
    booking = Booking(
        company_id=company.id,
        booking_number=generate_booking_number(),
        client_id=client.id,
        address_id=address.id,
        service_type=ServiceType.STANDARD,
        scheduled_date=scheduled_date,
        scheduled_end_date=scheduled_date + timedelta(minutes=duration),
        duration=duration,
        status=BookingStatus.SCHEDULED,
        status_history=[],
        base_price=price,
        addons=[],
        subtotal=price,
        final_price=price,
        payment_status=PaymentStatus.PENDING,
    )
    for key, value in overrides.items():
        setattr(booking, key, value)
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def tomorrow_at(hour, minute=0):
    day = (utcnow() + timedelta(days=1)).date()
    return datetime(day.year, day.month, day.day, hour, minute)


@pytest.fixture
def seed(db):
    """A company with an owner, an admin, one cleaner and one client"""
    company = make_company(db)
    owner = make_user(db, company, "owner@sparkle.test", UserRole.OWNER, first_name="Olivia")
    admin = make_user(db, company, "admin@sparkle.test", UserRole.ADMIN, first_name="Adam")
    cleaner = make_cleaner(db, company, "casey@sparkle.test")
    client, address = make_client(db, company, tags=["vip"])
    db.commit()
    return SimpleNamespace(
        company=company,
        owner=owner,
        admin=admin,
        cleaner=cleaner,
        cleaner_user=cleaner.user,
        client=client,
        address=address,
    )


def login(email, password=PASSWORD):
    """A TestClient holding the session cookie of the given user"""
    client = TestClient(app)
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return client


def bearer(user):
    return {"Authorization": f"Bearer {create_jwt_token({'sub': str(user.id)})}"}


@pytest.fixture
def anon():
    return TestClient(app)


@pytest.fixture
def owner_client(seed):
    return login(seed.owner.email)


@pytest.fixture
def admin_client(seed):
    return login(seed.admin.email)


@pytest.fixture
def cleaner_client(seed):
    return login(seed.cleaner_user.email)

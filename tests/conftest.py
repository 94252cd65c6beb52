import os

# Settings are read at import time, so the environment has to be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["VIPPS_WEBHOOK_SECRET"] = "vipps_test_secret"
os.environ["CRON_SECRET"] = "cron_test_secret"
os.environ["ADMIN_API_KEY"] = "admin_test_key"
os.environ["FRONTEND_URL"] = "https://minsponsor.test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.session import Base, get_db
from app.main import app
from app.models import Organization, Group, Individual, Subscription


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def organization(db):
    """Active club with both providers enabled."""
    org = Organization(
        name="Fjellby IL",
        slug="fjellby-il",
        contact_email="post@fjellby.no",
        status="active",
        stripe_account_id="acct_fjellby",
        stripe_charges_enabled=True,
        vipps_msn="123456",
        vipps_enabled=True,
    )
    db.add(org)
    db.commit()
    return org


@pytest.fixture
def group(db, organization):
    grp = Group(organization_id=organization.id, name="G12", slug="g12")
    db.add(grp)
    db.commit()
    return grp


@pytest.fixture
def individual(db, organization, group):
    person = Individual(
        organization_id=organization.id,
        group_id=group.id,
        first_name="Ola",
        last_name="Nordmann",
        slug="ola-nordmann",
    )
    db.add(person)
    db.commit()
    return person


@pytest.fixture
def make_subscription(db, organization):
    def _make(**overrides):
        values = dict(
            payment_provider="vipps",
            sponsor_email="sponsor@fjellby.no",
            sponsor_name="Kari Sponsor",
            organization_id=organization.id,
            amount=20000,
            interval="monthly",
            status="active",
        )
        values.update(overrides)
        subscription = Subscription(**values)
        db.add(subscription)
        db.commit()
        return subscription

    return _make

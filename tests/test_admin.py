"""Health and admin onboarding link"""
from app.services import stripe_gateway


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_onboarding_link_requires_admin_key(client, organization):
    response = client.post(f"/admin/organizations/{organization.id}/stripe-link")
    assert response.status_code == 401


def test_onboarding_link_for_existing_account(client, organization, monkeypatch):
    monkeypatch.setattr(
        stripe_gateway, "create_account_link",
        lambda account_id, org_id: f"https://connect.stripe.com/setup/{account_id}",
    )

    response = client.post(
        f"/admin/organizations/{organization.id}/stripe-link",
        headers={"Authorization": "Bearer admin_test_key"},
    )
    assert response.status_code == 200
    assert response.json() == {"onboardingUrl": "https://connect.stripe.com/setup/acct_fjellby"}


def test_onboarding_link_creates_account(client, db, organization, monkeypatch):
    organization.stripe_account_id = None
    organization.stripe_charges_enabled = False
    db.commit()
    monkeypatch.setattr(
        stripe_gateway, "create_connect_account",
        lambda org_id, email: {"account_id": "acct_new", "onboarding_url": "https://connect.stripe.com/setup/acct_new"},
    )

    response = client.post(
        f"/admin/organizations/{organization.id}/stripe-link",
        headers={"Authorization": "Bearer admin_test_key"},
    )
    assert response.status_code == 200
    assert response.json()["onboardingUrl"] == "https://connect.stripe.com/setup/acct_new"
    db.refresh(organization)
    assert organization.stripe_account_id == "acct_new"


def test_onboarding_link_unknown_organization(client):
    response = client.post(
        "/admin/organizations/00000000-0000-0000-0000-000000000077/stripe-link",
        headers={"Authorization": "Bearer admin_test_key"},
    )
    assert response.status_code == 404

"""
Checkout orchestration.

Card donations are handed to Stripe's hosted checkout; nothing is stored until
checkout.session.completed arrives. Vipps donations need a local pending subscription
first, because its id goes into the redirect URL the sponsor comes back through.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    InvalidRecipient,
    MissingRequiredField,
    OrgNotAcceptingPayments,
    OrganizationNotFound,
    UnsupportedIntervalForProvider,
)
from app.core.fees import calculate_platform_fee, platform_fee_percent
from app.models.group import Group
from app.models.individual import Individual
from app.models.organization import Organization
from app.models.subscription import Subscription, PaymentProvider, SubscriptionStatus, SubscriptionInterval
from app.schemas.checkout import CheckoutRequest, ConfirmationResponse
from app.services import stripe_gateway, vipps_gateway
from app.utils.phone import format_norwegian_phone

logger = logging.getLogger(__name__)


def _load_recipient(db: Session, request: CheckoutRequest) -> Organization:
    organization = db.get(Organization, request.recipient.organization_id)
    if not organization:
        raise OrganizationNotFound()

    group = None
    if request.group_id:
        group = db.get(Group, request.group_id)
        if not group or group.organization_id != organization.id or group.status != "active":
            raise InvalidRecipient("Group not found")

    if request.individual_id:
        individual = db.get(Individual, request.individual_id)
        if not individual or individual.organization_id != organization.id or individual.status != "active":
            raise InvalidRecipient("Individual not found")
        if group and individual.group_id != group.id:
            raise InvalidRecipient("Individual does not belong to the selected group")

    return organization


def validate_checkout(db: Session, request: CheckoutRequest) -> Organization:
    """Check recipient and provider capability. Nothing is written."""
    organization = _load_recipient(db, request)

    if not organization.accepts(request.payment_method):
        raise OrgNotAcceptingPayments()

    if request.payment_method == PaymentProvider.VIPPS.value:
        if request.interval != SubscriptionInterval.MONTHLY.value:
            raise UnsupportedIntervalForProvider()
        if not request.sponsor_phone or not request.sponsor_phone.strip():
            raise MissingRequiredField("Phone number is required for Vipps")

    return organization


def _metadata(request: CheckoutRequest) -> dict:
    # Stripe metadata values must be strings; empty string means "not set"
    return {
        "organization_id": str(request.recipient.organization_id),
        "group_id": str(request.group_id) if request.group_id else "",
        "individual_id": str(request.individual_id) if request.individual_id else "",
        "sponsor_name": request.sponsor_name or "",
        "sponsor_email": request.sponsor_email,
    }


def create_stripe_checkout(organization: Organization, request: CheckoutRequest) -> str:
    is_subscription = request.interval == SubscriptionInterval.MONTHLY.value
    metadata = _metadata(request)

    price_data = {
        "currency": settings.CURRENCY,
        "product_data": {"name": f"Støtte til {organization.name}"},
        "unit_amount": request.amount,
    }
    if is_subscription:
        price_data["recurring"] = {"interval": "month"}

    params = {
        "mode": "subscription" if is_subscription else "payment",
        "line_items": [{"price_data": price_data, "quantity": 1}],
        "customer_email": request.sponsor_email,
        "metadata": metadata,
        "success_url": (
            f"{settings.FRONTEND_URL}/bekreftelse?session_id={{CHECKOUT_SESSION_ID}}&provider=stripe"
        ),
        "cancel_url": f"{settings.FRONTEND_URL}/stott/{organization.slug}",
    }
    if is_subscription:
        params["subscription_data"] = {
            "metadata": metadata,
            "application_fee_percent": platform_fee_percent(),
            "transfer_data": {"destination": organization.stripe_account_id},
        }
    else:
        params["payment_intent_data"] = {
            "metadata": metadata,
            "application_fee_amount": calculate_platform_fee(request.amount),
            "transfer_data": {"destination": organization.stripe_account_id},
        }

    session = stripe_gateway.create_checkout_session(**params)
    logger.info(
        "[CHECKOUT] Stripe session %s created for organization %s (%s, %s øre)",
        session["id"], organization.id, request.interval, request.amount,
    )
    return session["url"]


def _delete_pending_subscription(db: Session, subscription_id) -> None:
    """Compensating delete for a Vipps row whose agreement was never created. No-op if already gone."""
    db.rollback()
    deleted = (
        db.query(Subscription)
        .filter(
            Subscription.id == subscription_id,
            Subscription.status == SubscriptionStatus.PENDING.value,
            Subscription.vipps_agreement_id.is_(None),
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("[CHECKOUT] Removed pending subscription %s after failed agreement", subscription_id)


def create_vipps_checkout(db: Session, organization: Organization, request: CheckoutRequest) -> str:
    phone = format_norwegian_phone(request.sponsor_phone)
    subscription = Subscription(
        payment_provider=PaymentProvider.VIPPS.value,
        sponsor_email=request.sponsor_email,
        sponsor_name=request.sponsor_name,
        sponsor_phone=phone,
        organization_id=organization.id,
        group_id=request.group_id,
        individual_id=request.individual_id,
        amount=request.amount,
        interval=SubscriptionInterval.MONTHLY.value,
        status=SubscriptionStatus.PENDING.value,
    )
    db.add(subscription)
    db.commit()
    subscription_id = subscription.id

    completed = False
    agreement_id = None
    try:
        agreement = vipps_gateway.create_agreement(
            organization.vipps_msn,
            phone_number=phone,
            amount=request.amount,
            product_name=f"Støtte til {organization.name}",
            merchant_redirect_url=f"{settings.FRONTEND_URL}/checkout/vipps/callback?sub={subscription_id}",
            merchant_agreement_url=f"{settings.FRONTEND_URL}/mine-abonnementer",
        )
        agreement_id = agreement["agreementId"]
        subscription.vipps_agreement_id = agreement_id
        db.commit()
        completed = True
    finally:
        if not completed:
            if agreement_id:
                logger.error(
                    "[CHECKOUT] Vipps agreement %s was created but could not be saved for subscription %s; "
                    "it has no local record and must be stopped manually",
                    agreement_id, subscription_id,
                )
            else:
                logger.error("[CHECKOUT] Vipps agreement failed for subscription %s", subscription_id)
            _delete_pending_subscription(db, subscription_id)

    logger.info(
        "[CHECKOUT] Vipps agreement %s created for subscription %s",
        subscription.vipps_agreement_id, subscription_id,
    )
    return agreement["vippsConfirmationUrl"]


def create_checkout(db: Session, request: CheckoutRequest) -> str:
    """Validate the request and return the URL the sponsor should be sent to."""
    organization = validate_checkout(db, request)
    if request.payment_method == PaymentProvider.STRIPE.value:
        return create_stripe_checkout(organization, request)
    return create_vipps_checkout(db, organization, request)


def get_confirmation(
    db: Session,
    provider: str,
    session_id: Optional[str] = None,
    subscription_id: Optional[str] = None,
) -> ConfirmationResponse:
    """
    Details for the thank-you page. Lookup problems are logged and produce the bare
    response; the sponsor has already paid at this point.
    """
    response = ConfirmationResponse(provider=provider)
    try:
        if provider == PaymentProvider.STRIPE.value and session_id:
            session = stripe_gateway.retrieve_checkout_session(session_id)
            metadata = session.get("metadata") or {}
            organization = None
            if metadata.get("organization_id"):
                organization = db.get(Organization, uuid.UUID(metadata["organization_id"]))
            response.is_subscription = session.get("mode") == "subscription"
            response.amount = session.get("amount_total")
            response.organization_name = organization.name if organization else None
            customer_id = session.get("customer")
            if response.is_subscription and isinstance(customer_id, str):
                response.portal_url = stripe_gateway.create_portal_session(
                    customer_id, return_url=f"{settings.FRONTEND_URL}/mine-abonnementer"
                )
        elif provider == PaymentProvider.VIPPS.value and subscription_id:
            subscription = db.get(Subscription, uuid.UUID(str(subscription_id)))
            if subscription:
                response.is_subscription = True
                response.amount = subscription.amount
                response.organization_name = subscription.organization.name
    except Exception as e:
        logger.warning("[CHECKOUT] Confirmation lookup failed (%s): %s", provider, e)
        return ConfirmationResponse(provider=provider)
    return response


def create_onboarding_link(db: Session, organization_id) -> str:
    """Onboarding link for a club's Stripe Express account, creating the account on first use."""
    organization = db.get(Organization, organization_id)
    if not organization:
        raise OrganizationNotFound()

    if organization.stripe_account_id:
        return stripe_gateway.create_account_link(organization.stripe_account_id, organization.id)

    result = stripe_gateway.create_connect_account(organization.id, organization.contact_email)
    organization.stripe_account_id = result["account_id"]
    db.commit()
    logger.info("[CHECKOUT] Created Stripe account %s for organization %s", result["account_id"], organization.id)
    return result["onboarding_url"]

"""
Thin wrapper around the Stripe SDK for the platform account.

All calls use the platform secret key; connected accounts receive funds through
transfer_data/application fees on the checkout session. SDK errors are re-raised as
StripeGatewayError so callers deal with one exception type.
"""
import json
import logging
from typing import Any, Dict, Optional

import stripe

from app.core.config import settings
from app.core.errors import StripeGatewayError

logger = logging.getLogger(__name__)


def _configure():
    if not settings.STRIPE_SECRET_KEY:
        raise StripeGatewayError("STRIPE_SECRET_KEY is not configured")
    stripe.api_key = settings.STRIPE_SECRET_KEY
    if settings.STRIPE_API_VERSION:
        stripe.api_version = settings.STRIPE_API_VERSION
    stripe.max_network_retries = 2


def _call(fn, *args, **kwargs):
    _configure()
    try:
        return fn(*args, **kwargs)
    except stripe.StripeError as e:
        logger.error("[STRIPE] %s failed: %s", getattr(fn, "__qualname__", fn), e)
        raise StripeGatewayError(
            getattr(e, "user_message", None) or str(e),
            status=getattr(e, "http_status", None),
            payload=getattr(e, "json_body", None),
        ) from e


def _plain(obj) -> Dict[str, Any]:
    if obj is None:
        return {}
    return obj.to_dict() if hasattr(obj, "to_dict") else dict(obj)


def _onboarding_urls(org_id) -> Dict[str, str]:
    return {
        "refresh_url": f"{settings.FRONTEND_URL}/admin/onboarding/refresh?org={org_id}",
        "return_url": f"{settings.FRONTEND_URL}/admin/onboarding/complete?org={org_id}",
    }


def create_connect_account(org_id, email: Optional[str]) -> Dict[str, str]:
    """Create an Express account for a club and its first onboarding link."""
    account = _call(
        stripe.Account.create,
        type="express",
        country="NO",
        email=email,
        capabilities={
            "card_payments": {"requested": True},
            "transfers": {"requested": True},
        },
        metadata={"organization_id": str(org_id)},
    )
    onboarding_url = create_account_link(account["id"], org_id)
    return {"account_id": account["id"], "onboarding_url": onboarding_url}


def create_account_link(account_id: str, org_id) -> str:
    link = _call(
        stripe.AccountLink.create,
        account=account_id,
        type="account_onboarding",
        **_onboarding_urls(org_id),
    )
    return link["url"]


def create_checkout_session(**params) -> Any:
    return _call(stripe.checkout.Session.create, **params)


def retrieve_checkout_session(session_id: str) -> Dict[str, Any]:
    return _plain(_call(stripe.checkout.Session.retrieve, session_id))


def retrieve_subscription(subscription_id: str) -> Dict[str, Any]:
    return _plain(_call(stripe.Subscription.retrieve, subscription_id))


def retrieve_payment_intent(payment_intent_id: str) -> Dict[str, Any]:
    return _plain(_call(stripe.PaymentIntent.retrieve, payment_intent_id))


def retrieve_invoice(invoice_id: str) -> Dict[str, Any]:
    return _plain(_call(stripe.Invoice.retrieve, invoice_id, expand=["payments"]))


def create_portal_session(customer_id: str, return_url: Optional[str] = None) -> str:
    """Billing portal where a sponsor can manage or cancel a card subscription."""
    portal = _call(
        stripe.billing_portal.Session.create,
        customer=customer_id,
        return_url=return_url or settings.FRONTEND_URL,
    )
    return portal["url"]


def construct_event(payload: bytes, signature: str) -> Dict[str, Any]:
    """
    Verify the stripe-signature header and parse the event.

    Raises ValueError for an unparseable payload and stripe.SignatureVerificationError
    for a bad signature; the webhook route maps both to 400.
    """
    stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
    return json.loads(payload)

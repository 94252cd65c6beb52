"""
Translation of provider webhook payloads into one normalized DomainEvent.

Stripe and Vipps describe the same lifecycle with different names and shapes, and
Stripe moves fields around between API versions. All of that is handled here so the
reconciler only ever sees DomainEvent.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.models.subscription import PaymentProvider
from app.services.idempotency import vipps_event_id


class EventKind(str, enum.Enum):
    CHECKOUT_COMPLETED = "checkout_completed"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    AGREEMENT_ACTIVATED = "agreement_activated"
    ACCOUNT_UPDATED = "account_updated"
    INVOICE_PAID = "invoice_paid"
    INVOICE_PAYMENT_FAILED = "invoice_payment_failed"
    CHARGE_CAPTURED = "charge_captured"
    CHARGE_FAILED = "charge_failed"
    CHARGE_CANCELLED = "charge_cancelled"
    CHARGE_REFUNDED = "charge_refunded"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DomainEvent:
    provider: str
    event_id: str
    kind: EventKind
    name: str  # provider's own event name, for logs
    subscription_ref: Optional[str] = None  # Stripe subscription id or Vipps agreement id
    charge_id: Optional[str] = None
    amount: Optional[int] = None
    customer_id: Optional[str] = None
    customer_email: Optional[str] = None
    account_id: Optional[str] = None
    charges_enabled: Optional[bool] = None
    payment_intent_id: Optional[str] = None
    invoice_id: Optional[str] = None
    mode: Optional[str] = None
    billing_reason: Optional[str] = None
    failure_reason: Optional[str] = None
    actor: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


STRIPE_EVENT_KINDS = {
    "checkout.session.completed": EventKind.CHECKOUT_COMPLETED,
    "customer.subscription.deleted": EventKind.SUBSCRIPTION_CANCELLED,
    "account.updated": EventKind.ACCOUNT_UPDATED,
    "invoice.payment_succeeded": EventKind.INVOICE_PAID,
    "invoice.payment_failed": EventKind.INVOICE_PAYMENT_FAILED,
    "charge.refunded": EventKind.CHARGE_REFUNDED,
}

VIPPS_EVENT_KINDS = {
    "recurring.agreement-activated.v1": EventKind.AGREEMENT_ACTIVATED,
    "recurring.agreement-stopped.v1": EventKind.SUBSCRIPTION_CANCELLED,
    "recurring.agreement-expired.v1": EventKind.SUBSCRIPTION_EXPIRED,
    "recurring.charge-captured.v1": EventKind.CHARGE_CAPTURED,
    "recurring.charge-failed.v1": EventKind.CHARGE_FAILED,
    "recurring.charge-cancelled.v1": EventKind.CHARGE_CANCELLED,
}


def object_id(value: Any) -> Optional[str]:
    """Stripe fields may hold an id string or an expanded object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id")
    return None


def invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    # Newer API versions: parent.subscription_details.subscription
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    sub_id = object_id(details.get("subscription"))
    if sub_id:
        return sub_id
    return object_id(invoice.get("subscription"))


def invoice_charge_id(invoice: Dict[str, Any]) -> Optional[str]:
    """
    Locate the charge behind an invoice.

    Older API versions put it on `charge`; newer ones list payments under
    `payments.data[].payment`. The payment intent id is the last resort so the
    transaction still gets a stable, provider-unique key.
    """
    charge_id = object_id(invoice.get("charge"))
    if charge_id:
        return charge_id

    payments = (invoice.get("payments") or {}).get("data") or []
    for invoice_payment in payments:
        payment = invoice_payment.get("payment") or {}
        charge_id = object_id(payment.get("charge"))
        if charge_id:
            return charge_id
    for invoice_payment in payments:
        payment = invoice_payment.get("payment") or {}
        pi_id = object_id(payment.get("payment_intent"))
        if pi_id:
            return pi_id

    return object_id(invoice.get("payment_intent"))


def _metadata(obj: Dict[str, Any]) -> Dict[str, str]:
    return {k: v for k, v in dict(obj.get("metadata") or {}).items() if v is not None}


def parse_stripe_event(event: Dict[str, Any]) -> DomainEvent:
    event_type = event.get("type") or ""
    obj = (event.get("data") or {}).get("object") or {}
    kind = STRIPE_EVENT_KINDS.get(event_type, EventKind.UNKNOWN)
    base = dict(
        provider=PaymentProvider.STRIPE.value,
        event_id=event.get("id"),
        kind=kind,
        name=event_type,
    )

    if kind == EventKind.CHECKOUT_COMPLETED:
        customer_details = obj.get("customer_details") or {}
        return DomainEvent(
            **base,
            subscription_ref=object_id(obj.get("subscription")),
            payment_intent_id=object_id(obj.get("payment_intent")),
            invoice_id=object_id(obj.get("invoice")),
            customer_id=object_id(obj.get("customer")),
            customer_email=obj.get("customer_email") or customer_details.get("email"),
            amount=obj.get("amount_total"),
            mode=obj.get("mode"),
            metadata=_metadata(obj),
        )

    if kind == EventKind.SUBSCRIPTION_CANCELLED:
        return DomainEvent(**base, subscription_ref=obj.get("id"))

    if kind == EventKind.ACCOUNT_UPDATED:
        return DomainEvent(
            **base,
            account_id=obj.get("id"),
            charges_enabled=bool(obj.get("charges_enabled") or False),
        )

    if kind in (EventKind.INVOICE_PAID, EventKind.INVOICE_PAYMENT_FAILED):
        return DomainEvent(
            **base,
            subscription_ref=invoice_subscription_id(obj),
            charge_id=invoice_charge_id(obj),
            invoice_id=obj.get("id"),
            amount=obj.get("amount_paid"),
            billing_reason=obj.get("billing_reason"),
            customer_id=object_id(obj.get("customer")),
        )

    if kind == EventKind.CHARGE_REFUNDED:
        return DomainEvent(**base, charge_id=obj.get("id"), amount=obj.get("amount_refunded"))

    return DomainEvent(**base)


def parse_vipps_event(payload) -> DomainEvent:
    """`payload` is a validated VippsWebhookEvent."""
    return DomainEvent(
        provider=PaymentProvider.VIPPS.value,
        event_id=vipps_event_id(payload.name, payload.agreement_id, payload.charge_id, payload.timestamp),
        kind=VIPPS_EVENT_KINDS.get(payload.name, EventKind.UNKNOWN),
        name=payload.name,
        subscription_ref=payload.agreement_id,
        charge_id=payload.charge_id,
        amount=payload.amount,
        actor=payload.actor,
        failure_reason=payload.failure_reason,
    )

"""
Applies normalized webhook events to subscriptions and transactions.

Handlers never commit; the webhook route commits once so the processed-event marker
and the handler's writes land together. Every handler tolerates redelivery and
out-of-order delivery: inserts are guarded by unique charge ids and status changes
go through the state machine.
"""
import logging
import uuid
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.core.errors import SubscriptionNotFound
from app.models.organization import Organization
from app.models.subscription import (
    Subscription,
    PaymentProvider,
    SubscriptionStatus,
    SubscriptionInterval,
)
from app.models.transaction import TransactionStatus
from app.services import stripe_gateway
from app.services.idempotency import insert_unique
from app.services.ledger import (
    record_transaction,
    subscription_by_provider_ref,
    transaction_by_charge,
)
from app.services.notifications import notify_payment_failed
from app.services.payment_events import DomainEvent, EventKind, invoice_charge_id, object_id
from app.services.state_machine import transition_subscription, transition_transaction
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


def _uuid_or_none(value: Optional[str]):
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        logger.warning("[RECONCILE] Ignoring malformed id in metadata: %s", value)
        return None


# --- checkout -----------------------------------------------------------------

def _checkout_metadata(event: DomainEvent) -> Dict[str, str]:
    """
    Session metadata, completed with what was put on the subscription or payment
    intent (checkout copies metadata there, and some flows only set it there).
    """
    metadata: Dict[str, str] = {}
    if event.subscription_ref:
        sub = stripe_gateway.retrieve_subscription(event.subscription_ref)
        metadata.update(sub.get("metadata") or {})
    elif event.payment_intent_id:
        pi = stripe_gateway.retrieve_payment_intent(event.payment_intent_id)
        metadata.update(pi.get("metadata") or {})
    metadata.update(event.metadata)
    return metadata


def _first_charge_id(event: DomainEvent) -> Optional[str]:
    """Charge id of the payment made during checkout."""
    if event.mode == "subscription":
        if not event.invoice_id:
            return None
        invoice = stripe_gateway.retrieve_invoice(event.invoice_id)
        return invoice_charge_id(invoice) or event.invoice_id
    if event.payment_intent_id:
        pi = stripe_gateway.retrieve_payment_intent(event.payment_intent_id)
        return object_id(pi.get("latest_charge")) or event.payment_intent_id
    return None


def handle_checkout_completed(db: Session, event: DomainEvent) -> None:
    if event.subscription_ref and subscription_by_provider_ref(db, event.provider, event.subscription_ref):
        logger.info("[RECONCILE] Subscription %s already recorded", event.subscription_ref)
        return

    charge_id = _first_charge_id(event)
    if not event.subscription_ref and transaction_by_charge(db, event.provider, charge_id):
        logger.info("[RECONCILE] One-time payment %s already recorded", charge_id)
        return

    metadata = _checkout_metadata(event)
    organization_id = _uuid_or_none(metadata.get("organization_id"))
    if not organization_id:
        logger.error("[RECONCILE] checkout %s has no organization_id in metadata", event.event_id)
        return

    sponsor_email = event.customer_email or metadata.get("sponsor_email")
    if not sponsor_email:
        logger.error("[RECONCILE] checkout %s has no sponsor email", event.event_id)
        return

    amount = event.amount or 0
    subscription = Subscription(
        payment_provider=PaymentProvider.STRIPE.value,
        stripe_subscription_id=event.subscription_ref,
        stripe_customer_id=event.customer_id,
        sponsor_email=sponsor_email,
        sponsor_name=metadata.get("sponsor_name") or None,
        organization_id=organization_id,
        group_id=_uuid_or_none(metadata.get("group_id")),
        individual_id=_uuid_or_none(metadata.get("individual_id")),
        amount=amount,
        interval=(
            SubscriptionInterval.MONTHLY.value
            if event.mode == "subscription"
            else SubscriptionInterval.ONE_TIME.value
        ),
        status=SubscriptionStatus.ACTIVE.value,
        started_at=utcnow(),
    )
    if not insert_unique(db, subscription):
        return
    logger.info(
        "[RECONCILE] Recorded %s Stripe subscription %s for organization %s",
        subscription.interval, subscription.id, organization_id,
    )

    if charge_id:
        record_transaction(db, subscription, charge_id, amount, TransactionStatus.SUCCEEDED.value)


# --- subscription status --------------------------------------------------------

def _set_subscription_status(db: Session, event: DomainEvent, new_status: str) -> None:
    subscription = subscription_by_provider_ref(db, event.provider, event.subscription_ref)
    if not subscription:
        logger.warning(
            "[RECONCILE] %s for unknown subscription %s, ignoring",
            event.name, event.subscription_ref,
        )
        return
    if transition_subscription(subscription, new_status):
        logger.info("[RECONCILE] Subscription %s is now %s (%s)", subscription.id, new_status, event.name)


def handle_account_updated(db: Session, event: DomainEvent) -> None:
    organization = db.query(Organization).filter(Organization.stripe_account_id == event.account_id).first()
    if not organization:
        logger.warning("[RECONCILE] account.updated for unknown account %s", event.account_id)
        return
    organization.stripe_charges_enabled = bool(event.charges_enabled)
    logger.info(
        "[RECONCILE] Organization %s stripe_charges_enabled=%s",
        organization.id, organization.stripe_charges_enabled,
    )


# --- payments ----------------------------------------------------------------

def _require_subscription(db: Session, event: DomainEvent) -> Subscription:
    subscription = subscription_by_provider_ref(db, event.provider, event.subscription_ref)
    if not subscription:
        logger.error(
            "[RECONCILE] %s for unknown subscription %s (event %s)",
            event.name, event.subscription_ref, event.event_id,
        )
        raise SubscriptionNotFound(event.subscription_ref)
    return subscription


def handle_invoice_paid(db: Session, event: DomainEvent) -> None:
    # The first invoice is recorded from checkout.session.completed
    if event.billing_reason == "subscription_create":
        return
    if not event.subscription_ref:
        return

    subscription = _require_subscription(db, event)
    charge_id = event.charge_id or event.invoice_id
    amount = event.amount if event.amount is not None else subscription.amount
    transaction = record_transaction(db, subscription, charge_id, amount, TransactionStatus.SUCCEEDED.value)
    if transaction:
        logger.info("[RECONCILE] Recorded renewal %s for subscription %s", charge_id, subscription.id)


def _fail_pending_transaction(db: Session, event: DomainEvent, notify: bool) -> None:
    transaction = transaction_by_charge(db, event.provider, event.charge_id)
    if transaction and transition_transaction(transaction, TransactionStatus.FAILED.value):
        logger.info("[RECONCILE] Transaction %s marked failed (%s)", transaction.id, event.name)

    subscription = subscription_by_provider_ref(db, event.provider, event.subscription_ref)
    if not subscription and transaction:
        subscription = db.get(Subscription, transaction.subscription_id)
    if not subscription:
        logger.warning("[RECONCILE] %s for unknown subscription %s", event.name, event.subscription_ref)
        return

    if notify:
        organization = db.get(Organization, subscription.organization_id)
        notify_payment_failed(
            subscription.sponsor_email,
            organization.name if organization else None,
            event.provider,
            reference=event.charge_id or event.invoice_id,
            reason=event.failure_reason,
        )


def handle_charge_captured(db: Session, event: DomainEvent) -> None:
    subscription = _require_subscription(db, event)
    if not event.charge_id:
        logger.warning("[RECONCILE] %s without chargeId for %s", event.name, event.subscription_ref)
        return

    transaction = transaction_by_charge(db, event.provider, event.charge_id)
    if transaction:
        if transition_transaction(transaction, TransactionStatus.SUCCEEDED.value):
            logger.info("[RECONCILE] Charge %s captured", event.charge_id)
        return

    amount = event.amount if event.amount is not None else subscription.amount
    if record_transaction(db, subscription, event.charge_id, amount, TransactionStatus.SUCCEEDED.value):
        logger.info("[RECONCILE] Charge %s captured (no pending row)", event.charge_id)


def handle_charge_refunded(db: Session, event: DomainEvent) -> None:
    transaction = transaction_by_charge(db, event.provider, event.charge_id)
    if not transaction:
        logger.info("[RECONCILE] Refund for unknown charge %s, ignoring", event.charge_id)
        return
    if transition_transaction(transaction, TransactionStatus.REFUNDED.value):
        logger.info("[RECONCILE] Charge %s refunded", event.charge_id)


def reconcile(db: Session, event: DomainEvent) -> None:
    kind = event.kind
    if kind == EventKind.CHECKOUT_COMPLETED:
        handle_checkout_completed(db, event)
    elif kind == EventKind.SUBSCRIPTION_CANCELLED:
        _set_subscription_status(db, event, SubscriptionStatus.CANCELLED.value)
    elif kind == EventKind.SUBSCRIPTION_EXPIRED:
        _set_subscription_status(db, event, SubscriptionStatus.EXPIRED.value)
    elif kind == EventKind.AGREEMENT_ACTIVATED:
        _set_subscription_status(db, event, SubscriptionStatus.ACTIVE.value)
    elif kind == EventKind.ACCOUNT_UPDATED:
        handle_account_updated(db, event)
    elif kind == EventKind.INVOICE_PAID:
        handle_invoice_paid(db, event)
    elif kind in (EventKind.INVOICE_PAYMENT_FAILED, EventKind.CHARGE_FAILED):
        _fail_pending_transaction(db, event, notify=True)
    elif kind == EventKind.CHARGE_CANCELLED:
        _fail_pending_transaction(db, event, notify=False)
    elif kind == EventKind.CHARGE_CAPTURED:
        handle_charge_captured(db, event)
    elif kind == EventKind.CHARGE_REFUNDED:
        handle_charge_refunded(db, event)
    else:
        logger.info("[RECONCILE] Unhandled %s event %s", event.provider, event.name)

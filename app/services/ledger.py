"""
Subscription and transaction lookups/inserts shared by checkout, webhooks, the
Vipps callback and the charge scheduler.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.fees import calculate_platform_fee
from app.models.subscription import Subscription, PaymentProvider
from app.models.transaction import Transaction, TransactionStatus
from app.services.idempotency import insert_unique
from app.utils.dates import utcnow


def subscription_by_provider_ref(db: Session, provider: str, ref: Optional[str]) -> Optional[Subscription]:
    """Find a subscription by Stripe subscription id or Vipps agreement id."""
    if not ref:
        return None
    if provider == PaymentProvider.STRIPE.value:
        column = Subscription.stripe_subscription_id
    else:
        column = Subscription.vipps_agreement_id
    return db.query(Subscription).filter(column == ref).first()


def _charge_column(provider: str):
    if provider == PaymentProvider.STRIPE.value:
        return Transaction.stripe_charge_id
    return Transaction.vipps_charge_id


def transaction_by_charge(db: Session, provider: str, charge_id: Optional[str]) -> Optional[Transaction]:
    if not charge_id:
        return None
    return db.query(Transaction).filter(_charge_column(provider) == charge_id).first()


def record_transaction(
    db: Session,
    subscription: Subscription,
    charge_id: str,
    amount: int,
    status: str,
) -> Optional[Transaction]:
    """
    Insert a transaction for `charge_id`. Returns None if a transaction for that
    charge already exists (existence check first, unique constraint as the backstop).
    """
    provider = subscription.payment_provider
    if transaction_by_charge(db, provider, charge_id):
        return None

    transaction = Transaction(
        subscription_id=subscription.id,
        payment_provider=provider,
        organization_id=subscription.organization_id,
        group_id=subscription.group_id,
        individual_id=subscription.individual_id,
        amount=amount,
        platform_fee=calculate_platform_fee(amount),
        status=status,
        paid_at=utcnow() if status == TransactionStatus.SUCCEEDED.value else None,
    )
    if provider == PaymentProvider.STRIPE.value:
        transaction.stripe_charge_id = charge_id
    else:
        transaction.vipps_charge_id = charge_id

    if not insert_unique(db, transaction):
        return None
    return transaction

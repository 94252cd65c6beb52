"""
Allowed status transitions for subscriptions and transactions.

Webhooks arrive out of order and more than once, so every status change goes through
these helpers: a transition that is not allowed (e.g. a stale "activated" after
"stopped", or "failed" after "succeeded") is ignored instead of applied.
"""
import logging

from app.models.subscription import Subscription, SubscriptionStatus
from app.models.transaction import Transaction, TransactionStatus
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

SUBSCRIPTION_TRANSITIONS = {
    SubscriptionStatus.PENDING.value: {
        SubscriptionStatus.ACTIVE.value,
        SubscriptionStatus.CANCELLED.value,
        SubscriptionStatus.EXPIRED.value,
    },
    SubscriptionStatus.ACTIVE.value: {
        SubscriptionStatus.CANCELLED.value,
        SubscriptionStatus.EXPIRED.value,
        SubscriptionStatus.COMPLETED.value,
    },
    SubscriptionStatus.CANCELLED.value: set(),
    SubscriptionStatus.EXPIRED.value: set(),
    SubscriptionStatus.COMPLETED.value: set(),
}

TRANSACTION_TRANSITIONS = {
    TransactionStatus.PENDING.value: {
        TransactionStatus.SUCCEEDED.value,
        TransactionStatus.FAILED.value,
    },
    # A capture may be delivered after a stale failure notice for the same charge
    TransactionStatus.FAILED.value: {TransactionStatus.SUCCEEDED.value},
    TransactionStatus.SUCCEEDED.value: {TransactionStatus.REFUNDED.value},
    TransactionStatus.REFUNDED.value: set(),
}


def transition_subscription(subscription: Subscription, new_status: str) -> bool:
    """Apply `new_status` if allowed. Returns True when the row changed."""
    current = subscription.status
    if current == new_status:
        return False
    if new_status not in SUBSCRIPTION_TRANSITIONS.get(current, set()):
        logger.warning(
            "[STATE] Ignoring subscription %s transition %s -> %s",
            subscription.id, current, new_status,
        )
        return False

    subscription.status = new_status
    now = utcnow()
    if new_status == SubscriptionStatus.ACTIVE.value and subscription.started_at is None:
        subscription.started_at = now
    if new_status == SubscriptionStatus.CANCELLED.value:
        subscription.cancelled_at = now
    return True


def transition_transaction(transaction: Transaction, new_status: str) -> bool:
    current = transaction.status
    if current == new_status:
        return False
    if new_status not in TRANSACTION_TRANSITIONS.get(current, set()):
        logger.warning(
            "[STATE] Ignoring transaction %s transition %s -> %s",
            transaction.id, current, new_status,
        )
        return False

    transaction.status = new_status
    if new_status == TransactionStatus.SUCCEEDED.value:
        transaction.paid_at = utcnow()
    return True

"""
Resolves where to send a sponsor coming back from the Vipps app.

The agreement webhook may not have arrived yet, so the agreement status is polled
here and the subscription updated directly. Returns the frontend URL to redirect to.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.transaction import Transaction
from app.services import vipps_gateway
from app.services.state_machine import transition_subscription
from app.services.vipps_charges import charge_subscription
from app.utils.dates import add_days, utc_today

logger = logging.getLogger(__name__)


def _find_subscription(db: Session, subscription_id: str) -> Optional[Subscription]:
    try:
        parsed = uuid.UUID(subscription_id)
    except ValueError:
        return None
    return db.get(Subscription, parsed)


def _request_first_charge(db: Session, subscription: Subscription) -> None:
    has_transaction = db.query(Transaction.id).filter(Transaction.subscription_id == subscription.id).first()
    if has_transaction:
        return
    due_date = add_days(utc_today(), settings.VIPPS_CHARGE_LEAD_DAYS)
    try:
        charge_id = charge_subscription(db, subscription, due_date)
        logger.info("[CALLBACK] First charge %s requested for subscription %s", charge_id, subscription.id)
    except Exception:
        # The daily charge run picks it up
        db.rollback()
        logger.exception("[CALLBACK] First charge failed for subscription %s", subscription.id)


def resolve_vipps_callback(db: Session, subscription_id: Optional[str]) -> str:
    frontend = settings.FRONTEND_URL
    if not subscription_id:
        return f"{frontend}/?error=missing_subscription"

    subscription = _find_subscription(db, subscription_id)
    if not subscription:
        logger.warning("[CALLBACK] Unknown subscription %s", subscription_id)
        return f"{frontend}/?error=subscription_not_found"

    pending_url = f"{frontend}/checkout/vipps/pending?sub={subscription.id}"
    if not subscription.vipps_agreement_id:
        return pending_url

    organization = subscription.organization
    try:
        agreement = vipps_gateway.get_agreement(organization.vipps_msn, subscription.vipps_agreement_id)
    except Exception:
        logger.exception("[CALLBACK] Could not fetch agreement %s", subscription.vipps_agreement_id)
        return pending_url

    status = agreement.get("status")
    logger.info("[CALLBACK] Agreement %s status %s", subscription.vipps_agreement_id, status)

    if status == "ACTIVE":
        if transition_subscription(subscription, SubscriptionStatus.ACTIVE.value):
            db.commit()
        if subscription.status == SubscriptionStatus.ACTIVE.value:
            _request_first_charge(db, subscription)
        return f"{frontend}/bekreftelse?sub={subscription.id}&provider=vipps"

    if status in ("EXPIRED", "STOPPED"):
        if transition_subscription(subscription, SubscriptionStatus.EXPIRED.value):
            db.commit()
        return f"{frontend}/stott/{organization.slug}?error=vipps_rejected"

    return pending_url

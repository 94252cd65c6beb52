"""
Daily Vipps charge run.

Vipps agreements don't bill by themselves; for every active monthly agreement we
request the next charge a few days ahead of its due date and record it as a pending
transaction. The webhook later moves it to succeeded or failed.
"""
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.fees import calculate_platform_fee
from app.models.subscription import Subscription, PaymentProvider, SubscriptionStatus, SubscriptionInterval
from app.models.transaction import Transaction, TransactionStatus
from app.schemas.cron import ChargeResult, ChargeRunSummary, ChargeRunResponse
from app.services import vipps_gateway
from app.utils.dates import add_days, month_bounds, utc_today, utcnow

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "januar", "februar", "mars", "april", "mai", "juni",
    "juli", "august", "september", "oktober", "november", "desember",
]


def due_subscriptions(db: Session) -> List[Subscription]:
    return (
        db.query(Subscription)
        .filter(
            Subscription.payment_provider == PaymentProvider.VIPPS.value,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.interval == SubscriptionInterval.MONTHLY.value,
            Subscription.vipps_agreement_id.isnot(None),
        )
        .order_by(Subscription.created_at)
        .all()
    )


def skip_reason(db: Session, subscription: Subscription, due_date: date, now: datetime) -> Optional[str]:
    """Why no charge should be requested for this cycle, or None if one is due."""
    organization = subscription.organization
    if not organization or not organization.vipps_msn:
        return "Organization has no Vipps merchant serial number"

    month_start, month_end = month_bounds(due_date)
    in_cycle = (
        db.query(Transaction.id)
        .filter(
            Transaction.subscription_id == subscription.id,
            Transaction.created_at >= month_start,
            Transaction.created_at < month_end,
        )
        .first()
    )
    if in_cycle:
        return f"Already charged for {due_date.strftime('%Y-%m')}"

    # A pending charge is resolved by Vipps within lead + retry days; older ones lost their webhook
    pending_cutoff = now - timedelta(days=settings.VIPPS_CHARGE_LEAD_DAYS + settings.VIPPS_CHARGE_RETRY_DAYS)
    pending = (
        db.query(Transaction)
        .filter(
            Transaction.subscription_id == subscription.id,
            Transaction.status == TransactionStatus.PENDING.value,
        )
        .all()
    )
    for transaction in pending:
        if transaction.created_at >= pending_cutoff:
            return "Previous charge is still pending"
        logger.warning(
            "[CRON] Stale pending charge %s for subscription %s (created %s), ignoring",
            transaction.vipps_charge_id, subscription.id, transaction.created_at,
        )

    last_succeeded = (
        db.query(Transaction)
        .filter(
            Transaction.subscription_id == subscription.id,
            Transaction.status == TransactionStatus.SUCCEEDED.value,
        )
        .order_by(Transaction.created_at.desc())
        .first()
    )
    if last_succeeded:
        days_since = (now - last_succeeded.created_at).days
        if days_since < settings.VIPPS_MIN_DAYS_BETWEEN_CHARGES:
            return f"Only {days_since} days since last charge"

    return None


def charge_subscription(db: Session, subscription: Subscription, due_date: date, now: Optional[datetime] = None) -> str:
    """Request the charge and record it as pending. Returns the Vipps charge id."""
    organization = subscription.organization
    if not organization or not organization.vipps_msn:
        raise ValueError("Organization has no Vipps merchant serial number")

    charge = vipps_gateway.create_charge(
        organization.vipps_msn,
        subscription.vipps_agreement_id,
        amount=subscription.amount,
        description=f"Støtte {MONTH_NAMES[due_date.month - 1]}",
        due_date=due_date.isoformat(),
    )
    charge_id = charge["chargeId"]

    # Same idempotency key on a re-run returns the same charge; don't record it twice
    existing = db.query(Transaction).filter(Transaction.vipps_charge_id == charge_id).first()
    if not existing:
        db.add(Transaction(
            subscription_id=subscription.id,
            payment_provider=PaymentProvider.VIPPS.value,
            vipps_charge_id=charge_id,
            organization_id=subscription.organization_id,
            group_id=subscription.group_id,
            individual_id=subscription.individual_id,
            amount=subscription.amount,
            platform_fee=calculate_platform_fee(subscription.amount),
            status=TransactionStatus.PENDING.value,
            created_at=now or utcnow(),
        ))
    db.commit()
    return charge_id


def run_vipps_charges(db: Session, today: Optional[date] = None, now: Optional[datetime] = None) -> ChargeRunResponse:
    today = today or utc_today()
    now = now or utcnow()
    due_date = add_days(today, settings.VIPPS_CHARGE_LEAD_DAYS)

    subscriptions = due_subscriptions(db)
    logger.info("[CRON] Vipps charge run for %s: %d active agreements, due %s", today, len(subscriptions), due_date)

    summary = ChargeRunSummary()
    results: List[ChargeResult] = []
    for subscription in subscriptions:
        subscription_id = str(subscription.id)
        try:
            reason = skip_reason(db, subscription, due_date, now)
            if reason:
                summary.skipped += 1
                results.append(ChargeResult(subscription_id=subscription_id, status="skipped", error=reason))
                continue

            charge_id = charge_subscription(db, subscription, due_date, now)
            summary.created += 1
            results.append(ChargeResult(subscription_id=subscription_id, status="created", charge_id=charge_id))
            logger.info("[CRON] Charge %s requested for subscription %s", charge_id, subscription_id)
        except Exception as e:
            db.rollback()
            summary.failed += 1
            results.append(ChargeResult(subscription_id=subscription_id, status="failed", error=str(e)))
            logger.exception("[CRON] Charge failed for subscription %s", subscription_id)

    logger.info(
        "[CRON] Vipps charge run done: %d created, %d failed, %d skipped",
        summary.created, summary.failed, summary.skipped,
    )
    return ChargeRunResponse(summary=summary, results=results)

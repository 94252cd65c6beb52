"""
Out-of-band sponsor notifications.

Delivery (email) is not wired up yet; the hook records what should be sent so it can be
picked up from logs and replaced by a mail integration without touching the reconciler.
"""
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def notify_payment_failed(
    sponsor_email: str,
    organization_name: Optional[str],
    provider: str,
    reference: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    logger.info(
        "[NOTIFY] Payment failed: notify %s about %s payment to %s (ref=%s, reason=%s)",
        sponsor_email, provider, organization_name or "unknown organization", reference, reason,
    )

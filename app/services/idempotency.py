"""
Idempotency ledger and constraint-backed inserts.

The datastore's unique constraints are the source of truth for "already handled":
we insert first and treat an IntegrityError as the duplicate signal instead of
reading before writing.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.processed_event import ProcessedEvent

logger = logging.getLogger(__name__)


def insert_unique(db: Session, obj) -> bool:
    """
    Add `obj` and flush. Returns False if a unique constraint rejected it.

    On a violation the whole unit of work is rolled back, so callers must use this for
    the first write of a request or accept losing earlier pending writes.
    """
    db.add(obj)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        logger.info("[IDEMPOTENCY] Duplicate %s rejected by constraint: %s", type(obj).__name__, e.orig)
        return False
    return True


def mark_event_processed(db: Session, provider: str, event_id: str) -> bool:
    """
    Record (provider, event_id). Returns False if it was already recorded.

    The marker is flushed, not committed: it becomes durable together with the
    handler's own writes, and a failing handler rolls it back so the provider's
    retry gets processed.
    """
    return insert_unique(db, ProcessedEvent(provider=provider, event_id=event_id))


def vipps_event_id(name: str, agreement_id: Optional[str], charge_id: Optional[str], timestamp: Optional[str]) -> str:
    """
    Vipps webhook payloads carry no event id. Build a deterministic one so a
    redelivery of the same event maps to the same ledger key.

    A redelivery with a different timestamp would get a new key; the handlers stay
    safe in that case because they converge on the same end state.
    """
    primary = agreement_id or charge_id or "unknown"
    if charge_id and agreement_id:
        primary = f"{agreement_id}:{charge_id}"
    if timestamp:
        return f"{name}:{primary}:{timestamp}"
    return f"{name}:{primary}"

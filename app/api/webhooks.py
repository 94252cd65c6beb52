"""
Payment provider webhooks.

Both endpoints follow the same protocol: verify the signature, normalize the payload,
claim (provider, event_id) in the idempotency ledger, apply the event, commit once.
A failing handler answers 500 and rolls back its ledger entry so the retry is processed.
"""
import json
import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import SubscriptionNotFound
from app.core.security import verify_vipps_webhook
from app.db.session import get_db
from app.schemas.webhook import VippsWebhookEvent, WebhookAck
from app.services import stripe_gateway
from app.services.idempotency import mark_event_processed
from app.services.payment_events import DomainEvent, parse_stripe_event, parse_vipps_event
from app.services.reconciler import reconcile

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _process(db: Session, event: DomainEvent) -> JSONResponse:
    if not event.event_id:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing event id")

    try:
        if not mark_event_processed(db, event.provider, event.event_id):
            logger.info("[WEBHOOK] Duplicate %s event %s (%s), skipping", event.provider, event.event_id, event.name)
            return JSONResponse(content=WebhookAck(duplicate=True).model_dump(exclude_none=True))

        reconcile(db, event)
        db.commit()
    except SubscriptionNotFound as e:
        db.rollback()
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Subscription not found: {e}")
    except Exception as e:
        db.rollback()
        logger.exception("[WEBHOOK] Handler failed for %s event %s (%s)", event.provider, event.event_id, event.name)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Webhook handler failed")

    logger.info("[WEBHOOK] Processed %s event %s (%s)", event.provider, event.event_id, event.name)
    return JSONResponse(content=WebhookAck().model_dump(exclude_none=True))


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("[WEBHOOK] STRIPE_WEBHOOK_SECRET is not configured")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook secret not configured")
    if not stripe_signature:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing stripe-signature header")

    body = await request.body()
    # Signature check, DB writes and Stripe API calls are blocking; keep them off the event loop
    return await run_in_threadpool(_handle_stripe, db, body, stripe_signature)


def _handle_stripe(db: Session, body: bytes, stripe_signature: str) -> JSONResponse:
    try:
        payload = stripe_gateway.construct_event(body, stripe_signature)
    except ValueError as e:
        logger.warning("[WEBHOOK] Invalid Stripe payload: %s", e)
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload")
    except stripe.SignatureVerificationError as e:
        logger.warning("[WEBHOOK] Stripe signature verification failed: %s", e)
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid signature")

    return _process(db, parse_stripe_event(payload))


@router.post("/vipps")
async def vipps_webhook(request: Request, db: Session = Depends(get_db)):
    if not settings.VIPPS_WEBHOOK_SECRET:
        logger.error("[WEBHOOK] VIPPS_WEBHOOK_SECRET is not configured")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook secret not configured")

    body = await request.body()
    path_and_query = request.url.path
    if request.url.query:
        path_and_query = f"{path_and_query}?{request.url.query}"
    return await run_in_threadpool(_handle_vipps, db, body, dict(request.headers), path_and_query)


def _handle_vipps(db: Session, body: bytes, headers: dict, path_and_query: str) -> JSONResponse:
    if not verify_vipps_webhook(body, headers, path_and_query, settings.VIPPS_WEBHOOK_SECRET):
        logger.warning("[WEBHOOK] Vipps signature verification failed")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid signature")

    try:
        payload = VippsWebhookEvent.model_validate(json.loads(body))
    except (ValueError, ValidationError) as e:
        logger.warning("[WEBHOOK] Invalid Vipps payload: %s", e)
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid payload")

    return _process(db, parse_vipps_event(payload))

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from typing import Optional

from app.db.session import get_db
from app.schemas.checkout import CheckoutRequest, CheckoutResponse, ConfirmationResponse
from app.services.checkout import create_checkout, get_confirmation
from app.services.vipps_callback import resolve_vipps_callback

router = APIRouter()


@router.post("", response_model=CheckoutResponse)
def checkout(request: CheckoutRequest, db: Session = Depends(get_db)):
    """
    Start a donation. Returns the URL to send the sponsor to: Stripe's hosted checkout
    or the Vipps agreement confirmation page.
    """
    return CheckoutResponse(url=create_checkout(db, request))


@router.get("/confirmation", response_model=ConfirmationResponse, response_model_by_alias=True)
def confirmation(
    provider: str = Query(...),
    session_id: Optional[str] = Query(None),
    sub: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return get_confirmation(db, provider, session_id=session_id, subscription_id=sub)


@router.get("/vipps/callback")
def vipps_callback(sub: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Sponsor returns here from the Vipps app; also used by the "check again" button."""
    return RedirectResponse(url=resolve_vipps_callback(db, sub), status_code=302)

"""
Platform admin endpoints (machine-to-machine, `Authorization: Bearer <ADMIN_API_KEY>`).
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID

from app.api.deps import require_admin_key
from app.db.session import get_db
from app.schemas.checkout import OnboardingLinkResponse
from app.services.checkout import create_onboarding_link

router = APIRouter()


@router.post(
    "/organizations/{organization_id}/stripe-link",
    response_model=OnboardingLinkResponse,
    response_model_by_alias=True,
)
def stripe_onboarding_link(
    organization_id: UUID,
    db: Session = Depends(get_db),
    _: None = Depends(require_admin_key),
):
    """Stripe Connect onboarding link for a club, creating its Express account on first use."""
    return OnboardingLinkResponse(onboarding_url=create_onboarding_link(db, organization_id))

from app.schemas.checkout import CheckoutRequest, CheckoutResponse, ConfirmationResponse, OnboardingLinkResponse
from app.schemas.cron import ChargeResult, ChargeRunSummary, ChargeRunResponse
from app.schemas.webhook import VippsWebhookEvent, WebhookAck

__all__ = [
    "CheckoutRequest", "CheckoutResponse", "ConfirmationResponse", "OnboardingLinkResponse",
    "ChargeResult", "ChargeRunSummary", "ChargeRunResponse",
    "VippsWebhookEvent", "WebhookAck",
]

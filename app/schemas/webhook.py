from pydantic import BaseModel, Field
from typing import Optional


class VippsWebhookEvent(BaseModel):
    """Vipps Recurring webhook body. Unknown fields are ignored."""
    name: str
    agreement_id: Optional[str] = Field(None, alias="agreementId")
    charge_id: Optional[str] = Field(None, alias="chargeId")
    amount: Optional[int] = None  # øre
    timestamp: Optional[str] = None
    actor: Optional[str] = None
    failure_reason: Optional[str] = Field(None, alias="failureReason")

    class Config:
        populate_by_name = True


class WebhookAck(BaseModel):
    received: bool = True
    duplicate: Optional[bool] = None

from pydantic import BaseModel, Field
from typing import List, Optional


class ChargeResult(BaseModel):
    subscription_id: str = Field(serialization_alias="subscriptionId")
    status: str  # created, failed, skipped
    charge_id: Optional[str] = Field(None, serialization_alias="chargeId")
    error: Optional[str] = None


class ChargeRunSummary(BaseModel):
    created: int = 0
    failed: int = 0
    skipped: int = 0


class ChargeRunResponse(BaseModel):
    summary: ChargeRunSummary
    results: List[ChargeResult]

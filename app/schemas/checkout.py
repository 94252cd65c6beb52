from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional, Union
from uuid import UUID

MIN_AMOUNT = 1000  # 10 NOK in øre
MAX_AMOUNT = 10000000  # 100 000 NOK in øre


class OrganizationRecipient(BaseModel):
    type: Literal["organization"]
    organization_id: UUID = Field(alias="organizationId")

    class Config:
        populate_by_name = True


class GroupRecipient(BaseModel):
    type: Literal["group"]
    organization_id: UUID = Field(alias="organizationId")
    group_id: UUID = Field(alias="groupId")

    class Config:
        populate_by_name = True


class IndividualRecipient(BaseModel):
    type: Literal["individual"]
    organization_id: UUID = Field(alias="organizationId")
    group_id: Optional[UUID] = Field(None, alias="groupId")
    individual_id: UUID = Field(alias="individualId")

    class Config:
        populate_by_name = True


Recipient = Union[OrganizationRecipient, GroupRecipient, IndividualRecipient]


class CheckoutRequest(BaseModel):
    payment_method: Literal["stripe", "vipps"] = Field(alias="paymentMethod")
    recipient: Recipient = Field(discriminator="type")
    amount: int = Field(ge=MIN_AMOUNT, le=MAX_AMOUNT)  # øre
    interval: Literal["monthly", "one_time"]
    sponsor_email: EmailStr = Field(alias="sponsorEmail")
    sponsor_name: Optional[str] = Field(None, alias="sponsorName")
    sponsor_phone: Optional[str] = Field(None, alias="sponsorPhone")  # Required for Vipps, checked by the orchestrator

    class Config:
        populate_by_name = True

    @property
    def group_id(self) -> Optional[UUID]:
        return getattr(self.recipient, "group_id", None)

    @property
    def individual_id(self) -> Optional[UUID]:
        return getattr(self.recipient, "individual_id", None)


class CheckoutResponse(BaseModel):
    url: str


class ConfirmationResponse(BaseModel):
    provider: str
    is_subscription: bool = Field(False, serialization_alias="isSubscription")
    amount: Optional[int] = None
    organization_name: Optional[str] = Field(None, serialization_alias="organizationName")
    portal_url: Optional[str] = Field(None, serialization_alias="portalUrl")


class OnboardingLinkResponse(BaseModel):
    onboarding_url: str = Field(serialization_alias="onboardingUrl")

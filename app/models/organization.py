from sqlalchemy import Column, String, DateTime, Boolean, Uuid
import uuid
from app.db.session import Base
from app.utils.dates import utcnow


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    contact_email = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)  # active, pending, suspended

    # Stripe Connect
    stripe_account_id = Column(String, nullable=True, unique=True, index=True)
    stripe_charges_enabled = Column(Boolean, default=False, nullable=False)

    # Vipps Recurring
    vipps_msn = Column(String, nullable=True)  # Merchant serial number of the club's sales unit
    vipps_enabled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def accepts(self, provider: str) -> bool:
        """True when the organization can take a donation through `provider`."""
        if self.status != "active":
            return False
        if provider == "stripe":
            return bool(self.stripe_charges_enabled and self.stripe_account_id)
        if provider == "vipps":
            return bool(self.vipps_enabled and self.vipps_msn)
        return False

    def available_payment_methods(self) -> list:
        methods = []
        if self.accepts("vipps"):
            methods.append("vipps")  # Vipps first, it's the primary method in Norway
        if self.accepts("stripe"):
            methods.append("stripe")
        return methods

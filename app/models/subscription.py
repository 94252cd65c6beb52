from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import enum
import uuid
from app.db.session import Base
from app.utils.dates import utcnow


class PaymentProvider(str, enum.Enum):
    STRIPE = "stripe"
    VIPPS = "vipps"


class SubscriptionStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXPIRED = "expired"


class SubscriptionInterval(str, enum.Enum):
    MONTHLY = "monthly"
    ONE_TIME = "one_time"


class Subscription(Base):
    """
    A sponsor's commitment to a recipient (organization, group or individual).

    Vipps rows are created `pending` by checkout and activated by the callback or webhook.
    Stripe rows are created `active` from checkout.session.completed. Rows are never deleted,
    except the compensating delete of a pending Vipps row whose agreement could not be created.
    """
    __tablename__ = "subscriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    payment_provider = Column(String, nullable=False, index=True)  # stripe, vipps

    # Stripe
    stripe_subscription_id = Column(String, nullable=True, unique=True)  # null for one-time payments
    stripe_customer_id = Column(String, nullable=True)

    # Vipps
    vipps_agreement_id = Column(String, nullable=True, unique=True)
    sponsor_phone = Column(String, nullable=True)

    sponsor_email = Column(String, nullable=False)
    sponsor_name = Column(String, nullable=True)

    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False, index=True)
    group_id = Column(Uuid, ForeignKey("groups.id"), nullable=True, index=True)
    individual_id = Column(Uuid, ForeignKey("individuals.id"), nullable=True, index=True)

    amount = Column(Integer, nullable=False)  # øre
    interval = Column(String, nullable=False)  # monthly, one_time
    status = Column(String, nullable=False, default=SubscriptionStatus.PENDING.value, index=True)

    started_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    organization = relationship("Organization")

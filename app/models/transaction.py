from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, Uuid
import enum
import uuid
from app.db.session import Base
from app.utils.dates import utcnow


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    subscription_id = Column(Uuid, ForeignKey("subscriptions.id"), nullable=False, index=True)
    payment_provider = Column(String, nullable=False)  # stripe, vipps

    # One row per provider charge; unique so concurrent duplicate deliveries collide in the DB
    stripe_charge_id = Column(String, nullable=True, unique=True)
    vipps_charge_id = Column(String, nullable=True, unique=True)

    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False, index=True)
    group_id = Column(Uuid, ForeignKey("groups.id"), nullable=True)
    individual_id = Column(Uuid, ForeignKey("individuals.id"), nullable=True)

    amount = Column(Integer, nullable=False)  # øre
    platform_fee = Column(Integer, nullable=False, default=0)  # øre
    status = Column(String, nullable=False, default=TransactionStatus.PENDING.value, index=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

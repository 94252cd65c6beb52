from sqlalchemy import Column, String, DateTime, UniqueConstraint, Uuid
import uuid
from app.db.session import Base
from app.utils.dates import utcnow


class ProcessedEvent(Base):
    """Append-only idempotency marker. A unique violation on insert means "already handled"."""
    __tablename__ = "processed_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    provider = Column(String, nullable=False)  # stripe, vipps
    event_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_processed_events_provider_event_id"),
    )

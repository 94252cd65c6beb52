from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
import uuid
from app.db.session import Base
from app.utils.dates import utcnow


class Individual(Base):
    __tablename__ = "individuals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False, index=True)
    group_id = Column(Uuid, ForeignKey("groups.id"), nullable=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    status = Column(String, nullable=False, default="active")  # active, inactive
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
import uuid
from app.db.session import Base
from app.utils.dates import utcnow


class ReportShare(Base):
    __tablename__ = "report_shares"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(Uuid, ForeignKey("organizations.id"), nullable=False, index=True)
    token = Column(String, nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

# dreamsaver/models/notification.py
import uuid
from sqlalchemy import Column, String, ForeignKey, Boolean, DateTime, Uuid
from dreamsaver.core.database import Base, utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(length=64), nullable=False, index=True)
    goal_id = Column(Uuid(as_uuid=True), ForeignKey("goals.id", ondelete="SET NULL"), nullable=True)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    type = Column(String, nullable=False)  # e.g. 'GOAL_COMPLETE'
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

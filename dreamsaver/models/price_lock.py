# dreamsaver/models/price_lock.py
import enum
import uuid
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Enum, Uuid, UniqueConstraint
from dreamsaver.core.database import Base, utcnow


class PriceLockStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    RELEASED = "RELEASED"


class PriceLock(Base):
    __tablename__ = "price_locks"
    __table_args__ = (
        UniqueConstraint("product_id", "goal_id", name="uq_price_locks_product_goal"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    goal_id = Column(Uuid(as_uuid=True), ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = Column(String(length=64), nullable=True)
    locked_by = Column(String(length=64), nullable=False)
    locked_price = Column(Numeric(12, 2), nullable=False)
    original_price = Column(Numeric(12, 2), nullable=False)
    status = Column(Enum(PriceLockStatus, native_enum=False, length=16), nullable=False, default=PriceLockStatus.ACTIVE)
    expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<PriceLock product_id={self.product_id} goal_id={self.goal_id} price={self.locked_price}>"

# dreamsaver/models/deposit.py
import enum
import uuid
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Enum, Uuid, CheckConstraint, UniqueConstraint
from dreamsaver.core.database import Base, utcnow


class DepositStatus(str, enum.Enum):
    # Deposits are only written once the payment is confirmed externally
    COMPLETED = "COMPLETED"


class Deposit(Base):
    """One confirmed unit of funds applied to a goal. Never updated."""

    __tablename__ = "deposits"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_deposits_amount_positive"),
        # A replayed payment confirmation must not settle twice
        UniqueConstraint("goal_id", "provider_reference", name="uq_deposits_goal_provider_reference"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    goal_id = Column(Uuid(as_uuid=True), ForeignKey("goals.id", ondelete="RESTRICT"), nullable=False, index=True)
    user_id = Column(String(length=64), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(length=32), nullable=False, default="STRIPE")
    status = Column(Enum(DepositStatus, native_enum=False, length=16), nullable=False, default=DepositStatus.COMPLETED)
    provider_reference = Column(String(length=255), nullable=False)

    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<Deposit amount={self.amount} goal_id={self.goal_id} ref={self.provider_reference}>"

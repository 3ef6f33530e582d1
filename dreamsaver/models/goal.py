# dreamsaver/models/goal.py
import enum
import uuid
from decimal import Decimal
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Enum, Uuid, CheckConstraint, Index, text
from dreamsaver.core.database import Base, utcnow
from dreamsaver.core.errors import IllegalTransitionError


class GoalStatus(str, enum.Enum):
    DRAFT = "DRAFT"          # price reserved, no funds committed
    ACTIVE = "ACTIVE"        # accepting deposits
    COMPLETED = "COMPLETED"  # funded, deposits locked
    REFUNDED = "REFUNDED"    # cancelled with funds, kept for the audit trail
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]

    @property
    def accepts_deposits(self) -> bool:
        return self is GoalStatus.ACTIVE

    def can_transition_to(self, target: "GoalStatus") -> bool:
        return target in _TRANSITIONS[self]

    def transition(self, target: "GoalStatus") -> "GoalStatus":
        if not self.can_transition_to(target):
            raise IllegalTransitionError(
                f"Goal cannot move from {self.value} to {target.value}"
            )
        return target


_TRANSITIONS = {
    GoalStatus.DRAFT: frozenset({GoalStatus.ACTIVE, GoalStatus.CANCELLED}),
    GoalStatus.ACTIVE: frozenset({GoalStatus.COMPLETED, GoalStatus.REFUNDED, GoalStatus.CANCELLED}),
    GoalStatus.COMPLETED: frozenset(),
    GoalStatus.REFUNDED: frozenset(),
    GoalStatus.CANCELLED: frozenset(),
}


class Goal(Base):
    __tablename__ = "goals"
    __table_args__ = (
        CheckConstraint("target_amount > 0", name="ck_goals_target_positive"),
        CheckConstraint("saved >= 0", name="ck_goals_saved_non_negative"),
        Index("ix_goals_user_product_status", "user_id", "product_id", "status"),
        # One draft per product per user
        Index(
            "uq_goals_one_draft_per_product",
            "user_id",
            "product_id",
            unique=True,
            postgresql_where=text("status = 'DRAFT'"),
            sqlite_where=text("status = 'DRAFT'"),
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Subject of the identity provider's token
    user_id = Column(String(length=64), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    target_amount = Column(Numeric(12, 2), nullable=False)
    # Cached projection of the ledger, recomputed on every settlement
    saved = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    status = Column(Enum(GoalStatus, native_enum=False, length=16), nullable=False, default=GoalStatus.ACTIVE)
    locked_price = Column(Numeric(12, 2), nullable=True)
    end_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Redemption
    redeemed_at = Column(DateTime, nullable=True)
    delivery_id = Column(String(length=128), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def progress_percent(self) -> float:
        """Uncapped; clamping to 100 is left to the display layer."""
        target = Decimal(self.target_amount or 0)
        if target <= 0:
            return 0.0
        return float(Decimal(self.saved or 0) / target * 100)

    @property
    def remaining_amount(self) -> Decimal:
        return Decimal(self.target_amount or 0) - Decimal(self.saved or 0)

    @property
    def is_redeemed(self) -> bool:
        return self.redeemed_at is not None

    def transition_to(self, target: GoalStatus) -> None:
        self.status = GoalStatus(self.status).transition(target)
        if target is GoalStatus.COMPLETED:
            self.completed_at = utcnow()

    def __repr__(self):
        return f"<Goal id={self.id} status={self.status} saved={self.saved}/{self.target_amount} user_id={self.user_id}>"

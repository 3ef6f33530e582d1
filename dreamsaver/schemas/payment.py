# dreamsaver/schemas/payment.py
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
import uuid


class PaymentMetadata(BaseModel):
    """Metadata we attach to a checkout session and read back from the webhook."""

    app_id: str
    goal_ids: List[uuid.UUID] = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    amount_paid: Decimal = Field(..., gt=0)

    @field_validator("goal_ids", mode="before")
    @classmethod
    def split_goal_ids(cls, value):
        # Stripe metadata values are flat strings: "id1,id2"
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @classmethod
    def from_stripe(cls, metadata: dict) -> "PaymentMetadata":
        return cls(
            app_id=metadata.get("appId", ""),
            goal_ids=metadata.get("goalIds", ""),
            user_id=metadata.get("userId", ""),
            amount_paid=metadata.get("amountPaid"),
        )

    def to_stripe(self) -> dict:
        return {
            "appId": self.app_id,
            "goalIds": ",".join(str(goal_id) for goal_id in self.goal_ids),
            "userId": self.user_id,
            "amountPaid": str(self.amount_paid),
        }


class PaymentEvent(BaseModel):
    """A verified Stripe event, reduced to what settlement needs."""

    event_id: str
    type: str
    session_id: Optional[str] = None
    payment_status: Optional[str] = None
    metadata: Optional[PaymentMetadata] = None


class CheckoutSession(BaseModel):
    id: str
    url: Optional[str] = None
    payment_status: Optional[str] = None
    amount_total: Optional[int] = None  # minor units
    metadata: dict = {}


class MultiGoalCheckoutRequest(BaseModel):
    goal_ids: List[uuid.UUID] = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class WebhookAck(BaseModel):
    received: bool = True
    settled: int = 0
    skipped: int = 0

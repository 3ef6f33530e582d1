# dreamsaver/schemas/goal.py
from typing import List, Literal, Optional
from pydantic import BaseModel, Field
from datetime import datetime, date
from decimal import Decimal
import uuid

from dreamsaver.models.goal import GoalStatus
from dreamsaver.schemas.deposit import DepositRead


class GoalCreate(BaseModel):
    product_id: uuid.UUID
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    target_date: Optional[datetime] = None
    # DRAFT reserves the price only, ACTIVE starts saving right away
    status: Literal["DRAFT", "ACTIVE"] = "ACTIVE"


class GoalRead(BaseModel):
    id: uuid.UUID
    user_id: str
    product_id: uuid.UUID
    status: GoalStatus
    target_amount: Decimal
    saved: Decimal
    locked_price: Optional[Decimal] = None
    progress_percent: float
    remaining_amount: Decimal
    end_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    redeemed_at: Optional[datetime] = None
    delivery_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GoalDetail(GoalRead):
    deposits: List[DepositRead] = []


class GoalList(BaseModel):
    drafts: List[GoalRead] = []
    active: List[GoalRead] = []
    terminal: List[GoalRead] = []


class GoalWriteResult(BaseModel):
    message: str
    goal: GoalRead


class DepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str


class ConfirmDepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    provider_reference: str = Field(..., min_length=1, max_length=255)


class ConfirmDepositResponse(BaseModel):
    success: bool = True
    completed: bool
    replayed: bool
    goal: GoalRead


class RefundQuote(BaseModel):
    saved: Decimal
    fee_percent: Decimal
    fee: Decimal
    refundable: Decimal


class CancelGoalResponse(BaseModel):
    action: Literal["DELETED", "REFUNDED"]
    goal_id: uuid.UUID
    message: str
    refund: Optional[RefundQuote] = None


class RedeemRequest(BaseModel):
    address_id: str = Field(..., min_length=1)
    delivery_date: date


class RedeemResponse(BaseModel):
    success: bool = True
    delivery_id: str
    goal: GoalRead

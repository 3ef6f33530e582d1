# dreamsaver/schemas/deposit.py
from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
import uuid

from dreamsaver.models.deposit import DepositStatus


class DepositRead(BaseModel):
    id: uuid.UUID
    goal_id: uuid.UUID
    user_id: str
    amount: Decimal
    payment_method: str
    status: DepositStatus
    provider_reference: str
    created_at: datetime

    class Config:
        from_attributes = True

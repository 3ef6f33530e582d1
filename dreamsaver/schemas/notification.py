from pydantic import BaseModel
from typing import Optional
from datetime import datetime
import uuid

class NotificationBase(BaseModel):
    title: str
    message: str
    type: str
    goal_id: Optional[uuid.UUID] = None

class NotificationCreate(NotificationBase):
    user_id: str

class NotificationRead(NotificationBase):
    id: uuid.UUID
    user_id: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True

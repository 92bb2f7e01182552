# file: app/models/notification.py

from pydantic import BaseModel, ConfigDict
from typing import List, Literal
from datetime import datetime

NotificationType = Literal["overdue", "due_soon", "issued", "returned"]


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    role: str
    institution_id: int
    type: NotificationType
    title: str
    message: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GenerationResponse(BaseModel):
    status: Literal["ok", "partial", "aborted"]
    created: int
    skipped: int
    failed: int
    notifications: List[NotificationResponse]

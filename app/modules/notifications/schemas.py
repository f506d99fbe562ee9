from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationIntent(BaseModel):
    """An undispatched message to one user."""
    user_id: str
    title: str
    message: str
    related_job_id: Optional[str] = None
    type: NotificationType = NotificationType.INFO

    class Config:
        frozen = True

    def to_row(self) -> dict:
        return {
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "related_job_id": self.related_job_id,
            "type": self.type.value,
            "is_read": False,
        }


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    related_job_id: Optional[str] = None
    type: Optional[str] = "info"
    is_read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    count: int

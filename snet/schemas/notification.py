from pydantic import BaseModel, ConfigDict, field_serializer
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime

from snet.core.time_utils import format_local


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> Optional[str]:
        # Shown to students as school-local time
        return format_local(value)


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    unread_count: int

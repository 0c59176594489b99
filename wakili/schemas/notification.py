from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import Field

from wakili.schemas.base import CamelModel


class NotificationResponse(CamelModel):
    """알림 응답 스키마"""
    id: str
    user_id: str
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationPagination(CamelModel):
    page: int
    limit: int
    total: int
    unread_count: int
    has_more: bool


class NotificationList(CamelModel):
    """알림 목록 스키마"""
    notifications: List[NotificationResponse] = Field(default_factory=list)
    pagination: NotificationPagination

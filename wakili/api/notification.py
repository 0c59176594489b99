from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wakili.api.dependencies import get_current_user
from wakili.core.config import settings
from wakili.core.errors import ResourceNotFoundException
from wakili.database.mysql import get_async_session
from wakili.models.users import User
from wakili.schemas.notification import NotificationList, NotificationPagination, NotificationResponse
from wakili.services import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationList, response_model_by_alias=True)
async def get_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.notifications_page_size, ge=1, le=100),
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """알림 목록 조회 (최신순)"""
    notifications, total = await notification_service.get_user_notifications(
        db,
        current_user.id,
        skip=(page - 1) * limit,
        limit=limit,
        unread_only=unread_only
    )
    unread_count = await notification_service.count_unread(db, current_user.id)

    return NotificationList(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        pagination=NotificationPagination(
            page=page,
            limit=limit,
            total=total,
            unread_count=unread_count,
            has_more=page * limit < total
        )
    )


@router.patch("/{notification_id}/read", response_model=NotificationResponse, response_model_by_alias=True)
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """단일 알림 읽음 처리 (본인 알림만)"""
    notification = await notification_service.find_notification_for_user(
        db, notification_id, current_user.id
    )
    if not notification:
        raise ResourceNotFoundException("Notification")

    notification = await notification_service.mark_notification_read(db, notification)
    return NotificationResponse.model_validate(notification)

"""
Notification service layer for database operations.
"""

from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from wakili.core.logging import get_logger, log_database_operation
from wakili.models.notifications import Notification
from wakili.utils.time_utils import utcnow

logger = get_logger(__name__)


async def create_notification(
    db: AsyncSession,
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None
) -> Notification:
    """알림 생성"""
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        data=data,
        is_read=False,
        created_at=utcnow()
    )
    db.add(notification)
    await db.commit()
    return notification


async def find_notification_for_user(
    db: AsyncSession,
    notification_id: str,
    user_id: str
) -> Optional[Notification]:
    """수신자 본인의 알림만 조회"""
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


async def mark_notification_read(db: AsyncSession, notification: Notification) -> Notification:
    """단일 알림 읽음 처리"""
    notification.is_read = True
    notification.read_at = utcnow()
    await db.commit()
    return notification


async def mark_notifications_read(
    db: AsyncSession,
    user_id: str,
    notification_ids: List[str]
) -> List[str]:
    """
    여러 알림을 읽음 처리합니다.

    다른 사용자의 알림 ID는 에러 없이 제외됩니다.

    Returns:
        List[str]: 실제로 처리된 (본인 소유) 알림 ID 목록, 요청 순서 유지
    """
    if not notification_ids:
        return []

    result = await db.execute(
        select(Notification.id).where(
            Notification.id.in_(notification_ids),
            Notification.user_id == user_id
        )
    )
    owned = set(result.scalars().all())
    if not owned:
        return []

    await db.execute(
        update(Notification)
        .where(Notification.id.in_(list(owned)), Notification.user_id == user_id)
        .values(is_read=True, read_at=utcnow())
    )
    await db.commit()
    log_database_operation(logger, "mark_read", "notifications", affected_rows=len(owned), user_id=user_id)

    processed = []
    for notification_id in notification_ids:
        if notification_id in owned and notification_id not in processed:
            processed.append(notification_id)
    return processed


async def count_unread(db: AsyncSession, user_id: str) -> int:
    """읽지 않은 알림 개수"""
    result = await db.execute(
        select(func.count()).select_from(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False)
        )
    )
    return result.scalar_one()


async def get_user_notifications(
    db: AsyncSession,
    user_id: str,
    skip: int = 0,
    limit: int = 20,
    unread_only: bool = False
) -> Tuple[List[Notification], int]:
    """사용자 알림 목록 조회 (최신순) 및 전체 개수"""
    conditions = [Notification.user_id == user_id]
    if unread_only:
        conditions.append(Notification.is_read.is_(False))

    result = await db.execute(
        select(Notification).where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset(skip).limit(limit)
    )
    notifications = list(result.scalars().all())

    total_result = await db.execute(
        select(func.count()).select_from(Notification).where(*conditions)
    )
    return notifications, total_result.scalar_one()

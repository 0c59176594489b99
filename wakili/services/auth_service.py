"""
User lookup and presence persistence.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wakili.models.users import User
from wakili.utils.time_utils import utcnow


async def find_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    """사용자 ID로 조회"""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def update_online_status(db: AsyncSession, user_id: str, status: str) -> Optional[datetime]:
    """
    사용자의 온라인 상태와 마지막 접속 시간을 저장합니다.

    Returns:
        datetime: 기록된 last_seen, 사용자가 없으면 None
    """
    user = await find_user_by_id(db, user_id)
    if not user:
        return None

    last_seen = utcnow()
    user.online_status = status
    user.last_seen = last_seen
    await db.commit()
    return last_seen

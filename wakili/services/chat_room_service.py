"""
Chat room service layer for database operations.

Handles all database queries and data operations related to chat rooms.
"""

from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_

from wakili.models.chat_rooms import ChatRoom, ChatRoomStatus
from wakili.utils.time_utils import utcnow, next_activity_timestamp


def _participant_clause(user_id: str):
    return or_(ChatRoom.client_id == user_id, ChatRoom.lawyer_id == user_id)


# =============================================================================
# Chat Room CRUD Operations
# =============================================================================

async def find_chat_room_by_id(db: AsyncSession, room_id: str) -> Optional[ChatRoom]:
    """채팅방 ID로 조회"""
    result = await db.execute(
        select(ChatRoom).where(ChatRoom.id == room_id)
    )
    return result.scalar_one_or_none()


async def find_chat_room_by_booking(db: AsyncSession, booking_id: str) -> Optional[ChatRoom]:
    """예약 ID로 채팅방 조회"""
    result = await db.execute(
        select(ChatRoom).where(ChatRoom.booking_id == booking_id)
    )
    return result.scalar_one_or_none()


async def find_room_for_participant(db: AsyncSession, room_id: str, user_id: str) -> Optional[ChatRoom]:
    """사용자가 참여자(의뢰인 또는 변호사)인 경우에만 채팅방 반환"""
    result = await db.execute(
        select(ChatRoom).where(
            and_(ChatRoom.id == room_id, _participant_clause(user_id))
        )
    )
    return result.scalar_one_or_none()


async def create_chat_room(
    db: AsyncSession,
    booking_id: str,
    client_id: str,
    lawyer_id: str
) -> ChatRoom:
    """예약에 대한 새 채팅방 생성"""
    now = utcnow()
    chat_room = ChatRoom(
        booking_id=booking_id,
        client_id=client_id,
        lawyer_id=lawyer_id,
        status=ChatRoomStatus.ACTIVE,
        last_activity=now,
        created_at=now
    )

    db.add(chat_room)
    await db.commit()
    await db.refresh(chat_room, attribute_names=["client", "lawyer"])
    return chat_room


def bump_last_activity(chat_room: ChatRoom) -> ChatRoom:
    """last_activity를 이전 값보다 큰 현재 시각으로 갱신 (커밋은 호출자 책임)"""
    chat_room.last_activity = next_activity_timestamp(chat_room.last_activity)
    return chat_room


async def touch_chat_room(db: AsyncSession, chat_room: ChatRoom) -> ChatRoom:
    """채팅방 활동 시간 업데이트"""
    bump_last_activity(chat_room)
    await db.commit()
    return chat_room


async def get_user_chat_rooms(db: AsyncSession, user_id: str) -> List[ChatRoom]:
    """사용자의 채팅방 목록 조회 (최근 활동순)"""
    query = select(ChatRoom).where(
        _participant_clause(user_id)
    ).order_by(ChatRoom.last_activity.desc())

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_user_chat_room_ids(
    db: AsyncSession,
    user_id: str,
    active_only: bool = True
) -> List[str]:
    """사용자가 참여 중인 채팅방 ID 목록"""
    query = select(ChatRoom.id).where(_participant_clause(user_id))
    if active_only:
        query = query.where(ChatRoom.status == ChatRoomStatus.ACTIVE)

    result = await db.execute(query)
    return list(result.scalars().all())

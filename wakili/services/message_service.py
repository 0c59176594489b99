"""
Message service layer for database operations.

Handles all database queries and data operations related to chat messages.
"""

from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from wakili.models.chat_rooms import ChatRoom
from wakili.models.messages import ChatMessage, MessageType
from wakili.models.users import User
from wakili.services.chat_room_service import bump_last_activity
from wakili.utils.time_utils import utcnow


# =============================================================================
# Message CRUD Operations
# =============================================================================

async def create_message(
    db: AsyncSession,
    chat_room: ChatRoom,
    sender: User,
    content: str,
    message_type: str = MessageType.TEXT,
    file_url: Optional[str] = None,
    file_name: Optional[str] = None,
    file_size: Optional[int] = None
) -> ChatMessage:
    """
    메시지를 저장하고 채팅방 last_activity를 갱신합니다.

    두 변경은 하나의 트랜잭션으로 커밋되며, 실패 시 둘 다 반영되지 않습니다.
    """
    message = ChatMessage(
        room_id=chat_room.id,
        sender_id=sender.id,
        content=content,
        message_type=message_type or MessageType.TEXT,
        file_url=file_url,
        file_name=file_name,
        file_size=file_size,
        is_read=False,
        created_at=utcnow()
    )
    message.sender = sender
    db.add(message)

    bump_last_activity(chat_room)

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return message


async def find_message_by_id(db: AsyncSession, message_id: str) -> Optional[ChatMessage]:
    """메시지 ID로 조회"""
    result = await db.execute(
        select(ChatMessage).where(ChatMessage.id == message_id)
    )
    return result.scalar_one_or_none()


async def mark_message_read(db: AsyncSession, message: ChatMessage) -> ChatMessage:
    """메시지 읽음 처리 (이미 읽은 메시지는 그대로 반환)"""
    if not message.is_read:
        message.is_read = True
        await db.commit()
    return message


async def get_room_messages(
    db: AsyncSession,
    room_id: str,
    limit: int = 50,
    skip: int = 0
) -> List[ChatMessage]:
    """채팅방 메시지 목록 조회 (최신 페이지부터, 페이지 내부는 오래된 순)"""
    query = select(ChatMessage).where(
        ChatMessage.room_id == room_id
    ).order_by(
        ChatMessage.created_at.desc(), ChatMessage.id.desc()
    ).offset(skip).limit(limit)

    result = await db.execute(query)
    messages = list(result.scalars().all())

    # 최신순으로 정렬된 것을 역순으로 변경 (오래된 것부터)
    return list(reversed(messages))


async def get_room_messages_count(db: AsyncSession, room_id: str) -> int:
    """채팅방 메시지 총 개수 조회"""
    result = await db.execute(
        select(func.count()).select_from(ChatMessage).where(ChatMessage.room_id == room_id)
    )
    return result.scalar_one()

from typing import List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from wakili.api.dependencies import get_current_user, get_chat_server
from wakili.core.config import settings
from wakili.core.errors import AuthorizationException, ResourceNotFoundException
from wakili.core.logging import get_logger
from wakili.database.mysql import get_async_session
from wakili.models.users import User, UserRole
from wakili.schemas.chat_room import ChatRoomCreate, ChatRoomResponse
from wakili.schemas.message import MessageCreate, MessageList, MessagePagination, MessageResponse
from wakili.services import chat_room_service, message_service
from wakili.websockets.server import ChatSocketServer

logger = get_logger(__name__)

router = APIRouter(prefix="/chat-rooms", tags=["Chat Rooms"])


@router.get("", response_model=List[ChatRoomResponse], response_model_by_alias=True)
async def get_chat_rooms(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """현재 사용자의 채팅방 목록 (최근 활동순)"""
    chat_rooms = await chat_room_service.get_user_chat_rooms(db, current_user.id)
    return [ChatRoomResponse.model_validate(room) for room in chat_rooms]


@router.post(
    "",
    response_model=ChatRoomResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED
)
async def create_chat_room(
    room_data: ChatRoomCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    chat_server: ChatSocketServer = Depends(get_chat_server)
):
    """
    예약에 대한 채팅방을 생성합니다.

    같은 예약의 채팅방이 이미 있으면 기존 채팅방을 반환합니다.
    새로 생성된 경우 양쪽 참여자에게 `chat_room_created` 이벤트를 전송합니다.
    """
    if current_user.role != UserRole.ADMIN and current_user.id not in (room_data.client_id, room_data.lawyer_id):
        raise AuthorizationException("Only booking participants can open its chat room")

    existing = await chat_room_service.find_chat_room_by_booking(db, room_data.booking_id)
    if existing:
        return ChatRoomResponse.model_validate(existing)

    chat_room = await chat_room_service.create_chat_room(
        db,
        booking_id=room_data.booking_id,
        client_id=room_data.client_id,
        lawyer_id=room_data.lawyer_id
    )
    logger.info(f"Chat room {chat_room.id} created for booking {room_data.booking_id}")

    await chat_server.dispatcher.notify_chat_room_created(chat_room, created_by=current_user.id)

    return ChatRoomResponse.model_validate(chat_room)


@router.get("/{room_id}/messages", response_model=MessageList, response_model_by_alias=True)
async def get_chat_messages(
    room_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.chat_history_default_limit, ge=1, le=settings.chat_history_max_limit),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session)
):
    """채팅방 메시지 조회 (참여자 전용)"""
    chat_room = await chat_room_service.find_chat_room_by_id(db, room_id)
    if not chat_room:
        raise ResourceNotFoundException("Chat room")

    if not chat_room.has_participant(current_user.id):
        raise AuthorizationException()

    messages = await message_service.get_room_messages(
        db, room_id, limit=limit, skip=(page - 1) * limit
    )
    total = await message_service.get_room_messages_count(db, room_id)

    return MessageList(
        room_id=room_id,
        messages=[MessageResponse.model_validate(m) for m in messages],
        pagination=MessagePagination(
            page=page,
            limit=limit,
            total=total,
            has_more=total > page * limit
        )
    )


@router.post(
    "/{room_id}/messages",
    response_model=MessageResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED
)
async def send_chat_message(
    room_id: str,
    message_data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    chat_server: ChatSocketServer = Depends(get_chat_server)
):
    """
    REST로 메시지를 전송합니다 (참여자 전용).

    WebSocket `send_message`와 동일하게 채팅방에 `new_message`를 브로드캐스트하고
    상대방에게 알림을 보냅니다.
    """
    chat_room = await chat_room_service.find_chat_room_by_id(db, room_id)
    if not chat_room:
        raise ResourceNotFoundException("Chat room")

    if not chat_room.has_participant(current_user.id):
        raise AuthorizationException("Access denied to this chat room")

    return await chat_server.handler.relay_message(db, chat_room, current_user, message_data)

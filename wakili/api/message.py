from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wakili.api.dependencies import get_current_user, get_chat_server
from wakili.core.errors import AuthorizationException, message_not_found_error
from wakili.database.mysql import get_async_session
from wakili.models.users import User
from wakili.schemas.message import MessageReadResponse
from wakili.services import chat_room_service, message_service
from wakili.websockets.server import ChatSocketServer

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.patch("/{message_id}/read", response_model=MessageReadResponse, response_model_by_alias=True)
async def mark_message_read(
    message_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    chat_server: ChatSocketServer = Depends(get_chat_server)
):
    """
    메시지 읽음 처리

    - 수신자만 읽음 처리할 수 있습니다 (발송자 본인은 403)
    - 처리 후 채팅방에 `message_read` 이벤트를 전송합니다
    """
    message = await message_service.find_message_by_id(db, message_id)
    if not message:
        raise message_not_found_error(message_id)

    if message.sender_id == current_user.id:
        raise AuthorizationException("Sender cannot mark own message as read")

    # 발송자가 아니더라도 채팅방 참여자가 아니면 거부
    chat_room = await chat_room_service.find_room_for_participant(db, message.room_id, current_user.id)
    if not chat_room:
        raise AuthorizationException("Access denied to this chat room")

    await message_service.mark_message_read(db, message)
    await chat_server.handler.broadcast_message_read(message.room_id, message_id, current_user.id)

    return MessageReadResponse(message_id=message_id, read_by=current_user.id, is_read=True)

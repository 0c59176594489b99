"""
WebSocket 수신 이벤트 페이로드 스키마

클라이언트는 `{"event": <name>, "data": <payload>}` 형식의 JSON 프레임을 전송합니다.
"""

from typing import List, Literal
from pydantic import Field

from wakili.core.config import settings
from wakili.schemas.base import CamelModel
from wakili.schemas.message import MessageCreate


class InboundEvents:
    JOIN_CHAT_ROOM = "join_chat_room"
    SEND_MESSAGE = "send_message"
    MESSAGE_READ = "message_read"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    GET_CHAT_HISTORY = "get_chat_history"
    MARK_NOTIFICATIONS_READ = "mark_notifications_read"
    SET_ONLINE_STATUS = "set_online_status"


class OutboundEvents:
    CHAT_ROOM_JOINED = "chat_room_joined"
    NEW_MESSAGE = "new_message"
    MESSAGE_READ = "message_read"
    USER_TYPING = "user_typing"
    CHAT_HISTORY = "chat_history"
    NOTIFICATIONS_MARKED_READ = "notifications_marked_read"
    USER_STATUS = "user_status"
    NEW_NOTIFICATION = "new_notification"
    CHAT_ROOM_CREATED = "chat_room_created"
    USER_STATUS_CHANGED = "user_status_changed"
    ERROR = "error"


class RoomPayload(CamelModel):
    """roomId 하나만 담는 페이로드 (join_chat_room, typing_start, typing_stop)"""
    room_id: str = Field(..., min_length=1)


class SendMessagePayload(MessageCreate):
    room_id: str = Field(..., min_length=1)


class MessageReadPayload(CamelModel):
    message_id: str = Field(..., min_length=1)


class ChatHistoryPayload(CamelModel):
    room_id: str = Field(..., min_length=1)
    page: int = Field(default=1, ge=1)
    limit: int = Field(
        default=settings.chat_history_default_limit,
        ge=1,
        le=settings.chat_history_max_limit,
    )


class MarkNotificationsReadPayload(CamelModel):
    notification_ids: List[str] = Field(default_factory=list)


class SetOnlineStatusPayload(CamelModel):
    status: Literal["online", "away", "offline"]

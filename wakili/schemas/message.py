from datetime import datetime
from typing import Optional, List
from pydantic import Field, field_validator

from wakili.models.messages import MessageType
from wakili.schemas.base import CamelModel
from wakili.schemas.user import SenderInfo


MAX_MESSAGE_LENGTH = 2000


class MessageCreate(CamelModel):
    """메시지 전송 요청 스키마 (REST 본문, `send_message` 페이로드 공통)"""
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH, description="메시지 내용")
    message_type: str = Field(default=MessageType.TEXT, description="메시지 타입: TEXT, FILE, IMAGE, SYSTEM")
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)

    @field_validator("content", mode="before")
    @classmethod
    def strip_content(cls, value):
        # 공백만 있는 메시지는 min_length 검사에서 거부됨
        return value.strip() if isinstance(value, str) else value

    @field_validator("message_type", mode="before")
    @classmethod
    def normalize_message_type(cls, value):
        if value is None:
            return MessageType.TEXT
        value = str(value).upper()
        if value not in MessageType.ALL:
            raise ValueError(f"Unsupported message type: {value}")
        return value


class MessageResponse(CamelModel):
    """메시지 응답 스키마 (`new_message`, `chat_history`)"""
    id: str = Field(..., description="메시지 ID")
    room_id: str = Field(..., description="채팅방 ID")
    sender_id: str = Field(..., description="발송자 ID")
    content: str = Field(..., description="메시지 내용")
    message_type: str = Field(..., description="메시지 타입: TEXT, FILE, IMAGE, SYSTEM")
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    is_read: bool = Field(False, description="읽음 여부")
    created_at: datetime = Field(..., description="생성일시")
    sender: Optional[SenderInfo] = Field(None, description="발송자 정보")


class MessagePagination(CamelModel):
    page: int
    limit: int
    total: Optional[int] = None
    has_more: bool


class MessageList(CamelModel):
    """메시지 목록 스키마"""
    room_id: str
    messages: List[MessageResponse]
    pagination: MessagePagination


class MessageReadResponse(CamelModel):
    """단일 메시지 읽음 처리 응답"""
    message_id: str
    read_by: str
    is_read: bool

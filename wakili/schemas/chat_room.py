from datetime import datetime
from typing import Optional
from pydantic import Field, model_validator

from wakili.schemas.base import CamelModel
from wakili.schemas.user import UserSummary


class ChatRoomCreate(CamelModel):
    """예약(booking) 확정 시 채팅방 생성 요청"""
    booking_id: str = Field(..., min_length=1, description="예약 ID")
    client_id: str = Field(..., min_length=1, description="의뢰인 사용자 ID")
    lawyer_id: str = Field(..., min_length=1, description="변호사 사용자 ID")

    @model_validator(mode="after")
    def check_distinct_participants(self):
        if self.client_id == self.lawyer_id:
            raise ValueError("Client and lawyer must be different users")
        return self


class ChatRoomResponse(CamelModel):
    """채팅방 응답 스키마"""
    id: str
    booking_id: Optional[str] = None
    client_id: str
    lawyer_id: str
    status: str
    last_activity: Optional[datetime] = None
    created_at: Optional[datetime] = None
    client: Optional[UserSummary] = None
    lawyer: Optional[UserSummary] = None


class ChatRoomSnapshot(CamelModel):
    """`chat_room_joined` 이벤트로 전송되는 채팅방 정보"""
    room_id: str
    booking_id: Optional[str] = None
    status: str
    client: Optional[UserSummary] = None
    lawyer: Optional[UserSummary] = None

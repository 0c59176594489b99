from typing import Optional
from pydantic import Field

from wakili.schemas.base import CamelModel


class UserSummary(CamelModel):
    """채팅 화면에 표시되는 사용자 정보"""
    id: str = Field(..., description="사용자 ID")
    first_name: str = Field(..., description="이름")
    last_name: str = Field(..., description="성")
    email: Optional[str] = Field(None, description="이메일")
    role: Optional[str] = Field(None, description="역할: CLIENT, LAWYER, ADMIN")


class SenderInfo(CamelModel):
    """메시지 발송자 표시 정보"""
    first_name: str
    last_name: str

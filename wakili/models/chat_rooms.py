import uuid
from datetime import datetime
from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship
from wakili.database.mysql import Base, PreciseDateTime


class ChatRoomStatus:
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    booking_id = Column(String(36), nullable=True, unique=True, index=True)
    client_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    lawyer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ChatRoomStatus.ACTIVE)
    last_activity = Column(PreciseDateTime, default=datetime.utcnow)
    created_at = Column(PreciseDateTime, default=datetime.utcnow)

    # Relationships
    client = relationship("User", foreign_keys=[client_id], lazy="joined")
    lawyer = relationship("User", foreign_keys=[lawyer_id], lazy="joined")

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.client_id, self.lawyer_id)

    def counterpart_of(self, user_id: str) -> str:
        """user_id가 아닌 다른 참여자 ID"""
        return self.lawyer_id if self.client_id == user_id else self.client_id

    def __repr__(self):
        return f"<ChatRoom(id={self.id}, client_id={self.client_id}, lawyer_id={self.lawyer_id})>"

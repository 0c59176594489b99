import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, Text, JSON, ForeignKey
from wakili.database.mysql import Base, PreciseDateTime


class NotificationType:
    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    CHAT_ROOM_CREATED = "CHAT_ROOM_CREATED"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    SYSTEM = "SYSTEM"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(PreciseDateTime, nullable=True)
    created_at = Column(PreciseDateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from wakili.database.mysql import Base


class UserRole:
    CLIENT = "CLIENT"
    LAWYER = "LAWYER"
    ADMIN = "ADMIN"


class OnlineStatus:
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"

    ALL = (ONLINE, AWAY, OFFLINE)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    role = Column(String(20), nullable=False, default=UserRole.CLIENT)
    online_status = Column(String(20), nullable=False, default=OnlineStatus.OFFLINE)
    last_seen = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

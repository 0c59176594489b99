from .users import User, UserRole, OnlineStatus
from .chat_rooms import ChatRoom, ChatRoomStatus
from .messages import ChatMessage, MessageType
from .notifications import Notification, NotificationType

__all__ = [
    "User",
    "UserRole",
    "OnlineStatus",
    "ChatRoom",
    "ChatRoomStatus",
    "ChatMessage",
    "MessageType",
    "Notification",
    "NotificationType",
]

from .base import CamelModel
from .user import UserSummary, SenderInfo
from .message import MessageCreate, MessageResponse, MessageList, MessagePagination, MessageReadResponse
from .chat_room import ChatRoomCreate, ChatRoomResponse, ChatRoomSnapshot
from .notification import NotificationResponse, NotificationList, NotificationPagination

__all__ = [
    "CamelModel",
    "UserSummary",
    "SenderInfo",
    "MessageCreate",
    "MessageResponse",
    "MessageList",
    "MessagePagination",
    "MessageReadResponse",
    "ChatRoomCreate",
    "ChatRoomResponse",
    "ChatRoomSnapshot",
    "NotificationResponse",
    "NotificationList",
    "NotificationPagination",
]

"""
WebSocket 실시간 채팅 모듈

주요 구성 요소:
- connection_manager: 연결 레지스트리와 채널 구독 관리
- auth: WebSocket 핸드셰이크 인증 (Connection Gateway)
- membership: 개인/채팅방 채널 구독
- handlers: 메시지 중계, 타이핑/접속 상태, 알림 읽음 처리
- notifications: 알림 저장 및 실시간 전송
- server: 연결 수명 주기 관리
"""

from .connection_manager import ConnectionManager, ConnectionContext, personal_channel, room_channel
from .auth import authenticate_websocket
from .handlers import ChatEventHandler
from .membership import RoomMembershipManager
from .notifications import NotificationDispatcher
from .server import ChatSocketServer

__all__ = [
    "ConnectionManager",
    "ConnectionContext",
    "personal_channel",
    "room_channel",
    "authenticate_websocket",
    "ChatEventHandler",
    "RoomMembershipManager",
    "NotificationDispatcher",
    "ChatSocketServer",
]

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from fastapi import WebSocket, status
import logging

from wakili.utils.time_utils import utcnow, isoformat

logger = logging.getLogger(__name__)

# 다른 기기에서 재접속하여 기존 연결이 대체된 경우의 종료 코드
WS_4000_SESSION_REPLACED = 4000


@dataclass
class ConnectionContext:
    """인증된 WebSocket 연결 하나의 정보"""
    connection_id: str
    user_id: str
    email: str
    role: str
    full_name: str
    websocket: WebSocket
    connected_at: datetime = field(default_factory=utcnow)
    last_seen: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connectionId": self.connection_id,
            "userId": self.user_id,
            "email": self.email,
            "role": self.role,
            "fullName": self.full_name,
            "connectedAt": isoformat(self.connected_at),
            "lastSeen": isoformat(self.last_seen),
        }


def personal_channel(user_id: str) -> str:
    return f"user_{user_id}"


def room_channel(room_id: str) -> str:
    return f"chat_{room_id}"


class ConnectionManager:
    """
    연결 레지스트리와 채널 구독을 관리합니다.

    레지스트리(connections, user_connections)는 register/unregister에서만 변경됩니다.
    사용자당 하나의 연결만 추적하며, 같은 사용자가 다시 연결하면 이전 연결을 종료합니다.
    """

    def __init__(self):
        # 연결별 정보: {connection_id: ConnectionContext}
        self.connections: Dict[str, ConnectionContext] = {}
        # 사용자별 연결: {user_id: connection_id}
        self.user_connections: Dict[str, str] = {}
        # 채널별 구독자: {channel: {connection_id}}
        self.channel_subscribers: Dict[str, Set[str]] = {}

    # =========================================================================
    # Registry
    # =========================================================================

    async def register(self, context: ConnectionContext) -> Optional[ConnectionContext]:
        """
        새 연결을 등록합니다.

        Returns:
            ConnectionContext: 대체되어 종료된 이전 연결, 없으면 None
        """
        previous = None
        previous_id = self.user_connections.get(context.user_id)
        if previous_id and previous_id != context.connection_id:
            previous = self.unregister(previous_id)

        self.connections[context.connection_id] = context
        self.user_connections[context.user_id] = context.connection_id

        if previous is not None:
            logger.info(
                f"User {context.user_id} reconnected; closing previous connection {previous.connection_id}"
            )
            try:
                await previous.websocket.close(code=WS_4000_SESSION_REPLACED)
            except Exception as e:
                logger.warning(f"Failed to close replaced connection {previous.connection_id}: {e}")

        return previous

    def unregister(self, connection_id: str) -> Optional[ConnectionContext]:
        """연결을 레지스트리와 모든 채널에서 제거합니다."""
        context = self.connections.pop(connection_id, None)
        if context is None:
            return None

        if self.user_connections.get(context.user_id) == connection_id:
            del self.user_connections[context.user_id]

        for channel in self.channels_of(connection_id):
            self.leave(connection_id, channel)

        return context

    def get_connection(self, connection_id: str) -> Optional[ConnectionContext]:
        return self.connections.get(connection_id)

    def get_user_connection(self, user_id: str) -> Optional[ConnectionContext]:
        connection_id = self.user_connections.get(user_id)
        if connection_id is None:
            return None
        return self.connections.get(connection_id)

    def is_user_connected(self, user_id: str) -> bool:
        """사용자가 연결되어 있는지 확인합니다."""
        return user_id in self.user_connections

    def get_active_users(self) -> List[Dict[str, Any]]:
        """현재 연결된 사용자 목록 (관리자용)"""
        return [context.to_dict() for context in self.connections.values()]

    def get_active_users_count(self) -> int:
        return len(self.connections)

    # =========================================================================
    # Channels
    # =========================================================================

    def join(self, connection_id: str, channel: str):
        """연결을 채널에 구독시킵니다."""
        if connection_id not in self.connections:
            return
        self.channel_subscribers.setdefault(channel, set()).add(connection_id)

    def leave(self, connection_id: str, channel: str):
        """채널 구독 해제 (구독자가 없으면 채널 자체를 제거)"""
        subscribers = self.channel_subscribers.get(channel)
        if not subscribers:
            return
        subscribers.discard(connection_id)
        if not subscribers:
            del self.channel_subscribers[channel]

    def channels_of(self, connection_id: str) -> Set[str]:
        """연결이 구독 중인 채널 목록"""
        return {
            channel
            for channel, subscribers in self.channel_subscribers.items()
            if connection_id in subscribers
        }

    def is_subscribed(self, connection_id: str, channel: str) -> bool:
        return connection_id in self.channel_subscribers.get(channel, set())

    # =========================================================================
    # Emission
    # =========================================================================

    async def emit_to_connection(self, connection_id: str, event: str, data: Any) -> bool:
        """특정 연결에 이벤트를 전송합니다."""
        context = self.connections.get(connection_id)
        if context is None:
            return False
        try:
            await context.websocket.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.error(f"Failed to send {event} to connection {connection_id}: {e}")
            return False

    async def emit_to_channel(
        self,
        channel: str,
        event: str,
        data: Any,
        exclude_connection: Optional[str] = None
    ) -> int:
        """
        채널의 모든 구독자에게 이벤트를 브로드캐스트합니다.

        Returns:
            int: 전송에 성공한 연결 수
        """
        delivered = 0
        for connection_id in list(self.channel_subscribers.get(channel, set())):
            if exclude_connection and connection_id == exclude_connection:
                continue
            if await self.emit_to_connection(connection_id, event, data):
                delivered += 1
        return delivered

    async def emit_to_user(self, user_id: str, event: str, data: Any) -> int:
        """사용자 개인 채널로 이벤트를 전송합니다."""
        return await self.emit_to_channel(personal_channel(user_id), event, data)

    async def close_all(self):
        """서버 종료 시 모든 연결을 닫습니다."""
        for context in list(self.connections.values()):
            try:
                await context.websocket.close(code=status.WS_1001_GOING_AWAY)
            except Exception as e:
                logger.warning(f"Failed to close connection {context.connection_id}: {e}")
        self.connections.clear()
        self.user_connections.clear()
        self.channel_subscribers.clear()

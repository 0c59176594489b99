from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import async_sessionmaker

from wakili.core.errors import room_access_denied_error
from wakili.core.logging import get_logger, log_websocket_event
from wakili.schemas.chat_room import ChatRoomSnapshot
from wakili.schemas.events import OutboundEvents, RoomPayload
from wakili.schemas.user import UserSummary
from wakili.services import chat_room_service
from wakili.websockets.connection_manager import (
    ConnectionContext,
    ConnectionManager,
    personal_channel,
    room_channel,
)

logger = get_logger(__name__)


def _summary(user) -> Optional[UserSummary]:
    return UserSummary.model_validate(user) if user is not None else None


class RoomMembershipManager:
    """연결의 개인 채널 및 채팅방 채널 구독 관리"""

    def __init__(self, manager: ConnectionManager, session_factory: async_sessionmaker):
        self.manager = manager
        self.session_factory = session_factory

    async def join_user_rooms(self, context: ConnectionContext) -> int:
        """
        인증 직후 개인 채널과 사용자의 모든 ACTIVE 채팅방 채널에 구독합니다.

        Returns:
            int: 구독한 채팅방 수
        """
        self.manager.join(context.connection_id, personal_channel(context.user_id))

        try:
            async with self.session_factory() as db:
                room_ids = await chat_room_service.get_user_chat_room_ids(db, context.user_id)
        except Exception as e:
            logger.error(f"Error joining chat rooms for user {context.user_id}: {e}")
            return 0

        for room_id in room_ids:
            self.manager.join(context.connection_id, room_channel(room_id))

        logger.info(f"User {context.email} joined {len(room_ids)} chat rooms")
        return len(room_ids)

    async def join_chat_room(self, context: ConnectionContext, data: Dict[str, Any]):
        """`join_chat_room`: 참여자 확인 후 구독하고 채팅방 정보를 전송합니다."""
        payload = RoomPayload.model_validate(data)

        async with self.session_factory() as db:
            chat_room = await chat_room_service.find_room_for_participant(
                db, payload.room_id, context.user_id
            )
            if not chat_room:
                raise room_access_denied_error(payload.room_id)

            snapshot = ChatRoomSnapshot(
                room_id=chat_room.id,
                booking_id=chat_room.booking_id,
                status=chat_room.status,
                client=_summary(chat_room.client),
                lawyer=_summary(chat_room.lawyer),
            ).to_payload()

            # 활동 시간 저장이 실패하면 구독하지 않음
            await chat_room_service.touch_chat_room(db, chat_room)

        self.manager.join(context.connection_id, room_channel(payload.room_id))
        await self.manager.emit_to_connection(
            context.connection_id, OutboundEvents.CHAT_ROOM_JOINED, snapshot
        )

        log_websocket_event(logger, "join_chat_room", context.user_id, payload.room_id)

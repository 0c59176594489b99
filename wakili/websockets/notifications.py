from typing import Any, Dict, Iterable, Optional
from sqlalchemy.ext.asyncio import async_sessionmaker

from wakili.core.logging import get_logger
from wakili.models.chat_rooms import ChatRoom
from wakili.models.notifications import Notification, NotificationType
from wakili.schemas.events import OutboundEvents
from wakili.schemas.notification import NotificationResponse
from wakili.services import notification_service
from wakili.websockets.connection_manager import ConnectionManager, room_channel

logger = get_logger(__name__)


class NotificationDispatcher:
    """알림 저장 및 실시간 전송"""

    def __init__(self, manager: ConnectionManager, session_factory: async_sessionmaker):
        self.manager = manager
        self.session_factory = session_factory

    async def notify(
        self,
        recipient_id: str,
        notification_type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Optional[Notification]:
        """
        알림을 저장하고, 수신자가 접속 중이면 개인 채널로 즉시 전송합니다.

        저장은 접속 여부와 관계없이 항상 수행되어 놓친 알림을 나중에 조회할 수 있습니다.
        저장 실패는 로그만 남기고 None을 반환하며 호출자의 작업을 중단시키지 않습니다.
        """
        try:
            async with self.session_factory() as db:
                notification = await notification_service.create_notification(
                    db,
                    user_id=recipient_id,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                    data=data
                )
        except Exception as e:
            logger.error(f"Error creating notification for user {recipient_id}: {e}", exc_info=True)
            return None

        if self.manager.is_user_connected(recipient_id):
            await self.manager.emit_to_user(
                recipient_id,
                OutboundEvents.NEW_NOTIFICATION,
                NotificationResponse.model_validate(notification).to_payload()
            )

        return notification

    async def notify_chat_room_created(
        self,
        chat_room: ChatRoom,
        created_by: Optional[str] = None
    ):
        """
        새 채팅방을 양쪽 참여자 개인 채널에 알립니다.

        접속 중인 참여자의 연결은 새 채팅방 채널에도 구독되며,
        생성자가 아닌 참여자에게는 알림이 저장됩니다.
        """
        event_data = {"roomId": chat_room.id, "bookingId": chat_room.booking_id}
        participants: Iterable[str] = (chat_room.client_id, chat_room.lawyer_id)

        for user_id in participants:
            context = self.manager.get_user_connection(user_id)
            if context is not None:
                self.manager.join(context.connection_id, room_channel(chat_room.id))
            await self.manager.emit_to_user(user_id, OutboundEvents.CHAT_ROOM_CREATED, event_data)

        for user_id in participants:
            if user_id == created_by:
                continue
            await self.notify(
                user_id,
                NotificationType.CHAT_ROOM_CREATED,
                "New Chat Room",
                "A chat room has been opened for your booking",
                event_data
            )

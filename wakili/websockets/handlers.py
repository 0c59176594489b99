from typing import Any, Awaitable, Callable, Dict
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wakili.core.errors import (
    BaseCustomException,
    PersistenceException,
    message_not_found_error,
    payload_validation_error,
    room_access_denied_error,
)
from wakili.core.logging import get_logger, log_websocket_event
from wakili.models.chat_rooms import ChatRoom
from wakili.models.notifications import NotificationType
from wakili.models.users import OnlineStatus, User
from wakili.schemas.events import (
    ChatHistoryPayload,
    InboundEvents,
    MarkNotificationsReadPayload,
    MessageReadPayload,
    OutboundEvents,
    RoomPayload,
    SendMessagePayload,
    SetOnlineStatusPayload,
)
from wakili.schemas.message import MessageCreate, MessagePagination, MessageResponse
from wakili.services import auth_service, chat_room_service, message_service, notification_service
from wakili.utils.time_utils import isoformat, utcnow
from wakili.websockets.connection_manager import ConnectionContext, ConnectionManager, room_channel
from wakili.websockets.membership import RoomMembershipManager
from wakili.websockets.notifications import NotificationDispatcher

logger = get_logger(__name__)

EventHandler = Callable[[ConnectionContext, Any], Awaitable[None]]


class ChatEventHandler:
    """WebSocket 이벤트 처리 핸들러"""

    def __init__(
        self,
        manager: ConnectionManager,
        session_factory: async_sessionmaker,
        dispatcher: NotificationDispatcher,
        membership: RoomMembershipManager
    ):
        self.manager = manager
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.membership = membership
        self._handlers: Dict[str, EventHandler] = {
            InboundEvents.JOIN_CHAT_ROOM: membership.join_chat_room,
            InboundEvents.SEND_MESSAGE: self.handle_send_message,
            InboundEvents.MESSAGE_READ: self.handle_message_read,
            InboundEvents.TYPING_START: self.handle_typing_start,
            InboundEvents.TYPING_STOP: self.handle_typing_stop,
            InboundEvents.GET_CHAT_HISTORY: self.handle_get_chat_history,
            InboundEvents.MARK_NOTIFICATIONS_READ: self.handle_mark_notifications_read,
            InboundEvents.SET_ONLINE_STATUS: self.handle_set_online_status,
        }

    async def dispatch(self, context: ConnectionContext, frame: Any):
        """
        수신 프레임 `{"event": ..., "data": ...}`를 이벤트 핸들러로 전달합니다.

        핸들러에서 발생한 예외는 요청한 연결에만 `error` 이벤트로 전송됩니다.
        """
        if not isinstance(frame, dict):
            await self._emit_error(context, {
                "error": "invalid_frame",
                "message": "Frame must be a JSON object with an 'event' field",
            })
            return

        event = frame.get("event")
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event type: {event} from user {context.user_id}")
            await self._emit_error(context, {
                "error": "unknown_event",
                "message": f"Unknown event: {event}",
                "event": event,
            })
            return

        context.last_seen = utcnow()
        data = frame.get("data")
        if data is None:
            data = {}

        try:
            await handler(context, data)
        except PydanticValidationError as e:
            await self._emit_error(context, payload_validation_error(e).to_event(event))
        except BaseCustomException as e:
            logger.info(f"{event} rejected for user {context.user_id}: {e.message}")
            await self._emit_error(context, e.to_event(event))
        except SQLAlchemyError as e:
            logger.error(f"Database error handling {event} from user {context.user_id}: {e}")
            await self._emit_error(context, PersistenceException(f"Failed to process {event}").to_event(event))

    async def _emit_error(self, context: ConnectionContext, payload: Dict[str, Any]):
        await self.manager.emit_to_connection(context.connection_id, OutboundEvents.ERROR, payload)

    # =========================================================================
    # Message Relay
    # =========================================================================

    async def handle_send_message(self, context: ConnectionContext, data: Dict[str, Any]):
        """채팅 메시지를 저장하고 채팅방에 브로드캐스트합니다."""
        payload = SendMessagePayload.model_validate(data)

        async with self.session_factory() as db:
            # 캐시된 구독 정보를 믿지 않고 매번 참여자 여부를 다시 확인
            chat_room = await chat_room_service.find_room_for_participant(
                db, payload.room_id, context.user_id
            )
            if not chat_room:
                raise room_access_denied_error(payload.room_id)

            sender = await auth_service.find_user_by_id(db, context.user_id)
            if not sender:
                raise room_access_denied_error(payload.room_id)

            await self.relay_message(db, chat_room, sender, payload)

    async def relay_message(
        self,
        db: AsyncSession,
        chat_room: ChatRoom,
        sender: User,
        payload: MessageCreate
    ) -> Dict[str, Any]:
        """
        검증된 메시지를 저장하고 `new_message` 브로드캐스트 후 상대방에게 알림을 보냅니다.

        WebSocket `send_message`와 REST 메시지 전송이 같은 경로를 사용합니다.
        참여자 확인은 호출하는 쪽의 책임입니다.

        Returns:
            Dict[str, Any]: 브로드캐스트된 메시지 페이로드

        Raises:
            PersistenceException: 메시지 저장 실패 (브로드캐스트하지 않음)
        """
        try:
            message = await message_service.create_message(
                db,
                chat_room=chat_room,
                sender=sender,
                content=payload.content,
                message_type=payload.message_type,
                file_url=payload.file_url,
                file_name=payload.file_name,
                file_size=payload.file_size
            )
        except SQLAlchemyError as e:
            logger.error(f"Error sending message from user {sender.id}: {e}")
            raise PersistenceException("Failed to send message")

        message_data = MessageResponse.model_validate(message).to_payload()

        await self.manager.emit_to_channel(
            room_channel(chat_room.id), OutboundEvents.NEW_MESSAGE, message_data
        )
        log_websocket_event(logger, "send_message", sender.id, chat_room.id, message_id=message_data["id"])

        await self.dispatcher.notify(
            chat_room.counterpart_of(sender.id),
            NotificationType.MESSAGE_RECEIVED,
            "New Message",
            f"New message from {sender.full_name}",
            {"roomId": chat_room.id, "messageId": message_data["id"]}
        )
        return message_data

    async def handle_message_read(self, context: ConnectionContext, data: Dict[str, Any]):
        """메시지 읽음 처리 후 채팅방 전체에 읽음 확인을 전송합니다."""
        payload = MessageReadPayload.model_validate(data)

        async with self.session_factory() as db:
            message = await message_service.find_message_by_id(db, payload.message_id)
            if not message:
                raise message_not_found_error(payload.message_id)

            chat_room = await chat_room_service.find_room_for_participant(
                db, message.room_id, context.user_id
            )
            if not chat_room:
                raise room_access_denied_error(message.room_id)

            await message_service.mark_message_read(db, message)

        await self.broadcast_message_read(message.room_id, payload.message_id, context.user_id)

    async def broadcast_message_read(self, room_id: str, message_id: str, reader_id: str):
        await self.manager.emit_to_channel(
            room_channel(room_id),
            OutboundEvents.MESSAGE_READ,
            {"messageId": message_id, "readBy": reader_id}
        )

    async def handle_get_chat_history(self, context: ConnectionContext, data: Dict[str, Any]):
        """채팅 기록 페이지를 요청한 연결에만 전송합니다."""
        payload = ChatHistoryPayload.model_validate(data)
        skip = (payload.page - 1) * payload.limit

        async with self.session_factory() as db:
            chat_room = await chat_room_service.find_room_for_participant(
                db, payload.room_id, context.user_id
            )
            if not chat_room:
                raise room_access_denied_error(payload.room_id)

            messages = await message_service.get_room_messages(
                db, payload.room_id, limit=payload.limit, skip=skip
            )
            message_list = [MessageResponse.model_validate(m).to_payload() for m in messages]

        pagination = MessagePagination(
            page=payload.page,
            limit=payload.limit,
            has_more=len(messages) == payload.limit
        ).model_dump(by_alias=True, exclude_none=True)

        await self.manager.emit_to_connection(
            context.connection_id,
            OutboundEvents.CHAT_HISTORY,
            {"roomId": payload.room_id, "messages": message_list, "pagination": pagination}
        )

    # =========================================================================
    # Presence & Typing
    # =========================================================================

    async def _relay_typing(self, context: ConnectionContext, data: Dict[str, Any], is_typing: bool):
        payload = RoomPayload.model_validate(data)
        channel = room_channel(payload.room_id)

        # 구독 중인 채팅방에만 전달 (구독은 참여자 확인 후에만 이루어짐)
        if not self.manager.is_subscribed(context.connection_id, channel):
            raise room_access_denied_error(payload.room_id)

        await self.manager.emit_to_channel(
            channel,
            OutboundEvents.USER_TYPING,
            {"userId": context.user_id, "roomId": payload.room_id, "isTyping": is_typing},
            exclude_connection=context.connection_id
        )

    async def handle_typing_start(self, context: ConnectionContext, data: Dict[str, Any]):
        await self._relay_typing(context, data, True)

    async def handle_typing_stop(self, context: ConnectionContext, data: Dict[str, Any]):
        await self._relay_typing(context, data, False)

    async def handle_set_online_status(self, context: ConnectionContext, data: Any):
        """온라인 상태를 저장하고 사용자의 모든 채팅방에 알립니다."""
        if isinstance(data, str):
            data = {"status": data}
        payload = SetOnlineStatusPayload.model_validate(data)

        async with self.session_factory() as db:
            last_seen = await auth_service.update_online_status(db, context.user_id, payload.status)
            room_ids = await chat_room_service.get_user_chat_room_ids(
                db, context.user_id, active_only=False
            )

        context.last_seen = last_seen or utcnow()
        await self._broadcast_status(
            context, room_ids, payload.status, exclude_connection=context.connection_id
        )

    async def _broadcast_status(self, context: ConnectionContext, room_ids, status: str, exclude_connection=None):
        status_data = {
            "userId": context.user_id,
            "status": status,
            "lastSeen": isoformat(context.last_seen),
        }
        for room_id in room_ids:
            await self.manager.emit_to_channel(
                room_channel(room_id),
                OutboundEvents.USER_STATUS_CHANGED,
                status_data,
                exclude_connection=exclude_connection
            )

    # =========================================================================
    # Notifications
    # =========================================================================

    async def handle_mark_notifications_read(self, context: ConnectionContext, data: Dict[str, Any]):
        """요청자 본인의 알림만 읽음 처리합니다."""
        payload = MarkNotificationsReadPayload.model_validate(data)

        async with self.session_factory() as db:
            processed = await notification_service.mark_notifications_read(
                db, context.user_id, payload.notification_ids
            )

        await self.manager.emit_to_connection(
            context.connection_id,
            OutboundEvents.NOTIFICATIONS_MARKED_READ,
            {"notificationIds": processed}
        )

    async def send_user_status(self, context: ConnectionContext):
        """접속 직후 읽지 않은 알림 개수를 전송합니다."""
        try:
            async with self.session_factory() as db:
                unread_count = await notification_service.count_unread(db, context.user_id)
        except SQLAlchemyError as e:
            logger.error(f"Error sending user status to user {context.user_id}: {e}")
            return

        await self.manager.emit_to_connection(
            context.connection_id,
            OutboundEvents.USER_STATUS,
            {
                "userId": context.user_id,
                "unreadNotifications": unread_count,
                "connectedAt": isoformat(context.connected_at),
            }
        )

    # =========================================================================
    # Disconnect
    # =========================================================================

    async def handle_disconnect(self, context: ConnectionContext):
        """
        연결 해제 처리: 레지스트리에서 제거하고 오프라인 상태를 저장/브로드캐스트합니다.

        다른 연결로 대체되어 이미 제거된 연결이면 상태를 변경하지 않습니다.
        """
        if self.manager.unregister(context.connection_id) is None:
            logger.info(f"Connection {context.connection_id} already replaced; skipping presence cleanup")
            return

        log_websocket_event(logger, "disconnect", context.user_id)

        try:
            async with self.session_factory() as db:
                last_seen = await auth_service.update_online_status(
                    db, context.user_id, OnlineStatus.OFFLINE
                )
                room_ids = await chat_room_service.get_user_chat_room_ids(
                    db, context.user_id, active_only=False
                )
        except SQLAlchemyError as e:
            logger.error(f"Disconnect cleanup error for user {context.user_id}: {e}")
            return

        context.last_seen = last_seen or utcnow()
        await self._broadcast_status(context, room_ids, OnlineStatus.OFFLINE)

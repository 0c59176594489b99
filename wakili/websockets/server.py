from typing import Optional
from fastapi import WebSocket, WebSocketDisconnect, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from wakili.core.errors import AuthenticationException
from wakili.core.logging import (
    clear_connection_context,
    get_logger,
    log_websocket_event,
    set_connection_context,
)
from wakili.database.mysql import AsyncSessionLocal
from wakili.websockets.auth import authenticate_websocket
from wakili.websockets.connection_manager import ConnectionContext, ConnectionManager
from wakili.websockets.handlers import ChatEventHandler
from wakili.websockets.membership import RoomMembershipManager
from wakili.websockets.notifications import NotificationDispatcher

logger = get_logger(__name__)


class ChatSocketServer:
    """
    실시간 채팅 서버

    연결 레지스트리(ConnectionManager)를 소유하고, 인증 → 채널 구독 → 이벤트 처리 →
    연결 해제까지 하나의 WebSocket 연결 수명 주기를 관리합니다.
    애플리케이션 시작 시 한 번 생성되어 app.state에 보관됩니다.
    """

    def __init__(
        self,
        manager: Optional[ConnectionManager] = None,
        session_factory: async_sessionmaker = AsyncSessionLocal
    ):
        self.manager = manager or ConnectionManager()
        self.session_factory = session_factory
        self.dispatcher = NotificationDispatcher(self.manager, session_factory)
        self.membership = RoomMembershipManager(self.manager, session_factory)
        self.handler = ChatEventHandler(
            self.manager, session_factory, self.dispatcher, self.membership
        )

    async def connect(self, websocket: WebSocket) -> Optional[ConnectionContext]:
        """
        인증 후 연결을 등록하고 채널에 구독시킵니다.

        Returns:
            ConnectionContext: 인증된 연결, 실패 시 None (인증 실패는 1008, 저장소 오류는 1011 코드로 종료)
        """
        # 1. 인증 (실패 시 레지스트리에 아무것도 등록하지 않고 종료)
        try:
            context = await authenticate_websocket(websocket, self.session_factory)
        except AuthenticationException as e:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
            return None
        except SQLAlchemyError as e:
            logger.error(f"Database error during WebSocket authentication: {e}")
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Authentication unavailable")
            return None

        # 2. 연결 등록 및 채널 구독
        await websocket.accept()
        await self.manager.register(context)
        await self.membership.join_user_rooms(context)
        await self.handler.send_user_status(context)
        log_websocket_event(logger, "connect", context.user_id, connection_id=context.connection_id)
        return context

    async def handle_connection(self, websocket: WebSocket):
        context = await self.connect(websocket)
        if context is None:
            return
        set_connection_context(context.connection_id, context.user_id)

        # 3. 이벤트 수신 루프
        try:
            while True:
                try:
                    frame = await websocket.receive_json()
                except ValueError as e:
                    # JSON 파싱 오류
                    logger.error(f"Invalid JSON from user {context.user_id}: {e}")
                    await self.manager.emit_to_connection(context.connection_id, "error", {
                        "error": "invalid_json",
                        "message": "Frame is not valid JSON",
                    })
                    continue

                try:
                    await self.handler.dispatch(context, frame)
                except Exception as e:
                    logger.error(f"Error processing event from user {context.user_id}: {e}", exc_info=True)
                    await self.manager.emit_to_connection(context.connection_id, "error", {
                        "error": "processing_error",
                        "message": "Failed to process event",
                    })

        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected for user {context.user_id}")

        except Exception as e:
            logger.error(f"Unexpected error in WebSocket connection for user {context.user_id}: {e}")

        finally:
            # 4. 연결 해제 처리
            await self.handler.handle_disconnect(context)
            clear_connection_context()

    async def shutdown(self):
        await self.manager.close_all()

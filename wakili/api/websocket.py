from fastapi import APIRouter, Depends, WebSocket

from wakili.api.dependencies import get_admin_user, get_chat_server
from wakili.models.users import User
from wakili.websockets.server import ChatSocketServer

router = APIRouter(prefix="/ws", tags=["WebSocket"])


@router.websocket("/chat")
async def websocket_endpoint(websocket: WebSocket):
    """
    실시간 채팅 WebSocket 엔드포인트

    토큰은 `token` 쿼리 파라미터 또는 `Authorization: Bearer` 헤더로 전달합니다.
    프레임 형식: `{"event": <이벤트명>, "data": <페이로드>}`
    """
    chat_server: ChatSocketServer = websocket.app.state.chat_server
    await chat_server.handle_connection(websocket)


@router.get("/status")
async def get_connection_status(
    _: User = Depends(get_admin_user),
    chat_server: ChatSocketServer = Depends(get_chat_server)
):
    """현재 연결된 사용자 현황 (관리자 전용)"""
    return {
        "activeUsers": chat_server.manager.get_active_users_count(),
        "connections": chat_server.manager.get_active_users(),
    }

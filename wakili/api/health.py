from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wakili.api.dependencies import get_chat_server
from wakili.core.config import settings
from wakili.core.errors import PersistenceException
from wakili.core.logging import get_logger
from wakili.database.mysql import get_async_session
from wakili.utils.time_utils import isoformat, utcnow
from wakili.websockets.server import ChatSocketServer

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


async def _store_reachable(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Chat store health check failed: {e}")
        return False


def _realtime_status(chat_server: ChatSocketServer) -> dict:
    """실시간 연결 레지스트리 현황"""
    return {
        "activeConnections": chat_server.manager.get_active_users_count(),
        "channels": len(chat_server.manager.channel_subscribers),
    }


@router.get("")
async def health_check(
    db: AsyncSession = Depends(get_async_session),
    chat_server: ChatSocketServer = Depends(get_chat_server)
):
    """
    채팅 서비스 상태

    저장소에 연결할 수 없어도 200을 반환하고 `status`를 `degraded`로 표시합니다.
    """
    store_ok = await _store_reachable(db)

    return {
        "status": "healthy" if store_ok else "degraded",
        "service": settings.app_name,
        "version": settings.version,
        "timestamp": isoformat(utcnow()),
        "store": "connected" if store_ok else "disconnected",
        "realtime": _realtime_status(chat_server),
    }


@router.get("/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_async_session),
    chat_server: ChatSocketServer = Depends(get_chat_server)
):
    """저장소 없이는 메시지를 저장할 수 없으므로 준비되지 않은 것으로 응답 (503)"""
    if not await _store_reachable(db):
        raise PersistenceException("Chat store unavailable")

    return {"status": "ready", "realtime": _realtime_status(chat_server)}


@router.get("/live")
async def liveness_check():
    return {"status": "alive", "timestamp": isoformat(utcnow())}

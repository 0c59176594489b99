import uuid
from typing import Optional
from fastapi import WebSocket
from sqlalchemy.ext.asyncio import async_sessionmaker

from wakili.core.errors import (
    AuthenticationException,
    invalid_token_error,
    missing_token_error,
)
from wakili.core.logging import get_logger, log_authentication_event
from wakili.services import auth_service
from wakili.utils.auth import decode_access_token, extract_bearer_token, get_token_subject
from wakili.websockets.connection_manager import ConnectionContext

logger = get_logger(__name__)


def extract_handshake_token(websocket: WebSocket) -> Optional[str]:
    """
    핸드셰이크에서 bearer 토큰을 추출합니다.

    `token` 쿼리 파라미터(브라우저 클라이언트의 auth 페이로드)를 우선하고,
    없으면 Authorization 헤더를 사용합니다.
    """
    token = websocket.query_params.get("token")
    if token:
        return token.strip() or None
    return extract_bearer_token(websocket.headers.get("authorization"))


async def authenticate_websocket(
    websocket: WebSocket,
    session_factory: async_sessionmaker
) -> ConnectionContext:
    """
    WebSocket 연결의 JWT 토큰을 검증하고 연결 컨텍스트를 생성합니다.

    Args:
        websocket: WebSocket 연결 객체
        session_factory: 사용자 조회용 세션 팩토리

    Returns:
        ConnectionContext: 인증된 연결 정보

    Raises:
        AuthenticationException: 토큰 누락/무효/만료, 또는 사용자가 존재하지 않는 경우
    """
    token = extract_handshake_token(websocket)
    if not token:
        log_authentication_event(logger, "websocket_connect", success=False, reason="missing_token")
        raise missing_token_error()

    payload = decode_access_token(token)
    if not payload:
        log_authentication_event(logger, "websocket_connect", success=False, reason="invalid_token")
        raise invalid_token_error()

    user_id = get_token_subject(payload)
    if not user_id:
        log_authentication_event(logger, "websocket_connect", success=False, reason="missing_subject")
        raise invalid_token_error()

    async with session_factory() as db:
        user = await auth_service.find_user_by_id(db, user_id)

    if not user:
        log_authentication_event(logger, "websocket_connect", user_id=user_id, success=False, reason="user_not_found")
        raise AuthenticationException("User not found")

    log_authentication_event(logger, "websocket_connect", user_id=user.id, email=user.email)

    return ConnectionContext(
        connection_id=uuid.uuid4().hex,
        user_id=user.id,
        email=user.email,
        role=user.role,
        full_name=user.full_name,
        websocket=websocket,
    )

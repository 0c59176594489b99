"""
API Dependencies

FastAPI dependency functions for authentication and the shared chat server
"""

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wakili.core.errors import (
    AuthorizationException,
    invalid_token_error,
    missing_token_error,
    user_not_found_error
)
from wakili.database.mysql import get_async_session
from wakili.models.users import User, UserRole
from wakili.services.auth_service import find_user_by_id
from wakili.utils.auth import decode_access_token, get_token_subject
from wakili.websockets.server import ChatSocketServer

# OAuth2 설정 (토큰 발급은 인증 서비스 담당)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_async_session)
) -> User:
    """
    현재 인증된 사용자를 조회합니다.

    Raises:
        AuthenticationException: 토큰이 없거나 유효하지 않은 경우
        ResourceNotFoundException: 사용자가 존재하지 않는 경우
    """
    if not token:
        raise missing_token_error()

    payload = decode_access_token(token)
    if not payload:
        raise invalid_token_error()

    user_id = get_token_subject(payload)
    if not user_id:
        raise invalid_token_error()

    user = await find_user_by_id(db, user_id)
    if not user:
        raise user_not_found_error(user_id)

    return user


async def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """관리자 권한 확인"""
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationException("Admin access required")
    return current_user


def get_chat_server(request: Request) -> ChatSocketServer:
    """애플리케이션이 소유한 실시간 채팅 서버"""
    return request.app.state.chat_server

from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from jose import JWTError, jwt

from wakili.core.config import settings


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(hours=settings.access_token_expire_hours)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    JWT 토큰의 서명과 만료 시간을 검증하고 payload를 반환합니다.

    Returns:
        dict: 검증된 payload, 실패 시 None
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None


def get_token_subject(payload: Dict[str, Any]) -> Optional[str]:
    """payload에서 사용자 ID 추출 (`sub` 또는 `userId` 클레임)"""
    subject = payload.get("sub") or payload.get("userId")
    return str(subject) if subject else None


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """`Bearer <token>` 형식의 헤더에서 토큰 추출"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()

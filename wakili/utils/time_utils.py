"""
시간 관련 유틸리티 함수
"""
from datetime import datetime, timedelta
from typing import Optional


def utcnow() -> datetime:
    """DB 저장용 naive UTC 현재 시각"""
    return datetime.utcnow()


def next_activity_timestamp(previous: Optional[datetime]) -> datetime:
    """
    이전 값보다 반드시 큰 활동 시각을 반환합니다.

    같은 마이크로초 안에 두 번 갱신되더라도 last_activity가 단조 증가하도록
    이전 값에 1마이크로초를 더한 값을 하한으로 사용합니다.
    """
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """datetime을 ISO 8601 문자열로 변환 (UTC 'Z' 접미사)"""
    if dt is None:
        return None
    return dt.isoformat() + "Z"

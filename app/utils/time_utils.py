"""
시간 관련 유틸리티 함수
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    현재 UTC 시각 (tzinfo 없는 naive datetime).

    DB 컬럼이 timezone 없는 DateTime이므로 저장/비교되는 모든 시각은 이 함수로 만듭니다.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)

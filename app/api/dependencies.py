"""
API Dependencies

요청 사용자 식별과 요청별 서비스 구성을 위한 FastAPI dependency 함수들
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import missing_user_header_error
from app.core.logging import user_id_var
from app.database.mysql import get_async_session
from app.infrastructure.cache import Cache
from app.infrastructure.event_bus import EventBus
from app.services import SwapServices, build_services


def parse_user_id(raw: Optional[str]) -> Optional[int]:
    """X-User-Id 값을 양의 정수로 변환 (실패하면 None)"""
    if raw is None:
        return None
    try:
        user_id = int(raw.strip())
    except ValueError:
        return None
    return user_id if user_id > 0 else None


async def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> int:
    """
    요청한 사용자 ID를 반환합니다.

    인증은 앞단 게이트웨이가 처리하고, 이 서비스는 X-User-Id 헤더만 신뢰합니다.

    Raises:
        AuthenticationException: 헤더가 없거나 정수가 아닌 경우
    """
    user_id = parse_user_id(x_user_id)
    if user_id is None:
        raise missing_user_header_error()
    user_id_var.set(user_id)
    return user_id


def get_cache(request: Request) -> Cache:
    return request.app.state.cache


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


async def get_services(
    db: AsyncSession = Depends(get_async_session),
    cache: Cache = Depends(get_cache),
    event_bus: EventBus = Depends(get_event_bus)
) -> SwapServices:
    """요청의 DB 세션 위에 서비스 묶음을 구성"""
    return build_services(db, cache, event_bus)

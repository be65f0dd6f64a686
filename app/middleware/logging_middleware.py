"""
요청 로깅 미들웨어

요청마다 request_id를 정하고(X-Request-ID 헤더가 있으면 그대로 사용) 로그 컨텍스트에 넣은 뒤,
응답 상태와 처리 시간을 api_call 이벤트로 남깁니다.
"""

import time
import uuid
from typing import Callable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.logging import (
    get_logger,
    set_request_context,
    clear_request_context,
    log_api_call,
    log_performance_metric
)

logger = get_logger(__name__)


def _header_user_id(request: Request) -> Optional[int]:
    raw = (request.headers.get("x-user-id") or "").strip()
    return int(raw) if raw.isdigit() else None


def _client_ip(request: Request) -> str:
    # 프록시 뒤에서는 X-Forwarded-For의 첫 번째 주소
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class LoggingMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, slow_request_threshold_ms: Optional[float] = None):
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms or settings.slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        user_id = _header_user_id(request)
        set_request_context(request_id, user_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {request.url.path}: {type(e).__name__}",
                extra={
                    "event_type": "api_error",
                    "path": request.url.path,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "client_ip": _client_ip(request),
                },
                exc_info=True
            )
            raise
        else:
            duration_ms = (time.perf_counter() - started) * 1000
            log_api_call(
                logger,
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                query=str(request.query_params) or None,
                client_ip=_client_ip(request)
            )
            if duration_ms > self.slow_request_threshold_ms:
                log_performance_metric(
                    logger, "slow_request", round(duration_ms, 2),
                    path=request.url.path, threshold_ms=self.slow_request_threshold_ms
                )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()

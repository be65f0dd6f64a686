"""
에러 응답 표준화

도메인 예외(BaseCustomException)는 to_dict() 그대로, 나머지 예외는 종류별로
{"error", "message", "details", "status_code"} 형식으로 변환합니다.
"""

import traceback
from typing import Callable
from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import IntegrityError, DBAPIError
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import (
    BaseCustomException,
    ValidationError,
    create_error_response,
    create_validation_error_response
)
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# 중복 키 위반 메시지 (MySQL, SQLite)
_DUPLICATE_MARKERS = ("Duplicate entry", "UNIQUE constraint failed")


def _validation_errors(errors) -> list:
    return [
        ValidationError(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            value=error.get("input")
        )
        for error in errors
    ]


def _debug_detail(detail):
    return detail if settings.debug else None


def error_response_for(exc: Exception) -> JSONResponse:
    """예외를 표준 에러 JSON 응답으로 변환"""
    if isinstance(exc, BaseCustomException):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    if isinstance(exc, PydanticValidationError):
        body = create_validation_error_response("Request validation failed", _validation_errors(exc.errors()))
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump(mode="json"))

    if isinstance(exc, IntegrityError):
        detail = str(exc.orig) if exc.orig is not None else str(exc)
        if any(marker in detail for marker in _DUPLICATE_MARKERS):
            body = create_error_response(
                "duplicate_entry", "Duplicate entry detected", status.HTTP_409_CONFLICT, {"constraint": "unique"}
            )
        else:
            body = create_error_response(
                "database_constraint", "Database constraint violation", status.HTTP_400_BAD_REQUEST,
                {"detail": _debug_detail(detail)}
            )
    elif isinstance(exc, DBAPIError):
        logger.error(f"Database error: {type(exc).__name__}: {exc}")
        body = create_error_response(
            "database_error", "Database connection or operation failed",
            status.HTTP_503_SERVICE_UNAVAILABLE, {"detail": _debug_detail(str(exc))}
        )
    elif isinstance(exc, (ConnectionError, TimeoutError)):
        logger.error(f"Upstream unavailable: {type(exc).__name__}: {exc}")
        body = create_error_response(
            "connection_error", "Service temporarily unavailable",
            status.HTTP_503_SERVICE_UNAVAILABLE, {"detail": _debug_detail(str(exc))}
        )
    else:
        logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}", exc_info=exc)
        body = create_error_response(
            "internal_server_error", "An unexpected error occurred",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            _debug_detail({
                "exception": str(exc),
                "type": type(exc).__name__,
                "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            })
        )

    return JSONResponse(status_code=body.status_code, content=body.model_dump())


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """라우터 밖으로 새어 나온 예외를 표준 에러 응답으로 변환"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            return error_response_for(e)


def create_http_exception_handler():
    """HTTPException 핸들러 (도메인 예외 포함)"""
    async def http_exception_handler(request: Request, exc):
        if isinstance(exc, BaseCustomException):
            return error_response_for(exc)

        is_text = isinstance(exc.detail, str)
        body = create_error_response(
            "http_error",
            exc.detail if is_text else "HTTP error occurred",
            exc.status_code,
            None if is_text else {"detail": exc.detail}
        )
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    return http_exception_handler


def create_validation_exception_handler():
    """요청 검증 실패(RequestValidationError) 핸들러"""
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        body = create_validation_error_response("Request validation failed", _validation_errors(exc.errors()))
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=body.model_dump(mode="json"))

    return validation_exception_handler

"""
구조화된 로깅

한 줄에 JSON 하나를 출력합니다. 요청 ID와 사용자 ID는 컨텍스트 변수에서, event_type과
swap_request_id는 extra에서 최상위 필드로 올려 교환 요청 단위로 로그를 모아볼 수 있게 합니다.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar
from pathlib import Path

from app.core.config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
user_id_var: ContextVar[Optional[int]] = ContextVar('user_id', default=None)

# LogRecord 기본 속성 (extra로 취급하지 않음)
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

# extra에서 최상위로 올리는 필드
_PROMOTED_FIELDS = ("event_type", "swap_request_id")


class StructuredFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        extra = {
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith('_')
        }
        user_id = extra.pop("user_id", None) or user_id_var.get()
        if user_id:
            log_data["user_id"] = user_id
        for field in _PROMOTED_FIELDS:
            if field in extra:
                log_data[field] = extra.pop(field)
        if extra:
            log_data["extra"] = extra

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(log_dir: Optional[Path] = None):
    """
    루트 로거 구성

    debug 모드에서는 사람이 읽는 형식, 그 외에는 JSON을 stdout으로 보냅니다.
    log_dir(또는 LOG_DIR 설정)이 있으면 app.log / error.log 파일에도 기록합니다.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if settings.debug else settings.log_level.upper())
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if settings.debug:
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    else:
        console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    log_dir = log_dir or (Path(settings.log_dir) if settings.log_dir else None)
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        for filename, level in (("app.log", logging.INFO), ("error.log", logging.ERROR)):
            file_handler = logging.FileHandler(log_dir / filename, encoding='utf-8')
            file_handler.setLevel(level)
            file_handler.setFormatter(StructuredFormatter())
            root_logger.addHandler(file_handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiokafka"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_request_context(request_id: str, user_id: Optional[int] = None):
    request_id_var.set(request_id)
    user_id_var.set(user_id)


def clear_request_context():
    request_id_var.set(None)
    user_id_var.set(None)


def log_event(logger: logging.Logger, level: int, message: str, event_type: str, **fields):
    """event_type이 붙은 구조화 로그 한 줄"""
    logger.log(level, message, extra={"event_type": event_type, **fields})


def log_api_call(logger: logging.Logger, method: str, path: str, status_code: int,
                 duration_ms: float, **extra):
    level = logging.WARNING if status_code >= 500 else logging.INFO
    log_event(
        logger, level, f"{method} {path} - {status_code}", "api_call",
        method=method, path=path, status_code=status_code,
        duration_ms=round(duration_ms, 2), **extra
    )


def log_swap_event(logger: logging.Logger, event: str, swap_request_id: int, user_id: int, **extra):
    """교환 요청 생성/상태 변경"""
    log_event(
        logger, logging.INFO, f"Swap {event} - Request {swap_request_id} by User {user_id}",
        "swap_request", event=event, swap_request_id=swap_request_id, user_id=user_id, **extra
    )


def log_cache_event(logger: logging.Logger, event: str, key: str, **extra):
    """캐시 hit / miss / put / evict / expired"""
    log_event(logger, logging.DEBUG, f"Cache {event}: {key}", "cache", event=event, key=key, **extra)


def log_websocket_event(logger: logging.Logger, event: str, user_id: int, **extra):
    log_event(
        logger, logging.INFO, f"WebSocket {event} - User {user_id}", "websocket",
        event=event, user_id=user_id, **extra
    )


def log_performance_metric(logger: logging.Logger, metric_name: str, value: float,
                           unit: str = "ms", **extra):
    log_event(
        logger, logging.WARNING, f"Performance {metric_name}: {value}{unit}", "performance_metric",
        metric_name=metric_name, value=value, unit=unit, **extra
    )

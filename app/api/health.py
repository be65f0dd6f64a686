from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.database import check_database_health
from app.utils.time_utils import utcnow

router = APIRouter(tags=["Health"])


def _status_label(ok: bool) -> str:
    return "connected" if ok else "disconnected"


@router.get("/health")
async def health_check():
    """MySQL과 (캐시 백엔드가 redis일 때) Redis 연결 상태"""
    db_health = await check_database_health()
    body = {
        "status": "healthy" if db_health["overall"] else "unhealthy",
        "timestamp": utcnow().isoformat(),
        "service": "swap-inbox-backend",
        "databases": {
            "mysql": _status_label(db_health["mysql"]),
            "redis": _status_label(db_health["redis"]) if settings.cache_backend == "redis" else "unused",
        },
        "cache_backend": settings.cache_backend,
        "event_bus_backend": settings.event_bus_backend,
    }
    return JSONResponse(status_code=200 if db_health["overall"] else 503, content=body)


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe"""
    db_health = await check_database_health()
    if not db_health["overall"]:
        return JSONResponse(status_code=503, content={"status": "not_ready", "databases": db_health})
    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe (외부 의존성 확인 없음)"""
    return {"status": "alive", "timestamp": utcnow().isoformat()}

from typing import List, Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./swap_inbox.db"
    debug: bool = False

    # 로깅 설정
    log_level: str = "INFO"
    log_dir: Optional[str] = None  # 설정하면 app.log, error.log 파일에도 기록
    slow_request_threshold_ms: float = 1000

    # 캐시 설정
    cache_backend: str = "memory"  # memory, redis
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 20
    redis_retry_on_timeout: bool = True
    redis_socket_keepalive: bool = True
    redis_socket_keepalive_options: dict = {}
    unread_count_cache_ttl: int = 300  # 5분 (메시지마다 바뀌므로 짧게 유지)

    # 이벤트 버스 설정
    event_bus_backend: str = "memory"  # memory, kafka

    cors_origins: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"


settings = Settings()

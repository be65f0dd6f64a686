"""
Kafka 설정 (KAFKA_ 접두사 환경 변수)

EVENT_BUS_BACKEND=kafka일 때만 사용됩니다.
"""

import os
import socket
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings


CONSUMER_GROUP_PREFIX = "swap-inbox-push"


def instance_consumer_group_id() -> str:
    """호스트와 프로세스마다 다른 consumer group id"""
    return f"{CONSUMER_GROUP_PREFIX}-{socket.gethostname()}-{os.getpid()}"


class KafkaConfig(BaseSettings):
    bootstrap_servers: List[str] = Field(default=["localhost:9092"])

    # Producer
    producer_acks: str = "all"
    producer_compression_type: str = "gzip"
    producer_request_timeout_ms: int = 30000

    # Consumer
    # 웹소켓 세션은 인스턴스마다 따로 있으므로 모든 인스턴스가 인박스 이벤트를 받도록
    # 인스턴스마다 다른 group id를 씀 (KAFKA_CONSUMER_GROUP_ID로 지정하면 그 값을 사용)
    consumer_group_id: str = Field(default_factory=instance_consumer_group_id)
    consumer_auto_offset_reset: str = "latest"
    consumer_enable_auto_commit: bool = True
    consumer_auto_commit_interval_ms: int = 5000
    consumer_max_poll_records: int = 100
    consumer_session_timeout_ms: int = 30000
    consumer_max_retries: int = Field(default=3, ge=1)

    topic_inbox_events: str = "inbox.events"

    class Config:
        env_prefix = "KAFKA_"
        case_sensitive = False


kafka_config = KafkaConfig()

"""
Kafka Producer

DomainEvent(또는 dict)를 JSON으로 직렬화해 발행합니다. 인박스 이벤트와 DLQ 레코드가
같은 Producer를 사용합니다.
"""

import json
import logging
from typing import Any, Dict, Optional
from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from app.domain.events.base import DomainEvent
from .config import KafkaConfig, kafka_config

logger = logging.getLogger(__name__)


def serialize_event(event: Any) -> Dict:
    if isinstance(event, DomainEvent):
        return event.to_dict()
    if isinstance(event, dict):
        return event
    raise ValueError(f"Unsupported event type: {type(event)}")


class DomainEventProducer:

    def __init__(self, config: KafkaConfig = kafka_config):
        self.config = config
        self.producer: Optional[AIOKafkaProducer] = None

    @property
    def started(self) -> bool:
        return self.producer is not None

    async def start(self):
        if self.started:
            logger.warning("Producer already started")
            return

        producer = AIOKafkaProducer(
            bootstrap_servers=self.config.bootstrap_servers,
            value_serializer=lambda value: json.dumps(value, ensure_ascii=False).encode('utf-8'),
            key_serializer=lambda key: key.encode('utf-8') if key else None,
            acks=self.config.producer_acks,
            compression_type=self.config.producer_compression_type,
            request_timeout_ms=self.config.producer_request_timeout_ms
        )
        try:
            await producer.start()
        except KafkaError as e:
            logger.error(f"Failed to start Kafka Producer ({self.config.bootstrap_servers}): {e}")
            await producer.stop()
            raise

        self.producer = producer
        logger.info("Kafka Producer started")

    async def stop(self):
        if not self.started:
            return
        producer, self.producer = self.producer, None
        await producer.stop()
        logger.info("Kafka Producer stopped")

    async def publish(self, topic: str, event: Any, key: Optional[str] = None):
        """
        이벤트 하나를 발행하고 브로커 확인까지 기다립니다.

        Args:
            topic: Kafka topic
            event: DomainEvent 인스턴스 또는 dict
            key: Partition key (인박스 이벤트는 user_id)

        Raises:
            RuntimeError: start() 전에 호출한 경우
            KafkaError: 전송 실패
        """
        if not self.started:
            raise RuntimeError("Producer not started. Call start() first.")

        value = serialize_event(event)
        try:
            metadata = await self.producer.send_and_wait(topic=topic, value=value, key=key)
        except KafkaError as e:
            logger.error(f"[Kafka Error] Topic: {topic}, Key: {key}, Error: {e}")
            raise

        logger.debug(
            f"[Event Published] {value.get('__event_type__', 'record')} -> "
            f"{topic}[{metadata.partition}]@{metadata.offset}"
        )

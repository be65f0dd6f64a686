"""
Kafka Consumer

구독한 토픽의 레코드를 handler(topic, key, value)로 넘깁니다. handler가 실패하면
consumer_max_retries까지 재시도하고, 그래도 실패하면 "{topic}.dlq"로 보냅니다.
"""

import json
import logging
import asyncio
from typing import List, Callable, Optional, Dict, Any, Awaitable
from aiokafka import AIOKafkaConsumer

from .config import KafkaConfig, kafka_config
from .producer import DomainEventProducer

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Optional[str], Dict], Awaitable[Any]]

RETRY_BACKOFF_SECONDS = 0.5


class DomainEventConsumer:

    def __init__(
        self,
        topics: List[str],
        group_id: str,
        handler: EventHandler,
        config: KafkaConfig = kafka_config,
        dlq_producer: Optional[DomainEventProducer] = None
    ):
        """
        Args:
            topics: 구독할 Kafka topics
            group_id: Consumer group ID
            handler: 레코드 처리 함수 (topic, key, value)
            dlq_producer: 재시도 초과 레코드를 보낼 Producer (없으면 로그만 남김)
        """
        self.topics = topics
        self.group_id = group_id
        self.handler = handler
        self.config = config
        self.dlq_producer = dlq_producer
        self.consumer: Optional[AIOKafkaConsumer] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self):
        if self.running:
            logger.warning(f"Consumer {self.group_id} already running")
            return

        self.consumer = AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=self.config.bootstrap_servers,
            group_id=self.group_id,
            value_deserializer=lambda raw: json.loads(raw.decode('utf-8')),
            key_deserializer=lambda raw: raw.decode('utf-8') if raw else None,
            auto_offset_reset=self.config.consumer_auto_offset_reset,
            enable_auto_commit=self.config.consumer_enable_auto_commit,
            auto_commit_interval_ms=self.config.consumer_auto_commit_interval_ms,
            max_poll_records=self.config.consumer_max_poll_records,
            session_timeout_ms=self.config.consumer_session_timeout_ms
        )
        await self.consumer.start()
        self._task = asyncio.create_task(self._consume_loop())
        logger.info(f"Kafka Consumer started: group_id={self.group_id}, topics={self.topics}")

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self.consumer is not None:
            await self.consumer.stop()
            self.consumer = None
            logger.info(f"Kafka Consumer stopped: {self.group_id}")

    async def _consume_loop(self):
        try:
            async for record in self.consumer:
                await self._handle_message(record)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[Consumer Loop Error] {self.group_id}: {e}", exc_info=True)

    async def _handle_message(self, record):
        max_retries = self.config.consumer_max_retries

        for attempt in range(1, max_retries + 1):
            try:
                await self.handler(record.topic, record.key, record.value)
                return
            except Exception as e:
                logger.warning(
                    f"[Retry {attempt}/{max_retries}] {record.topic}@{record.offset}: {e}"
                )
                if attempt == max_retries:
                    await self._send_to_dlq(record, str(e))
                    return
                await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)

    async def _send_to_dlq(self, record, error: str):
        if self.dlq_producer is None or not self.dlq_producer.started:
            logger.error(f"[DLQ] Dropped record {record.topic}@{record.offset}: {error}")
            return

        dlq_topic = f"{record.topic}.dlq"
        try:
            await self.dlq_producer.publish(
                topic=dlq_topic,
                event={
                    'original_topic': record.topic,
                    'original_partition': record.partition,
                    'original_offset': record.offset,
                    'original_key': record.key,
                    'original_value': record.value,
                    'error': error,
                    'consumer_group': self.group_id,
                },
                key=record.key
            )
            logger.warning(f"[DLQ] {record.topic}@{record.offset} sent to {dlq_topic}")
        except Exception as e:
            logger.error(f"[DLQ Error] Failed to send to {dlq_topic}: {e}")

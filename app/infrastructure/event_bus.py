"""
인박스 이벤트 버스

"이 사용자가 보는 이 교환 요청이 바뀌었다"는 사실을 구독자(웹소켓 푸시 등)에게 알립니다.
발행은 fire-and-forget이며, 전달 실패가 호출한 쪽의 상태 변경을 되돌리지 않습니다.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Dict, Set

from app.core.config import settings
from app.core.logging import get_logger
from app.domain.enums import InboxEventType
from app.domain.events import InboxUpdated
from app.infrastructure.kafka import DomainEventProducer, DomainEventConsumer, KafkaConfig, kafka_config
from app.utils.time_utils import utcnow

logger = get_logger(__name__)

InboxEventHandler = Callable[[InboxUpdated], Awaitable[None]]


class EventBus:
    """이벤트 버스 계약"""

    def __init__(self):
        self._handlers: List[InboxEventHandler] = []

    def subscribe(self, handler: InboxEventHandler) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: InboxEventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def publish(
        self,
        user_id: int,
        swap_request_id: int,
        event_type: InboxEventType,
        chat_message_id: Optional[int] = None
    ) -> None:
        raise NotImplementedError

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def _dispatch(self, event: InboxUpdated) -> None:
        """모든 구독자에게 전달 (한 구독자의 실패가 다른 구독자에 영향을 주지 않음)"""
        for handler in list(self._handlers):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    f"Inbox event handler failed: {e}",
                    extra={
                        "event_type": "event_bus_handler_error",
                        "user_id": event.user_id,
                        "swap_request_id": event.swap_request_id,
                        "inbox_event": event.event_type.value,
                    },
                    exc_info=True
                )


class InProcessEventBus(EventBus):
    """
    같은 프로세스 안의 구독자에게 전달하는 이벤트 버스

    구독자(웹소켓 푸시)는 DB 조회와 전송을 하므로 별도 task로 실행해, 발행한 요청의 응답을
    늦추지 않습니다. 실행 중인 task는 stop() 또는 drain()에서 마무리됩니다.
    """

    def __init__(self):
        super().__init__()
        self._tasks: Set[asyncio.Task] = set()

    async def publish(
        self,
        user_id: int,
        swap_request_id: int,
        event_type: InboxEventType,
        chat_message_id: Optional[int] = None
    ) -> None:
        event = InboxUpdated(
            user_id=user_id,
            swap_request_id=swap_request_id,
            event_type=InboxEventType(event_type),
            timestamp=utcnow(),
            chat_message_id=chat_message_id
        )
        task = asyncio.create_task(self._dispatch(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """발행된 이벤트의 전달이 모두 끝날 때까지 대기"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def stop(self) -> None:
        await self.drain()


class KafkaEventBus(EventBus):
    """
    Kafka 기반 이벤트 버스

    InboxUpdated 이벤트를 inbox.events 토픽에 user_id 키로 발행하고,
    같은 토픽을 소비해 이 인스턴스의 구독자에게 전달합니다.
    """

    def __init__(
        self,
        config: KafkaConfig = kafka_config,
        producer: Optional[DomainEventProducer] = None,
        consumer: Optional[DomainEventConsumer] = None
    ):
        super().__init__()
        self.config = config
        self.topic = config.topic_inbox_events
        self.producer = producer or DomainEventProducer(config)
        self.consumer = consumer or DomainEventConsumer(
            topics=[self.topic],
            group_id=config.consumer_group_id,
            handler=self.handle_record,
            config=config,
            dlq_producer=self.producer
        )

    async def start(self) -> None:
        await self.producer.start()
        await self.consumer.start()

    async def stop(self) -> None:
        await self.consumer.stop()
        await self.producer.stop()

    async def publish(
        self,
        user_id: int,
        swap_request_id: int,
        event_type: InboxEventType,
        chat_message_id: Optional[int] = None
    ) -> None:
        event = InboxUpdated(
            user_id=user_id,
            swap_request_id=swap_request_id,
            event_type=InboxEventType(event_type),
            timestamp=utcnow(),
            chat_message_id=chat_message_id
        )
        try:
            await self.producer.publish(self.topic, event, key=str(user_id))
        except Exception as e:
            logger.error(
                f"Failed to publish inbox event: {e}",
                extra={
                    "event_type": "event_bus_publish_error",
                    "user_id": user_id,
                    "swap_request_id": swap_request_id,
                    "inbox_event": event.event_type.value,
                }
            )

    async def handle_record(self, topic: str, key: Optional[str], value: Dict) -> None:
        """Consumer 핸들러: 레코드를 InboxUpdated로 복원해 구독자에게 전달"""
        if value.get('__event_type__') != InboxUpdated.__name__:
            logger.warning(f"Unknown event on {topic}: {value.get('__event_type__')}")
            return
        await self._dispatch(InboxUpdated.from_dict(value))


def create_event_bus(backend: Optional[str] = None) -> EventBus:
    """설정된 백엔드에 맞는 이벤트 버스 생성"""
    backend = (backend or settings.event_bus_backend).lower()
    if backend == "kafka":
        return KafkaEventBus()
    if backend == "memory":
        return InProcessEventBus()
    raise ValueError(f"Unsupported event bus backend: {backend}")

"""
Kafka Infrastructure

인박스 이벤트용 Producer, Consumer, Config
"""

from .producer import DomainEventProducer
from .consumer import DomainEventConsumer
from .config import KafkaConfig, kafka_config

__all__ = [
    'DomainEventProducer',
    'DomainEventConsumer',
    'KafkaConfig',
    'kafka_config',
]

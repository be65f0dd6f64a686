"""
Inbox Context Domain Events
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from app.domain.enums import InboxEventType
from .base import DomainEvent


@dataclass
class InboxUpdated(DomainEvent):
    """
    특정 사용자의 인박스 행 하나가 바뀌었음을 알리는 이벤트

    NEW_MESSAGE이면 chat_message_id로 새 메시지를 가리켜, 구독자가 채팅 화면에도
    메시지를 바로 보낼 수 있게 합니다.
    """
    user_id: int
    swap_request_id: int
    event_type: InboxEventType
    timestamp: datetime
    chat_message_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict):
        event = super().from_dict(data)
        event.event_type = InboxEventType(event.event_type)
        return event

"""
인박스 변경 알림

교환 요청이 바뀌면 영향을 받은 사용자별로 (user_id, swap_request_id, event_type)을 발행합니다.
구독자(웹소켓 푸시)는 해당 사용자의 인박스 행 하나만 다시 조회해 전달합니다.
"""

from typing import Iterable, Optional

from app.core.logging import get_logger
from app.domain.enums import InboxEventType
from app.infrastructure.event_bus import EventBus

logger = get_logger(__name__)


class DeltaNotifier:

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus

    async def notify(
        self,
        user_id: int,
        swap_request_id: int,
        event_type: InboxEventType,
        chat_message_id: Optional[int] = None
    ) -> None:
        """알림 발행 (실패해도 예외를 전파하지 않음)"""
        try:
            await self.event_bus.publish(
                user_id, swap_request_id, event_type, chat_message_id=chat_message_id
            )
            logger.debug(
                f"Inbox delta published: user={user_id} swap={swap_request_id} type={event_type.value}",
                extra={
                    "event_type": "inbox_delta",
                    "user_id": user_id,
                    "swap_request_id": swap_request_id,
                    "inbox_event": event_type.value,
                }
            )
        except Exception as e:
            logger.error(
                f"Failed to publish inbox delta: {e}",
                extra={
                    "event_type": "inbox_delta_error",
                    "user_id": user_id,
                    "swap_request_id": swap_request_id,
                    "inbox_event": event_type.value,
                }
            )

    async def notify_users(
        self,
        user_ids: Iterable[int],
        swap_request_id: int,
        event_type: InboxEventType
    ) -> None:
        for user_id in dict.fromkeys(user_ids):
            await self.notify(user_id, swap_request_id, event_type)

    async def status_changed(self, record) -> None:
        """상태 변경은 두 당사자 모두의 인박스 행을 바꿈"""
        await self.notify_users(
            (record.sender_id, record.receiver_id), record.id, InboxEventType.STATUS_CHANGE
        )

    async def request_created(self, record) -> None:
        """새 요청은 받는 사람의 인박스에 나타남"""
        await self.notify(record.receiver_id, record.id, InboxEventType.STATUS_CHANGE)

    async def message_sent(self, record, sender_id: int, chat_message_id: Optional[int] = None) -> None:
        """새 메시지는 상대방의 인박스 행을 바꿈 (채팅 화면 푸시는 구독자가 두 당사자에게 전달)"""
        await self.notify(
            record.other_party_id(sender_id), record.id, InboxEventType.NEW_MESSAGE,
            chat_message_id=chat_message_id
        )

"""
인박스/채팅 실시간 푸시

이벤트 버스의 InboxUpdated를 구독해, 해당 사용자의 인박스 행 하나만 다시 조회한 뒤
연결된 모든 세션으로 보냅니다. 새 메시지 이벤트는 메시지 본문도 두 당사자의 세션으로
보내므로 열려 있는 채팅 화면이 GET /chat을 다시 호출하지 않아도 됩니다.
연결된 세션이 없으면 이벤트는 버려집니다.
"""

from typing import Any, Callable, Dict, List

from app.core.errors import BaseCustomException
from app.core.logging import get_logger
from app.domain.events import InboxUpdated
from app.infrastructure.cache import Cache
from app.infrastructure.event_bus import EventBus
from app.models.chat_messages import ChatMessage
from app.schemas.chat_message import ChatMessageResponse
from app.schemas.inbox import InboxItemResponse
from app.services import SwapServices, build_services
from .connection_manager import ConnectionManager

logger = get_logger(__name__)


def inbox_snapshot_message(items: List[InboxItemResponse]) -> Dict[str, Any]:
    """전체 인박스 스냅샷 (연결 직후, refresh 요청 시)"""
    return {
        "type": "inbox_update",
        "items": [item.model_dump(mode="json") for item in items],
        "total": len(items),
    }


def inbox_item_message(event: InboxUpdated, item: InboxItemResponse) -> Dict[str, Any]:
    """행 하나에 대한 델타"""
    return {
        "type": "inbox_item_update",
        "event_type": event.event_type.value,
        "swap_request_id": event.swap_request_id,
        "item": item.model_dump(mode="json"),
    }


def chat_message_message(message: ChatMessage, viewer_id: int) -> Dict[str, Any]:
    """채팅 화면에 추가할 메시지 (is_own_message는 받는 세션의 사용자 기준)"""
    return {
        "type": "chat_message",
        "swap_request_id": message.swap_request_id,
        "message": ChatMessageResponse.from_message(message, viewer_id=viewer_id).model_dump(mode="json"),
    }


class InboxPushSubscriber:

    def __init__(
        self,
        manager: ConnectionManager,
        session_factory: Callable,
        cache: Cache,
        event_bus: EventBus
    ):
        self.manager = manager
        self.session_factory = session_factory
        self.cache = cache
        self.event_bus = event_bus

    def register(self) -> None:
        self.event_bus.subscribe(self.handle)

    def unregister(self) -> None:
        self.event_bus.unsubscribe(self.handle)

    async def handle(self, event: InboxUpdated) -> None:
        if not self.manager.get_connected_users():
            return

        async with self.session_factory() as db:
            services = build_services(db, self.cache, self.event_bus)
            if event.chat_message_id is not None:
                await self._push_chat_message(services, event)
            if self.manager.is_user_connected(event.user_id):
                await self._push_inbox_item(services, event)

    async def _push_inbox_item(self, services: SwapServices, event: InboxUpdated) -> None:
        try:
            item = await services.inbox.get_inbox_item(event.user_id, event.swap_request_id)
        except BaseCustomException as e:
            logger.warning(
                f"Skipping inbox push for user {event.user_id}: {e.message}",
                extra={"event_type": "inbox_push_skipped", "swap_request_id": event.swap_request_id}
            )
            return

        delivered = await self.manager.send_to_user(event.user_id, inbox_item_message(event, item))
        logger.debug(
            f"Inbox delta pushed to {delivered} session(s) of user {event.user_id}",
            extra={"event_type": "inbox_push", "swap_request_id": event.swap_request_id}
        )

    async def _push_chat_message(self, services: SwapServices, event: InboxUpdated) -> None:
        """받는 사람과 보낸 사람 양쪽의 세션으로 메시지 전송"""
        message = await services.chat_gate.chat_store.find_by_id(event.chat_message_id)
        if message is None or message.swap_request_id != event.swap_request_id:
            logger.warning(
                f"Skipping chat push: message {event.chat_message_id} not found on swap {event.swap_request_id}",
                extra={"event_type": "chat_push_skipped", "swap_request_id": event.swap_request_id}
            )
            return

        for user_id in dict.fromkeys((event.user_id, message.sender_id)):
            if self.manager.is_user_connected(user_id):
                await self.manager.send_to_user(user_id, chat_message_message(message, user_id))
        logger.debug(
            f"Chat message {message.id} pushed on swap {event.swap_request_id}",
            extra={"event_type": "chat_push", "swap_request_id": event.swap_request_id}
        )

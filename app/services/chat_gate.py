"""
교환 요청 채팅

채팅 접근 권한, 메시지 전송/읽음 처리, 읽지 않은 메시지 수 캐시를 담당합니다.
캐시 무효화는 상태를 바꾸는 바로 그 메서드 안에서, 반환하기 전에 수행합니다.
"""

from typing import List, Optional, Sequence

from app.core.config import settings
from app.core.errors import (
    SwapRequestNotFoundException,
    SwapAccessDeniedException,
    EmptyMessageException,
    ValidationException,
    ValidationError,
)
from app.core.logging import get_logger
from app.infrastructure.cache import Cache, unread_count_key
from app.models.chat_messages import ChatMessage
from app.models.swap_requests import SwapRequest
from app.repositories import SqlSwapRecordStore, SqlChatStore
from app.utils.time_utils import utcnow
from .delta_notifier import DeltaNotifier

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 1000


def normalize_message_text(text: Optional[str]) -> Optional[str]:
    """앞뒤 공백 제거, 빈 문자열은 None"""
    if text is None:
        return None
    text = text.strip()
    if not text:
        return None
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationException(
            f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters",
            validation_errors=[
                ValidationError(field="message", message="Message too long", value=len(text))
            ]
        )
    return text


class ChatGate:

    def __init__(
        self,
        store: SqlSwapRecordStore,
        chat_store: SqlChatStore,
        cache: Cache,
        notifier: DeltaNotifier,
        unread_count_ttl: Optional[int] = None
    ):
        self.store = store
        self.chat_store = chat_store
        self.cache = cache
        self.notifier = notifier
        self.unread_count_ttl = unread_count_ttl or settings.unread_count_cache_ttl

    async def get_authorized_swap(self, swap_request_id: int, user_id: int) -> SwapRequest:
        """교환 요청을 조회하고 user_id가 당사자인지 확인"""
        record = await self.store.find_by_id(swap_request_id)
        if record is None:
            raise SwapRequestNotFoundException(swap_request_id)
        if not record.is_party(user_id):
            logger.warning(
                f"User {user_id} denied access to swap request {swap_request_id}",
                extra={"event_type": "swap_access_denied", "swap_request_id": swap_request_id}
            )
            raise SwapAccessDeniedException(swap_request_id, user_id)
        return record

    async def send_message(
        self,
        swap_request_id: int,
        sender_id: int,
        text: Optional[str] = None,
        image_refs: Optional[Sequence[str]] = None
    ) -> ChatMessage:
        """
        메시지를 전송합니다.

        상대방의 unread count 캐시를 비우고, 상대방을 읽지 않음 상태로 되돌린 뒤
        상대방에게 NEW_MESSAGE 알림을 보냅니다.
        """
        record = await self.get_authorized_swap(swap_request_id, sender_id)

        text = normalize_message_text(text)
        images = [ref for ref in (image_refs or []) if ref]
        if text is None and not images:
            raise EmptyMessageException()

        now = utcnow()
        message = await self.chat_store.save(
            ChatMessage(
                swap_request_id=swap_request_id,
                sender_id=sender_id,
                text=text,
                image_refs=images,
                sent_at=now,
                read_by_receiver=False
            )
        )

        other_id = record.other_party_id(sender_id)
        await self.store.touch_activity(swap_request_id, record.role_of(other_id), now)
        await self.cache.evict(unread_count_key(other_id, swap_request_id))

        logger.info(
            f"Chat message sent on swap {swap_request_id} by user {sender_id}",
            extra={
                "event_type": "chat_message_sent",
                "swap_request_id": swap_request_id,
                "chat_message_id": message.id,
                "image_count": len(images),
            }
        )
        await self.notifier.message_sent(record, sender_id, chat_message_id=message.id)
        return message

    async def mark_messages_read(self, swap_request_id: int, user_id: int) -> int:
        """user_id가 받은 메시지를 모두 읽음 처리하고 처리된 수를 반환"""
        await self.get_authorized_swap(swap_request_id, user_id)
        return await self._mark_read(swap_request_id, user_id)

    async def _mark_read(self, swap_request_id: int, user_id: int) -> int:
        marked = await self.chat_store.mark_read(swap_request_id, user_id)
        await self.cache.evict(unread_count_key(user_id, swap_request_id))
        if marked:
            logger.debug(f"Marked {marked} messages read on swap {swap_request_id} for user {user_id}")
        return marked

    async def get_unread_count(self, swap_request_id: int, user_id: int) -> int:
        await self.get_authorized_swap(swap_request_id, user_id)
        return await self.unread_count_for(swap_request_id, user_id)

    async def unread_count_for(self, swap_request_id: int, user_id: int) -> int:
        """
        캐시를 거친 읽지 않은 메시지 수 (권한 확인 없음).

        인박스처럼 이미 당사자 여부가 확인된 경로에서 사용합니다.
        """
        key = unread_count_key(user_id, swap_request_id)
        cached = await self.cache.get(key)
        if cached is not None:
            try:
                return int(cached)
            except ValueError:
                logger.warning(f"Ignoring malformed cache value for {key}: {cached!r}")

        # 세는 동안 메시지 전송/읽음 처리로 evict되면 이 값은 캐시에 쓰지 않음
        generation = await self.cache.generation(key)
        count = await self.chat_store.count_unread(swap_request_id, user_id)
        await self.cache.put(key, str(count), self.unread_count_ttl, generation=generation)
        return count

    async def get_chat_messages(self, swap_request_id: int, user_id: int) -> List[ChatMessage]:
        """스레드 조회: 받은 메시지를 읽음 처리한 뒤 전송 순으로 반환"""
        await self.get_authorized_swap(swap_request_id, user_id)
        await self._mark_read(swap_request_id, user_id)
        return await self.chat_store.find_by_swap(swap_request_id)

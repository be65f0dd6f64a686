"""
교환 요청 상태 머신

상태 전이 가능 여부와 전이를 요청할 수 있는 역할은 TRANSITIONS 표 하나로 결정합니다.
전이는 저장소의 조건부 UPDATE로 실행되므로 동시에 들어온 요청 중 하나만 성공합니다.
"""

from typing import Dict, FrozenSet, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from app.core.errors import (
    SwapAccessDeniedException,
    DuplicateSwapRequestException,
    IllegalSwapRequestException,
    BookNotOwnedByReceiverException,
    OfferNotSwappableException,
    InvalidStatusTransitionException,
    NotAuthorizedTransitionException,
    SwapRequestNotFoundException,
    user_not_found_error,
    book_not_found_error,
    genre_not_found_error,
)
from app.core.logging import get_logger, log_swap_event
from app.domain.enums import SwapStatus, SwapType, PartyRole
from app.infrastructure.cache import Cache, unread_count_key
from app.models.swap_requests import SwapRequest
from app.repositories import SqlSwapRecordStore, BookCatalog
from app.utils.time_utils import utcnow
from .delta_notifier import DeltaNotifier

logger = get_logger(__name__)

_RECEIVER = frozenset({PartyRole.RECEIVER})
_EITHER = frozenset({PartyRole.SENDER, PartyRole.RECEIVER})

# (현재 상태, 새 상태) -> 전이를 요청할 수 있는 역할
TRANSITIONS: Dict[Tuple[SwapStatus, SwapStatus], FrozenSet[PartyRole]] = {
    (SwapStatus.PENDING, SwapStatus.ACCEPTED): _RECEIVER,
    (SwapStatus.PENDING, SwapStatus.REJECTED): _RECEIVER,
    (SwapStatus.PENDING, SwapStatus.EXPIRED): _EITHER,
    (SwapStatus.ACCEPTED, SwapStatus.RESERVED): _RECEIVER,
    (SwapStatus.ACCEPTED, SwapStatus.EXPIRED): _RECEIVER,
    (SwapStatus.RESERVED, SwapStatus.EXPIRED): _RECEIVER,
}

# 역할별로 요청할 수 있는 목표 상태 (호출 경로가 표보다 좁은 권한을 가질 때 사용)
Capabilities = Mapping[PartyRole, FrozenSet[SwapStatus]]


def allowed_roles(current: SwapStatus, new: SwapStatus) -> FrozenSet[PartyRole]:
    return TRANSITIONS.get((current, new), frozenset())


class SwapWorkflow:
    """교환 요청 생성과 상태 전이"""

    def __init__(
        self,
        store: SqlSwapRecordStore,
        catalog: BookCatalog,
        cache: Cache,
        notifier: DeltaNotifier
    ):
        self.store = store
        self.catalog = catalog
        self.cache = cache
        self.notifier = notifier

    async def create_swap_request(
        self,
        sender_id: int,
        receiver_id: int,
        book_id: int,
        swap_type: str,
        offered_book_id: Optional[int] = None,
        offered_genre_id: Optional[int] = None,
        ask_for_giveaway: bool = False,
        note: Optional[str] = None
    ) -> SwapRequest:
        """
        교환 요청을 생성합니다.

        Args:
            sender_id: 요청하는 사용자 ID
            receiver_id: 책 소유자 ID
            book_id: 요청하는 책 ID
            swap_type: 교환 타입 코드 (ByBooks, GiveAway, OpenForOffers)
            offered_book_id: 대가로 제안하는 책 (요청 책의 교환 가능 책 중 하나)
            offered_genre_id: 대가로 제안하는 장르 (요청 책의 교환 가능 장르 중 하나)

        Returns:
            SwapRequest: PENDING 상태로 생성된 교환 요청 (두 당사자 모두 읽지 않음)
        """
        swap_type_enum = SwapType.from_code(swap_type)

        if sender_id == receiver_id:
            raise IllegalSwapRequestException(
                "Cannot send a swap request to yourself",
                details={"sender_id": sender_id, "receiver_id": receiver_id}
            )

        if await self.catalog.get_user(sender_id) is None:
            raise user_not_found_error(sender_id)
        if await self.catalog.get_user(receiver_id) is None:
            raise user_not_found_error(receiver_id)
        if await self.catalog.get_book(book_id) is None:
            raise book_not_found_error(book_id)

        if await self.store.exists_by_parties(sender_id, receiver_id, book_id):
            raise DuplicateSwapRequestException(sender_id, receiver_id, book_id)

        if not await self.catalog.user_owns_book(receiver_id, book_id):
            raise BookNotOwnedByReceiverException(book_id, receiver_id)

        if offered_book_id is not None:
            if offered_book_id not in await self.catalog.swappable_book_ids(book_id):
                raise OfferNotSwappableException("book", offered_book_id, book_id)

        if offered_genre_id is not None:
            if await self.catalog.get_genre(offered_genre_id) is None:
                raise genre_not_found_error(offered_genre_id)
            if offered_genre_id not in await self.catalog.swappable_genre_ids(book_id):
                raise OfferNotSwappableException("genre", offered_genre_id, book_id)

        now = utcnow()
        record = SwapRequest(
            sender_id=sender_id,
            receiver_id=receiver_id,
            book_id=book_id,
            swap_type=swap_type_enum.value,
            offered_book_id=offered_book_id,
            offered_genre_id=offered_genre_id,
            ask_for_giveaway=ask_for_giveaway,
            status=SwapStatus.PENDING.value,
            note=note,
            requested_at=now,
            updated_at=now,
            sender_activity_at=now,
            receiver_activity_at=now
        )

        try:
            record = await self.store.save(record)
        except IntegrityError:
            # 동시에 같은 요청이 들어와 unique 제약에 걸린 경우
            await self.store.db.rollback()
            raise DuplicateSwapRequestException(sender_id, receiver_id, book_id)

        log_swap_event(
            logger, "created", record.id, sender_id,
            receiver_id=receiver_id, book_id=book_id, swap_type=record.swap_type
        )
        await self.notifier.request_created(record)
        return record

    async def get_swap_request(self, swap_request_id: int) -> SwapRequest:
        record = await self.store.find_by_id(swap_request_id)
        if record is None:
            raise SwapRequestNotFoundException(swap_request_id)
        return record

    def authorize_transition(
        self,
        record: SwapRequest,
        new_status: SwapStatus,
        acting_user_id: int,
        capabilities: Optional[Capabilities] = None
    ) -> PartyRole:
        """
        전이 가능 여부와 요청자 권한을 확인하고 요청자의 역할을 반환합니다.

        표에 없는 전이는 InvalidStatusTransitionException, 표에는 있지만 역할이
        허용되지 않으면 NotAuthorizedTransitionException을 발생시킵니다.
        """
        current = record.swap_status
        roles = allowed_roles(current, new_status)
        if not roles:
            raise InvalidStatusTransitionException(current.value, new_status.value, record.id)

        role = record.role_of(acting_user_id)
        if role is None:
            raise SwapAccessDeniedException(record.id, acting_user_id)

        if role not in roles or (capabilities is not None and new_status not in capabilities.get(role, ())):
            raise NotAuthorizedTransitionException(current.value, new_status.value, record.id, role.value)

        return role

    async def update_status(
        self,
        swap_request_id: int,
        new_status: str,
        acting_user_id: int,
        capabilities: Optional[Capabilities] = None
    ) -> SwapRequest:
        """
        교환 요청 상태를 변경합니다.

        성공하면 상대방을 읽지 않음 상태로 되돌리고, 두 당사자의 unread count 캐시를
        비운 뒤 두 당사자 모두에게 STATUS_CHANGE 알림을 보냅니다.
        """
        target = SwapStatus.from_code(new_status)
        record = await self.get_swap_request(swap_request_id)
        role = self.authorize_transition(record, target, acting_user_id, capabilities)
        current = record.swap_status

        other_role = PartyRole.SENDER if role == PartyRole.RECEIVER else PartyRole.RECEIVER
        won = await self.store.compare_and_set_status(
            swap_request_id, current, target, utcnow(), notify_role=other_role
        )
        record = await self.get_swap_request(swap_request_id)

        if not won:
            # 다른 요청이 먼저 상태를 바꿈
            logger.warning(
                f"Lost status transition race on swap {swap_request_id}: "
                f"{current.value} -> {target.value}, now {record.status}",
                extra={"event_type": "swap_transition_conflict", "swap_request_id": swap_request_id}
            )
            raise InvalidStatusTransitionException(record.status, target.value, swap_request_id)

        await self.evict_unread_counts(record)
        log_swap_event(
            logger, "status_changed", swap_request_id, acting_user_id,
            from_status=current.value, to_status=target.value, role=role.value
        )
        await self.notifier.status_changed(record)
        return record

    async def evict_unread_counts(self, record: SwapRequest) -> None:
        for user_id in (record.sender_id, record.receiver_id):
            await self.cache.evict(unread_count_key(user_id, record.id))

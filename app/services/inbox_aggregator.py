"""
통합 인박스

사용자가 보낸 요청과 받은 요청을 합치고, 상태로 거른 뒤 다섯 가지 정렬 방식 중 하나로
정렬합니다. 각 행에는 조회한 사용자 기준의 읽음 여부, 읽지 않은 메시지 수,
최신 메시지 미리보기가 붙습니다.
"""

from functools import cmp_to_key
from typing import Callable, Dict, List, Optional

from app.core.errors import SwapRequestNotFoundException, SwapAccessDeniedException
from app.core.logging import get_logger
from app.domain.enums import SwapStatus, PartyRole, InboxSortBy
from app.models.chat_messages import ChatMessage
from app.models.swap_requests import SwapRequest
from app.repositories import SqlSwapRecordStore, SqlChatStore
from app.schemas.common import UserSummary, BookSummary
from app.schemas.inbox import InboxItemResponse, LatestMessagePreview
from app.schemas.swap_request import SwapOfferSummary
from app.utils.time_utils import utcnow
from .chat_gate import ChatGate
from .swap_workflow import SwapWorkflow

logger = get_logger(__name__)

# 인박스에서 요청할 수 있는 목표 상태 (상태 머신 표보다 좁음)
INBOX_CAPABILITIES = {
    PartyRole.RECEIVER: frozenset({SwapStatus.ACCEPTED, SwapStatus.REJECTED, SwapStatus.RESERVED}),
    PartyRole.SENDER: frozenset({SwapStatus.EXPIRED}),
}

Comparator = Callable[[InboxItemResponse, InboxItemResponse], int]


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_latest_message(a: InboxItemResponse, b: InboxItemResponse) -> int:
    """메시지가 있는 행 먼저 (최신 메시지 순), 없는 행은 요청 일시 최신 순"""
    if a.latest_message and b.latest_message:
        return _cmp(b.latest_message.sent_at, a.latest_message.sent_at)
    if a.latest_message:
        return -1
    if b.latest_message:
        return 1
    return _cmp(b.requested_at, a.requested_at)


def compare_date(a: InboxItemResponse, b: InboxItemResponse) -> int:
    return _cmp(b.requested_at, a.requested_at)


def compare_book_title(a: InboxItemResponse, b: InboxItemResponse) -> int:
    return _cmp(a.book.title.lower(), b.book.title.lower())


def compare_sender_name(a: InboxItemResponse, b: InboxItemResponse) -> int:
    # 조회한 사용자와 무관하게 항상 요청을 보낸 사람 기준
    return _cmp(a.sender.name.lower(), b.sender.name.lower())


def compare_status(a: InboxItemResponse, b: InboxItemResponse) -> int:
    return _cmp(a.swap_status.lower(), b.swap_status.lower())


SORT_STRATEGIES: Dict[InboxSortBy, Comparator] = {
    InboxSortBy.LATEST_MESSAGE: compare_latest_message,
    InboxSortBy.DATE: compare_date,
    InboxSortBy.BOOK_TITLE: compare_book_title,
    InboxSortBy.SENDER_NAME: compare_sender_name,
    InboxSortBy.STATUS: compare_status,
}


def sort_inbox(items: List[InboxItemResponse], sort_by: Optional[str] = None) -> List[InboxItemResponse]:
    """알 수 없는 정렬 값은 latest_message로 처리"""
    comparator = SORT_STRATEGIES[InboxSortBy.parse(sort_by)]
    return sorted(items, key=cmp_to_key(comparator))


def parse_status_filter(status: Optional[str]) -> Optional[SwapStatus]:
    if status is None or not status.strip():
        return None
    return SwapStatus.from_code(status)


class InboxAggregator:

    def __init__(
        self,
        store: SqlSwapRecordStore,
        chat_store: SqlChatStore,
        chat_gate: ChatGate,
        workflow: SwapWorkflow
    ):
        self.store = store
        self.chat_store = chat_store
        self.chat_gate = chat_gate
        self.workflow = workflow

    async def get_unified_inbox(
        self,
        user_id: int,
        status: Optional[str] = None,
        sort_by: Optional[str] = None
    ) -> List[InboxItemResponse]:
        """
        보낸 요청과 받은 요청을 합친 정렬된 인박스.

        Args:
            user_id: 조회하는 사용자 ID
            status: 상태 코드 필터 (대소문자 무시, 잘못된 값이면 InvalidStatusException)
            sort_by: latest_message(기본), date, book_title, sender_name, status
        """
        status_filter = parse_status_filter(status)
        records = await self.store.find_by_party(user_id, status_filter)
        return await self._build_sorted(records, user_id, sort_by)

    async def get_sent_swap_requests(
        self,
        user_id: int,
        status: Optional[str] = None,
        sort_by: Optional[str] = None
    ) -> List[InboxItemResponse]:
        status_filter = parse_status_filter(status)
        records = await self.store.find_sent(user_id, status_filter)
        return await self._build_sorted(records, user_id, sort_by)

    async def get_received_swap_requests(
        self,
        user_id: int,
        status: Optional[str] = None,
        sort_by: Optional[str] = None
    ) -> List[InboxItemResponse]:
        status_filter = parse_status_filter(status)
        records = await self.store.find_received(user_id, status_filter)
        return await self._build_sorted(records, user_id, sort_by)

    async def get_inbox_item(self, user_id: int, swap_request_id: int) -> InboxItemResponse:
        """인박스 행 하나 (푸시 후 재동기화, 웹소켓 델타 전송에 사용)"""
        record = await self._get_party_record(swap_request_id, user_id)
        latest = await self.chat_store.find_latest(swap_request_id)
        return await self.build_item(record, user_id, latest)

    async def update_swap_request_status(
        self,
        swap_request_id: int,
        new_status: str,
        user_id: int
    ) -> InboxItemResponse:
        """
        인박스 경로의 상태 변경.

        받은 사람은 Accepted/Rejected/Reserved, 보낸 사람은 Expired만 요청할 수 있습니다.
        """
        await self.workflow.update_status(
            swap_request_id, new_status, user_id, capabilities=INBOX_CAPABILITIES
        )
        return await self.get_inbox_item(user_id, swap_request_id)

    async def mark_inbox_item_as_read(self, swap_request_id: int, user_id: int) -> InboxItemResponse:
        """읽지 않은 상태일 때만 읽음 시각을 기록 (이미 읽었으면 아무것도 하지 않음)"""
        record = await self._get_party_record(swap_request_id, user_id)
        if record.is_unread_for(user_id):
            await self.store.mark_read(swap_request_id, record.role_of(user_id), utcnow())
        return await self.get_inbox_item(user_id, swap_request_id)

    async def _get_party_record(self, swap_request_id: int, user_id: int) -> SwapRequest:
        record = await self.store.find_by_id(swap_request_id)
        if record is None:
            raise SwapRequestNotFoundException(swap_request_id)
        if not record.is_party(user_id):
            raise SwapAccessDeniedException(swap_request_id, user_id)
        return record

    async def _build_sorted(
        self,
        records: List[SwapRequest],
        user_id: int,
        sort_by: Optional[str]
    ) -> List[InboxItemResponse]:
        latest_by_swap = await self.chat_store.find_latest_by_swaps(record.id for record in records)
        items = [
            await self.build_item(record, user_id, latest_by_swap.get(record.id))
            for record in records
        ]
        return sort_inbox(items, sort_by)

    async def build_item(
        self,
        record: SwapRequest,
        user_id: int,
        latest_message: Optional[ChatMessage]
    ) -> InboxItemResponse:
        unread_count = await self.chat_gate.unread_count_for(record.id, user_id)
        return InboxItemResponse(
            id=record.id,
            swap_type=record.swap_type,
            swap_status=record.status,
            note=record.note,
            requested_at=record.requested_at,
            updated_at=record.updated_at,
            sender=UserSummary.from_user(record.sender),
            receiver=UserSummary.from_user(record.receiver),
            book=BookSummary.model_validate(record.book),
            swap_offer=SwapOfferSummary.from_record(record),
            ask_for_giveaway=record.ask_for_giveaway,
            unread_message_count=unread_count,
            is_unread=record.is_unread_for(user_id),
            has_new_messages=unread_count > 0,
            conversation_type="received" if record.receiver_id == user_id else "sent",
            latest_message=LatestMessagePreview.from_message(latest_message) if latest_message else None
        )

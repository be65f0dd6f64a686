import pytest
from datetime import datetime, timedelta

from app.core.errors import (
    InvalidStatusException,
    NotAuthorizedTransitionException,
    SwapAccessDeniedException,
)
from app.domain.enums import SwapStatus
from app.schemas.common import UserSummary, BookSummary
from app.schemas.inbox import InboxItemResponse, LatestMessagePreview
from app.services.inbox_aggregator import (
    INBOX_CAPABILITIES,
    SORT_STRATEGIES,
    compare_latest_message,
    sort_inbox,
)


T0 = datetime(2025, 1, 1, 12, 0, 0)


def make_item(item_id, requested_at=T0, latest_at=None, title="Dune",
              sender_name="Alice Sender", status="Pending"):
    """정렬 테스트용 인박스 행"""
    latest = None
    if latest_at is not None:
        latest = LatestMessagePreview(content="hi", sender_id=1, sent_at=latest_at)
    return InboxItemResponse(
        id=item_id,
        swap_type="ByBooks",
        swap_status=status,
        requested_at=requested_at,
        updated_at=requested_at,
        sender=UserSummary(id=1, name=sender_name),
        receiver=UserSummary(id=2, name="Bob Receiver"),
        book=BookSummary(id=item_id, title=title),
        conversation_type="sent",
        latest_message=latest
    )


class TestSortStrategies:
    """인박스 정렬 테스트"""

    def test_all_sort_options_registered(self):
        assert {key.value for key in SORT_STRATEGIES} == {
            "latest_message", "date", "book_title", "sender_name", "status"
        }

    def test_latest_message_order(self):
        """메시지 있는 행 먼저 최신 순, 그 다음 메시지 없는 행을 요청 일시 최신 순"""
        r1 = make_item(1, requested_at=T0 + timedelta(hours=1), latest_at=T0 + timedelta(hours=10))
        r2 = make_item(2, requested_at=T0 + timedelta(hours=5))
        r3 = make_item(3, requested_at=T0 + timedelta(hours=2), latest_at=T0 + timedelta(hours=8))

        ordered = sort_inbox([r2, r3, r1], "latest_message")

        assert [item.id for item in ordered] == [1, 3, 2]

    def test_messageless_rows_by_request_date(self):
        older = make_item(1, requested_at=T0)
        newer = make_item(2, requested_at=T0 + timedelta(days=1))
        assert compare_latest_message(newer, older) < 0
        assert compare_latest_message(older, older) == 0

    def test_date_descending(self):
        items = [make_item(i, requested_at=T0 + timedelta(days=i)) for i in range(3)]
        assert [item.id for item in sort_inbox(items, "date")] == [2, 1, 0]

    def test_book_title_case_insensitive(self):
        items = [make_item(1, title="dune"), make_item(2, title="Anathem"), make_item(3, title="BLINDSIGHT")]
        assert [item.book.title for item in sort_inbox(items, "book_title")] == ["Anathem", "BLINDSIGHT", "dune"]

    def test_sender_name_ascending(self):
        items = [make_item(1, sender_name="zoe"), make_item(2, sender_name="Adam"), make_item(3, sender_name="mia")]
        assert [item.id for item in sort_inbox(items, "sender_name")] == [2, 3, 1]

    def test_status_alphabetical(self):
        items = [make_item(i, status=status) for i, status in enumerate(["Reserved", "Accepted", "Pending"])]
        assert [item.swap_status for item in sort_inbox(items, "STATUS")] == ["Accepted", "Pending", "Reserved"]

    @pytest.mark.parametrize("sort_by", [None, "", "newest", "price"])
    def test_unknown_sort_falls_back_to_latest_message(self, sort_by):
        r1 = make_item(1, requested_at=T0 + timedelta(days=3))
        r2 = make_item(2, requested_at=T0, latest_at=T0 + timedelta(minutes=1))
        assert [item.id for item in sort_inbox([r1, r2], sort_by)] == [2, 1]


class TestInboxCapabilities:

    def test_receiver_and_sender_targets(self):
        from app.domain.enums import PartyRole
        assert INBOX_CAPABILITIES[PartyRole.RECEIVER] == {
            SwapStatus.ACCEPTED, SwapStatus.REJECTED, SwapStatus.RESERVED
        }
        assert INBOX_CAPABILITIES[PartyRole.SENDER] == {SwapStatus.EXPIRED}


class TestUnifiedInbox:
    """통합 인박스 조회 테스트"""

    @pytest.mark.asyncio
    async def test_union_of_sent_and_received(self, services, make_user, make_book, make_swap,
                                              sender, receiver, outsider, book):
        outsider_book = await make_book(outsider, "Solaris")
        sent = await make_swap(sender, receiver, book)
        received = await make_swap(outsider, sender, await make_book(sender, "Hyperion"))
        await make_swap(receiver, outsider, outsider_book)

        items = await services.inbox.get_unified_inbox(sender.id)

        assert {item.id for item in items} == {sent.id, received.id}
        by_id = {item.id: item for item in items}
        assert by_id[sent.id].conversation_type == "sent"
        assert by_id[received.id].conversation_type == "received"

    @pytest.mark.asyncio
    async def test_sent_and_received_views(self, services, make_book, make_swap, sender, receiver, book):
        sent = await make_swap(sender, receiver, book)
        received = await make_swap(receiver, sender, await make_book(sender, "Hyperion"))

        assert [item.id for item in await services.inbox.get_sent_swap_requests(sender.id)] == [sent.id]
        assert [item.id for item in await services.inbox.get_received_swap_requests(sender.id)] == [received.id]

    @pytest.mark.asyncio
    async def test_status_filter_is_case_insensitive(self, services, make_book, make_swap, sender, receiver, book):
        await make_swap(sender, receiver, book, status=SwapStatus.PENDING)
        accepted = await make_swap(sender, receiver, await make_book(receiver, "Foundation"),
                                   status=SwapStatus.ACCEPTED)

        items = await services.inbox.get_unified_inbox(sender.id, status="accepted")

        assert [item.id for item in items] == [accepted.id]

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, services, sender):
        with pytest.raises(InvalidStatusException) as exc_info:
            await services.inbox.get_unified_inbox(sender.id, status="Finished")
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_default_sort_uses_latest_message(self, services, make_book, make_swap, make_message,
                                                    sender, receiver, book):
        quiet = await make_swap(sender, receiver, book, requested_at=T0 + timedelta(hours=5))
        chatty = await make_swap(sender, receiver, await make_book(receiver, "Foundation"), requested_at=T0)
        await make_message(chatty, receiver, "still available?", sent_at=T0 + timedelta(hours=1))

        items = await services.inbox.get_unified_inbox(sender.id)

        assert [item.id for item in items] == [chatty.id, quiet.id]
        assert items[0].latest_message.content == "still available?"
        assert items[0].unread_message_count == 1
        assert items[0].has_new_messages is True
        assert items[1].latest_message is None

    @pytest.mark.asyncio
    async def test_latest_preview_picks_newest_message(self, services, make_message, pending_swap, sender, receiver):
        base = pending_swap.requested_at
        await make_message(pending_swap, sender, "first", sent_at=base + timedelta(minutes=1))
        await make_message(pending_swap, receiver, "newest", sent_at=base + timedelta(minutes=9))
        await make_message(pending_swap, sender, "middle", sent_at=base + timedelta(minutes=5))

        item = await services.inbox.get_inbox_item(sender.id, pending_swap.id)

        assert item.latest_message.content == "newest"
        assert item.latest_message.sender_id == receiver.id

    @pytest.mark.asyncio
    async def test_new_request_is_unread_for_both(self, services, pending_swap, sender, receiver):
        assert (await services.inbox.get_inbox_item(sender.id, pending_swap.id)).is_unread is True
        assert (await services.inbox.get_inbox_item(receiver.id, pending_swap.id)).is_unread is True

    @pytest.mark.asyncio
    async def test_get_inbox_item_denies_non_party(self, services, pending_swap, outsider):
        with pytest.raises(SwapAccessDeniedException):
            await services.inbox.get_inbox_item(outsider.id, pending_swap.id)


class TestInboxMarkRead:
    """인박스 읽음 처리 테스트"""

    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self, services, pending_swap, receiver):
        first = await services.inbox.mark_inbox_item_as_read(pending_swap.id, receiver.id)
        record = await services.workflow.store.find_by_id(pending_swap.id)
        read_at = record.read_by_receiver_at

        second = await services.inbox.mark_inbox_item_as_read(pending_swap.id, receiver.id)
        record = await services.workflow.store.find_by_id(pending_swap.id)

        assert first.is_unread is False
        assert second.is_unread is False
        assert record.read_by_receiver_at == read_at

    @pytest.mark.asyncio
    async def test_mark_read_leaves_other_party_unread(self, services, pending_swap, sender, receiver):
        await services.inbox.mark_inbox_item_as_read(pending_swap.id, receiver.id)

        assert (await services.inbox.get_inbox_item(sender.id, pending_swap.id)).is_unread is True

    @pytest.mark.asyncio
    async def test_mark_read_denies_non_party(self, services, pending_swap, outsider):
        with pytest.raises(SwapAccessDeniedException):
            await services.inbox.mark_inbox_item_as_read(pending_swap.id, outsider.id)


class TestInboxStatusUpdate:
    """인박스 경로 상태 변경 테스트"""

    @pytest.mark.asyncio
    async def test_receiver_accepts(self, services, pending_swap, receiver):
        item = await services.inbox.update_swap_request_status(pending_swap.id, "Accepted", receiver.id)

        assert item.swap_status == "Accepted"
        assert item.conversation_type == "received"

    @pytest.mark.asyncio
    async def test_sender_can_expire(self, services, pending_swap, sender):
        item = await services.inbox.update_swap_request_status(pending_swap.id, "Expired", sender.id)
        assert item.swap_status == "Expired"

    @pytest.mark.asyncio
    async def test_sender_cannot_accept(self, services, pending_swap, sender):
        with pytest.raises(NotAuthorizedTransitionException) as exc_info:
            await services.inbox.update_swap_request_status(pending_swap.id, "Accepted", sender.id)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_receiver_cannot_expire_from_inbox(self, services, pending_swap, receiver):
        """상태 머신은 허용하지만 인박스 경로에서는 받은 사람이 Expired를 요청할 수 없음"""
        with pytest.raises(NotAuthorizedTransitionException):
            await services.inbox.update_swap_request_status(pending_swap.id, "Expired", receiver.id)

        record = await services.workflow.store.find_by_id(pending_swap.id)
        assert record.status == "Pending"

    @pytest.mark.asyncio
    async def test_receiver_can_expire_on_swap_path(self, services, pending_swap, receiver):
        record = await services.workflow.update_status(pending_swap.id, "Expired", receiver.id)
        assert record.status == "Expired"

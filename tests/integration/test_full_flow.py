import pytest
from httpx import AsyncClient
from fastapi import status

from app.domain.enums import InboxEventType


def as_user(user) -> dict:
    return {"X-User-Id": str(user.id)}


class TestFullSwapFlow:
    """교환 요청 전체 플로우 통합 테스트"""

    @pytest.mark.asyncio
    async def test_complete_swap_flow(self, client: AsyncClient, event_bus, sender, receiver, book,
                                      swappable_book):
        """
        완전한 교환 플로우 테스트:
        1. 보낸 사람이 교환 요청 생성
        2. 받은 사람이 수락
        3. 보낸 사람의 수락 시도는 거부
        4. 받은 사람이 예약 처리
        """
        # 1. 교환 요청 생성
        response = await client.post("/api/v1/swap-requests", headers=as_user(sender), json={
            "receiver_id": receiver.id,
            "book_id": book.id,
            "swap_type": "ByBooks",
            "offered_book_id": swappable_book.id,
            "note": "Would love to swap"
        })
        assert response.status_code == status.HTTP_201_CREATED
        created = response.json()
        swap_id = created["id"]
        assert created["swap_status"] == "Pending"
        assert created["swap_offer"]["offered_book_title"] == "Neuromancer"
        assert created["sender"]["name"] == "Alice Sender"
        assert event_bus.published == [(receiver.id, swap_id, InboxEventType.STATUS_CHANGE)]

        # 2. 받은 사람이 수락
        response = await client.put(
            f"/api/v1/swap-requests/{swap_id}/status",
            headers=as_user(receiver),
            json={"status": "Accepted"}
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["swap_status"] == "Accepted"

        # 3. 보낸 사람의 수락 시도
        response = await client.put(
            f"/api/v1/swap-requests/{swap_id}/status",
            headers=as_user(sender),
            json={"status": "Accepted"}
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_status_transition"

        # 4. 받은 사람이 예약 처리 (인박스 경로)
        response = await client.put(
            f"/api/v1/inbox/{swap_id}/status",
            headers=as_user(receiver),
            json={"status": "Reserved"}
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["swap_status"] == "Reserved"

    @pytest.mark.asyncio
    async def test_sender_cannot_accept_pending(self, client: AsyncClient, pending_swap, sender):
        response = await client.put(
            f"/api/v1/swap-requests/{pending_swap.id}/status",
            headers=as_user(sender),
            json={"status": "Accepted"}
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        body = response.json()
        assert body["error"] == "not_authorized_transition"
        assert body["details"]["role"] == "sender"
        assert body["status_code"] == 403

    @pytest.mark.asyncio
    async def test_duplicate_request_conflict(self, client: AsyncClient, pending_swap, sender, receiver, book):
        response = await client.post("/api/v1/swap-requests", headers=as_user(sender), json={
            "receiver_id": receiver.id,
            "book_id": book.id,
            "swap_type": "GiveAway"
        })

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "resource_conflict"


class TestChatFlow:
    """채팅 통합 테스트"""

    @pytest.mark.asyncio
    async def test_unread_count_flow(self, client: AsyncClient, pending_swap, sender, receiver):
        base = f"/api/v1/swap-requests/{pending_swap.id}/chat"

        response = await client.post(base, headers=as_user(receiver), json={"message": "Hi"})
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["message"] == "Hi"

        response = await client.get(f"{base}/unread-count", headers=as_user(sender))
        assert response.json()["unread_count"] == 1
        response = await client.get(f"{base}/unread-count", headers=as_user(receiver))
        assert response.json()["unread_count"] == 0

        response = await client.put(f"{base}/mark-read", headers=as_user(sender))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["marked_count"] == 1

        response = await client.get(f"{base}/unread-count", headers=as_user(sender))
        assert response.json()["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_thread_view_marks_read(self, client: AsyncClient, pending_swap, sender, receiver):
        base = f"/api/v1/swap-requests/{pending_swap.id}/chat"
        await client.post(base, headers=as_user(receiver), json={"message": "first"})
        await client.post(base, headers=as_user(receiver), json={"image_refs": ["photo-1"]})

        response = await client.get(base, headers=as_user(sender))

        assert response.status_code == status.HTTP_200_OK
        messages = response.json()
        assert [message["message"] for message in messages] == ["first", None]
        assert messages[1]["image_refs"] == ["photo-1"]
        response = await client.get(f"{base}/unread-count", headers=as_user(sender))
        assert response.json()["unread_count"] == 0

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, client: AsyncClient, pending_swap, sender):
        response = await client.post(
            f"/api/v1/swap-requests/{pending_swap.id}/chat",
            headers=as_user(sender),
            json={"message": "   "}
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_length_limit_applies_after_trimming(self, client: AsyncClient, pending_swap, sender):
        """길이 제한은 앞뒤 공백을 제거한 본문에 적용"""
        base = f"/api/v1/swap-requests/{pending_swap.id}/chat"

        response = await client.post(base, headers=as_user(sender), json={"message": "  " + "a" * 1000 + " "})
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["message"] == "a" * 1000

        response = await client.post(base, headers=as_user(sender), json={"message": "a" * 1001})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_outsider_cannot_read_thread(self, client: AsyncClient, pending_swap, outsider):
        response = await client.get(
            f"/api/v1/swap-requests/{pending_swap.id}/chat",
            headers=as_user(outsider)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "authorization_error"


class TestInboxFlow:
    """인박스 통합 테스트"""

    @pytest.mark.asyncio
    async def test_inbox_listing(self, client: AsyncClient, pending_swap, sender, receiver):
        await client.post(
            f"/api/v1/swap-requests/{pending_swap.id}/chat",
            headers=as_user(receiver),
            json={"message": "Is Saturday fine?"}
        )

        response = await client.get("/api/v1/inbox", headers=as_user(sender), params={"sort_by": "date"})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["total"] == 1
        assert body["unread_total"] == 1
        item = body["items"][0]
        assert item["id"] == pending_swap.id
        assert item["conversation_type"] == "sent"
        assert item["unread_message_count"] == 1
        assert item["latest_message"]["content"] == "Is Saturday fine?"

        response = await client.get("/api/v1/inbox/received", headers=as_user(sender))
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_mark_inbox_item_read(self, client: AsyncClient, pending_swap, receiver):
        response = await client.put(f"/api/v1/inbox/{pending_swap.id}/read", headers=as_user(receiver))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_unread"] is False

        response = await client.get("/api/v1/inbox", headers=as_user(receiver))
        assert response.json()["unread_total"] == 0

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client: AsyncClient, sender):
        response = await client.get("/api/v1/inbox", headers=as_user(sender), params={"status": "Done"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {
            "error": "invalid_status",
            "message": "Invalid swap status: Done",
            "details": {"status": "Done"},
            "status_code": 400,
        }

    @pytest.mark.asyncio
    async def test_missing_swap(self, client: AsyncClient, sender):
        response = await client.get("/api/v1/inbox/4242", headers=as_user(sender))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "resource_not_found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("headers", [{}, {"X-User-Id": "abc"}, {"X-User-Id": "0"}])
    async def test_missing_user_header(self, client: AsyncClient, headers):
        response = await client.get("/api/v1/inbox", headers=headers)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "authentication_error"


class TestHealth:

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient):
        response = await client.get("/health/live")
        assert response.status_code == status.HTTP_200_OK

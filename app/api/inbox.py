from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_current_user_id, get_services
from app.schemas.inbox import InboxItemResponse, InboxResponse
from app.schemas.swap_request import SwapStatusUpdate
from app.services import SwapServices

router = APIRouter(prefix="/api/v1/inbox", tags=["Inbox"])

SORT_BY_DESCRIPTION = "정렬: latest_message(기본), date, book_title, sender_name, status"


def _inbox_response(items: List[InboxItemResponse]) -> InboxResponse:
    return InboxResponse(
        items=items,
        total=len(items),
        unread_total=sum(1 for item in items if item.is_unread)
    )


@router.get("", response_model=InboxResponse)
async def get_unified_inbox(
        status: Optional[str] = Query(None, description="상태 코드 필터"),
        sort_by: Optional[str] = Query(None, description=SORT_BY_DESCRIPTION),
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    """보낸 요청과 받은 요청을 합친 인박스"""
    items = await services.inbox.get_unified_inbox(user_id, status, sort_by)
    return _inbox_response(items)


@router.get("/sent", response_model=InboxResponse)
async def get_sent_swap_requests(
        status: Optional[str] = Query(None, description="상태 코드 필터"),
        sort_by: Optional[str] = Query(None, description=SORT_BY_DESCRIPTION),
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    items = await services.inbox.get_sent_swap_requests(user_id, status, sort_by)
    return _inbox_response(items)


@router.get("/received", response_model=InboxResponse)
async def get_received_swap_requests(
        status: Optional[str] = Query(None, description="상태 코드 필터"),
        sort_by: Optional[str] = Query(None, description=SORT_BY_DESCRIPTION),
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    items = await services.inbox.get_received_swap_requests(user_id, status, sort_by)
    return _inbox_response(items)


@router.get("/{swap_request_id}", response_model=InboxItemResponse)
async def get_inbox_item(
        swap_request_id: int,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    """인박스 행 하나 (푸시 수신 후 재동기화용)"""
    return await services.inbox.get_inbox_item(user_id, swap_request_id)


@router.put("/{swap_request_id}/status", response_model=InboxItemResponse)
async def update_swap_request_status(
        swap_request_id: int,
        payload: SwapStatusUpdate,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    """
    인박스에서 상태를 변경합니다.

    받은 사람은 Accepted/Rejected/Reserved, 보낸 사람은 Expired만 요청할 수 있습니다.
    """
    return await services.inbox.update_swap_request_status(swap_request_id, payload.status, user_id)


@router.put("/{swap_request_id}/read", response_model=InboxItemResponse)
async def mark_inbox_item_as_read(
        swap_request_id: int,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    return await services.inbox.mark_inbox_item_as_read(swap_request_id, user_id)

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_current_user_id, get_services
from app.schemas.swap_request import SwapRequestCreate, SwapRequestResponse, SwapStatusUpdate
from app.services import SwapServices

router = APIRouter(prefix="/api/v1/swap-requests", tags=["Swap Requests"])


@router.post("", response_model=SwapRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_swap_request(
        payload: SwapRequestCreate,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    """
    교환 요청을 생성합니다.

    Args:
        payload: 받는 사람, 책, 교환 타입, 제안 (보내는 사람은 X-User-Id)

    Returns:
        SwapRequestResponse: PENDING 상태의 교환 요청
    """
    record = await services.workflow.create_swap_request(
        sender_id=user_id,
        receiver_id=payload.receiver_id,
        book_id=payload.book_id,
        swap_type=payload.swap_type,
        offered_book_id=payload.offered_book_id,
        offered_genre_id=payload.offered_genre_id,
        ask_for_giveaway=payload.ask_for_giveaway,
        note=payload.note
    )
    return SwapRequestResponse.from_record(record)


@router.put("/{swap_request_id}/status", response_model=SwapRequestResponse)
async def update_swap_request_status(
        swap_request_id: int,
        payload: SwapStatusUpdate,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    """상태 전이 표 전체를 따르는 상태 변경"""
    record = await services.workflow.update_status(swap_request_id, payload.status, user_id)
    return SwapRequestResponse.from_record(record)

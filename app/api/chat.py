from typing import List
from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_current_user_id, get_services
from app.schemas.chat_message import (
    SendMessageRequest,
    ChatMessageResponse,
    UnreadCountResponse,
    MarkReadResponse
)
from app.services import SwapServices

router = APIRouter(prefix="/api/v1/swap-requests", tags=["Chat"])


@router.get("/{swap_request_id}/chat", response_model=List[ChatMessageResponse])
async def get_chat_messages(
        swap_request_id: int,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    """
    채팅 메시지를 조회합니다.

    조회한 사용자가 받은 메시지는 읽음 처리됩니다.
    """
    messages = await services.chat_gate.get_chat_messages(swap_request_id, user_id)
    return [ChatMessageResponse.from_message(message, user_id) for message in messages]


@router.post("/{swap_request_id}/chat", response_model=ChatMessageResponse,
             status_code=status.HTTP_201_CREATED)
async def send_message(
        swap_request_id: int,
        payload: SendMessageRequest,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    message = await services.chat_gate.send_message(
        swap_request_id, user_id, payload.message, payload.image_refs
    )
    return ChatMessageResponse.from_message(message, user_id)


@router.put("/{swap_request_id}/chat/mark-read", response_model=MarkReadResponse)
async def mark_messages_read(
        swap_request_id: int,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    marked = await services.chat_gate.mark_messages_read(swap_request_id, user_id)
    return MarkReadResponse(swap_request_id=swap_request_id, marked_count=marked)


@router.get("/{swap_request_id}/chat/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
        swap_request_id: int,
        user_id: int = Depends(get_current_user_id),
        services: SwapServices = Depends(get_services)
):
    count = await services.chat_gate.get_unread_count(swap_request_id, user_id)
    return UnreadCountResponse(swap_request_id=swap_request_id, unread_count=count)

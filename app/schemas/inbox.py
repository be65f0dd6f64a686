from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from .common import UserSummary, BookSummary
from .swap_request import SwapOfferSummary


class LatestMessagePreview(BaseModel):
    """인박스 행에 붙는 최신 채팅 메시지 미리보기"""
    content: Optional[str] = Field(None, description="메시지 내용")
    sender_id: int = Field(..., description="보낸 사용자 ID")
    sent_at: datetime = Field(..., description="전송 일시")
    is_image_only: bool = Field(default=False, description="텍스트 없이 이미지만 있는 메시지")

    @classmethod
    def from_message(cls, message) -> "LatestMessagePreview":
        return cls(
            content=message.text,
            sender_id=message.sender_id,
            sent_at=message.sent_at,
            is_image_only=message.is_image_only
        )


class InboxItemResponse(BaseModel):
    """인박스 행 (조회한 사용자 기준으로 계산된 필드 포함)"""
    id: int = Field(..., description="교환 요청 ID")
    swap_type: str = Field(..., description="교환 타입")
    swap_status: str = Field(..., description="현재 상태")
    note: Optional[str] = Field(None, description="요청 메모")
    requested_at: datetime = Field(..., description="요청 일시")
    updated_at: datetime = Field(..., description="마지막 상태 변경 일시")
    sender: UserSummary = Field(..., description="요청한 사용자")
    receiver: UserSummary = Field(..., description="책 소유자")
    book: BookSummary = Field(..., description="요청한 책")
    swap_offer: Optional[SwapOfferSummary] = Field(None, description="교환 제안")
    ask_for_giveaway: bool = Field(default=False)
    unread_message_count: int = Field(default=0, description="읽지 않은 채팅 메시지 수")
    is_unread: bool = Field(default=False, description="마지막으로 읽은 뒤 바뀐 내용이 있는지")
    has_new_messages: bool = Field(default=False, description="읽지 않은 채팅 메시지가 있는지")
    conversation_type: str = Field(..., description="sent 또는 received")
    latest_message: Optional[LatestMessagePreview] = Field(None, description="최신 채팅 메시지")


class InboxResponse(BaseModel):
    items: List[InboxItemResponse] = Field(..., description="정렬된 인박스 행 목록")
    total: int = Field(..., description="전체 행 수")
    unread_total: int = Field(default=0, description="읽지 않은 행 수")

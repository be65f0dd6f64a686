from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from .common import UserSummary


class SendMessageRequest(BaseModel):
    """채팅 메시지 전송 스키마 (텍스트와 이미지 중 하나는 필수)"""
    message: Optional[str] = Field(None, description="메시지 내용 (앞뒤 공백 제거 후 최대 1000자)")
    image_refs: List[str] = Field(default_factory=list, description="첨부 이미지 식별자 목록")


class ChatMessageResponse(BaseModel):
    """채팅 메시지 응답 스키마"""
    id: int = Field(..., description="메시지 ID")
    swap_request_id: int = Field(..., description="교환 요청 ID")
    sender: UserSummary = Field(..., description="보낸 사용자")
    message: Optional[str] = Field(None, description="메시지 내용")
    image_refs: List[str] = Field(default_factory=list, description="첨부 이미지 식별자 목록")
    sent_at: datetime = Field(..., description="전송 일시")
    read_by_receiver: bool = Field(..., description="상대방 읽음 여부")
    is_own_message: bool = Field(default=False, description="조회한 사용자가 보낸 메시지인지 여부")

    @classmethod
    def from_message(cls, message, viewer_id: Optional[int] = None) -> "ChatMessageResponse":
        return cls(
            id=message.id,
            swap_request_id=message.swap_request_id,
            sender=UserSummary.from_user(message.sender),
            message=message.text,
            image_refs=list(message.image_refs or []),
            sent_at=message.sent_at,
            read_by_receiver=message.read_by_receiver,
            is_own_message=viewer_id is not None and message.sender_id == viewer_id
        )


class UnreadCountResponse(BaseModel):
    swap_request_id: int
    unread_count: int


class MarkReadResponse(BaseModel):
    swap_request_id: int
    marked_count: int = Field(..., description="이번 호출로 읽음 처리된 메시지 수")

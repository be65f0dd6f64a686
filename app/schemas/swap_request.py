from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .common import UserSummary, BookSummary


class SwapRequestCreate(BaseModel):
    """교환 요청 생성 스키마 (보내는 사람은 X-User-Id 헤더)"""
    receiver_id: int = Field(..., description="책 소유자 ID")
    book_id: int = Field(..., description="요청하는 책 ID")
    swap_type: str = Field(..., description="교환 타입: ByBooks, GiveAway, OpenForOffers")
    offered_book_id: Optional[int] = Field(None, description="대가로 제안하는 책 (요청 책의 교환 가능 책 중 하나)")
    offered_genre_id: Optional[int] = Field(None, description="대가로 제안하는 장르 (요청 책의 교환 가능 장르 중 하나)")
    ask_for_giveaway: bool = Field(default=False, description="무료 나눔 요청 여부")
    note: Optional[str] = Field(None, max_length=1000, description="요청 메모")


class SwapStatusUpdate(BaseModel):
    """교환 요청 상태 변경 스키마"""
    status: str = Field(..., min_length=1, description="새 상태: Pending, Accepted, Reserved, Rejected, Expired")


class SwapOfferSummary(BaseModel):
    offered_book_title: Optional[str] = Field(None, description="제안한 책 제목")
    offered_genre_name: Optional[str] = Field(None, description="제안한 장르 이름")

    @classmethod
    def from_record(cls, record) -> Optional["SwapOfferSummary"]:
        if record.offered_book is None and record.offered_genre is None:
            return None
        return cls(
            offered_book_title=record.offered_book.title if record.offered_book else None,
            offered_genre_name=record.offered_genre.name if record.offered_genre else None
        )


class SwapRequestResponse(BaseModel):
    """교환 요청 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

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
    ask_for_giveaway: bool = Field(default=False, description="무료 나눔 요청 여부")
    read_by_sender_at: Optional[datetime] = Field(None, description="보낸 사람이 읽은 시각")
    read_by_receiver_at: Optional[datetime] = Field(None, description="받은 사람이 읽은 시각")

    @classmethod
    def from_record(cls, record) -> "SwapRequestResponse":
        return cls(
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
            read_by_sender_at=record.read_by_sender_at,
            read_by_receiver_at=record.read_by_receiver_at
        )

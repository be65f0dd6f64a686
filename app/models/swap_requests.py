from datetime import datetime
from typing import Optional
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from app.database.mysql import Base, PreciseDateTime
from app.utils.time_utils import utcnow
from app.domain.enums import SwapStatus, SwapType, PartyRole


class SwapRequest(Base):
    __tablename__ = "swap_requests"
    __table_args__ = (
        UniqueConstraint("sender_id", "receiver_id", "book_id", name="uq_swap_request_parties_book"),
        Index("ix_swap_requests_sender_requested", "sender_id", "requested_at"),
        Index("ix_swap_requests_receiver_requested", "receiver_id", "requested_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)  # 요청한 사용자
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False)  # 책 소유자
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    swap_type = Column(String(20), nullable=False)
    offered_book_id = Column(Integer, ForeignKey("swappable_books.id"), nullable=True)
    offered_genre_id = Column(Integer, ForeignKey("genres.id"), nullable=True)
    ask_for_giveaway = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default=SwapStatus.PENDING.value, nullable=False)
    note = Column(Text, nullable=True)
    requested_at = Column(PreciseDateTime, default=utcnow, nullable=False)
    updated_at = Column(PreciseDateTime, default=utcnow, nullable=False)

    # 읽음 시각과 "새 소식" 시각 (당사자별)
    read_by_sender_at = Column(PreciseDateTime, nullable=True)
    read_by_receiver_at = Column(PreciseDateTime, nullable=True)
    sender_activity_at = Column(PreciseDateTime, nullable=True)
    receiver_activity_at = Column(PreciseDateTime, nullable=True)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id], lazy="selectin")
    receiver = relationship("User", foreign_keys=[receiver_id], lazy="selectin")
    book = relationship("Book", foreign_keys=[book_id], lazy="selectin")
    offered_book = relationship("SwappableBook", foreign_keys=[offered_book_id], lazy="selectin")
    offered_genre = relationship("Genre", foreign_keys=[offered_genre_id], lazy="selectin")

    @property
    def swap_status(self) -> SwapStatus:
        return SwapStatus.from_code(self.status)

    @property
    def swap_type_enum(self) -> SwapType:
        return SwapType.from_code(self.swap_type)

    def role_of(self, user_id: int) -> Optional[PartyRole]:
        """사용자가 이 교환 요청에서 맡은 역할 (당사자가 아니면 None)"""
        if user_id == self.receiver_id:
            return PartyRole.RECEIVER
        if user_id == self.sender_id:
            return PartyRole.SENDER
        return None

    def is_party(self, user_id: int) -> bool:
        return self.role_of(user_id) is not None

    def other_party_id(self, user_id: int) -> int:
        return self.receiver_id if user_id == self.sender_id else self.sender_id

    def read_at_for(self, role: PartyRole) -> Optional[datetime]:
        return self.read_by_sender_at if role == PartyRole.SENDER else self.read_by_receiver_at

    def activity_at_for(self, role: PartyRole) -> Optional[datetime]:
        return self.sender_activity_at if role == PartyRole.SENDER else self.receiver_activity_at

    def is_unread_for(self, user_id: int) -> bool:
        """
        당사자 기준 읽지 않음 여부.

        읽음 시각이 없거나, 마지막으로 읽은 뒤 상대방의 행동(상태 변경, 메시지)이 있었으면 읽지 않음.
        """
        role = self.role_of(user_id)
        if role is None:
            return False
        read_at = self.read_at_for(role)
        if read_at is None:
            return True
        activity_at = self.activity_at_for(role)
        return activity_at is not None and read_at < activity_at

    def __repr__(self):
        return (
            f"<SwapRequest(id={self.id}, sender_id={self.sender_id}, "
            f"receiver_id={self.receiver_id}, status={self.status})>"
        )

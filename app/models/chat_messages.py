from sqlalchemy import Column, Integer, Text, Boolean, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
from app.database.mysql import Base, PreciseDateTime
from app.utils.time_utils import utcnow


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("ix_chat_messages_swap_sent", "swap_request_id", "sent_at"),
        Index("ix_chat_messages_swap_unread", "swap_request_id", "read_by_receiver", "sender_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    swap_request_id = Column(Integer, ForeignKey("swap_requests.id"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    text = Column(Text, nullable=True)
    image_refs = Column(JSON, nullable=False, default=list)  # 이미지 식별자 (URL 아님)
    sent_at = Column(PreciseDateTime, default=utcnow, nullable=False)
    # 보내지 않은 쪽(수신자)이 읽었는지 여부
    read_by_receiver = Column(Boolean, default=False, nullable=False)

    sender = relationship("User", foreign_keys=[sender_id], lazy="selectin")

    @property
    def is_image_only(self) -> bool:
        return not self.text and bool(self.image_refs)

    def __repr__(self):
        return f"<ChatMessage(id={self.id}, swap_request_id={self.swap_request_id}, sender_id={self.sender_id})>"

"""
교환 요청 도메인 열거형

상태/교환 타입은 DB와 API에서 코드 문자열("Pending", "ByBooks" 등)로 저장·전달됩니다.
"""

from enum import Enum
from typing import Optional

from app.core.errors import InvalidStatusException, BusinessLogicException


class SwapStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    RESERVED = "Reserved"
    REJECTED = "Rejected"
    EXPIRED = "Expired"

    @property
    def code(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (SwapStatus.REJECTED, SwapStatus.EXPIRED)

    @classmethod
    def from_code(cls, code: Optional[str]) -> "SwapStatus":
        """코드 문자열을 상태로 변환 (대소문자 무시)"""
        if code is not None:
            normalized = code.strip().lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        raise InvalidStatusException(code)


class SwapType(str, Enum):
    BY_BOOKS = "ByBooks"
    GIVE_AWAY = "GiveAway"
    OPEN_FOR_OFFERS = "OpenForOffers"

    @property
    def code(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: Optional[str]) -> "SwapType":
        if code is not None:
            normalized = code.strip().lower()
            for member in cls:
                if member.value.lower() == normalized:
                    return member
        raise BusinessLogicException(
            f"Invalid swap type: {code}",
            details={"swap_type": code},
            error="invalid_swap_type"
        )


class PartyRole(str, Enum):
    SENDER = "sender"
    RECEIVER = "receiver"


class InboxEventType(str, Enum):
    STATUS_CHANGE = "STATUS_CHANGE"
    NEW_MESSAGE = "NEW_MESSAGE"


class InboxSortBy(str, Enum):
    LATEST_MESSAGE = "latest_message"
    DATE = "date"
    BOOK_TITLE = "book_title"
    SENDER_NAME = "sender_name"
    STATUS = "status"

    @classmethod
    def parse(cls, value: Optional[str]) -> "InboxSortBy":
        """알 수 없는 값은 기본값(latest_message)으로 대체"""
        if value:
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.LATEST_MESSAGE

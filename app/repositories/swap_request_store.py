from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_, exists

from app.models.swap_requests import SwapRequest
from app.domain.enums import SwapStatus, PartyRole


class SqlSwapRecordStore:
    """교환 요청 저장소 (SQLAlchemy)"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, record: SwapRequest) -> SwapRequest:
        """교환 요청을 저장하고 관계까지 로드된 최신 상태를 반환합니다."""
        self.db.add(record)
        await self.db.commit()
        return await self.find_by_id(record.id)

    async def find_by_id(self, swap_request_id: int) -> Optional[SwapRequest]:
        # 조건부 UPDATE 이후에도 identity map의 이전 값이 남지 않도록 항상 다시 채움
        query = (
            select(SwapRequest)
            .where(SwapRequest.id == swap_request_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_sent(self, user_id: int, status: Optional[SwapStatus] = None) -> List[SwapRequest]:
        """사용자가 보낸 교환 요청 (최신 요청 순)"""
        return await self._find_by_column(SwapRequest.sender_id, user_id, status)

    async def find_received(self, user_id: int, status: Optional[SwapStatus] = None) -> List[SwapRequest]:
        """사용자가 받은 교환 요청 (최신 요청 순)"""
        return await self._find_by_column(SwapRequest.receiver_id, user_id, status)

    async def find_by_party(self, user_id: int, status: Optional[SwapStatus] = None) -> List[SwapRequest]:
        """
        사용자가 당사자인 모든 교환 요청.

        보낸 요청과 받은 요청을 합치며, 같은 요청은 한 번만 포함됩니다.
        """
        records = await self.find_sent(user_id, status)
        seen = {record.id for record in records}
        for record in await self.find_received(user_id, status):
            if record.id not in seen:
                seen.add(record.id)
                records.append(record)
        return records

    async def _find_by_column(self, column, user_id: int, status: Optional[SwapStatus]) -> List[SwapRequest]:
        conditions = [column == user_id]
        if status is not None:
            conditions.append(SwapRequest.status == status.value)

        query = (
            select(SwapRequest)
            .where(and_(*conditions))
            .order_by(SwapRequest.requested_at.desc(), SwapRequest.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def exists_by_parties(self, sender_id: int, receiver_id: int, book_id: int) -> bool:
        query = select(
            exists().where(
                and_(
                    SwapRequest.sender_id == sender_id,
                    SwapRequest.receiver_id == receiver_id,
                    SwapRequest.book_id == book_id
                )
            )
        )
        result = await self.db.execute(query)
        return bool(result.scalar())

    async def compare_and_set_status(
        self,
        swap_request_id: int,
        expected: SwapStatus,
        new: SwapStatus,
        now: datetime,
        notify_role: Optional[PartyRole] = None
    ) -> bool:
        """
        현재 상태가 expected일 때만 new로 바꾸는 조건부 UPDATE.

        동시에 들어온 전이 요청 중 하나만 성공합니다. notify_role이 주어지면
        해당 당사자의 activity 시각도 같은 UPDATE에서 갱신합니다.

        Returns:
            bool: 이 호출이 상태를 바꿨는지 여부
        """
        values = {"status": new.value, "updated_at": now}
        if notify_role == PartyRole.SENDER:
            values["sender_activity_at"] = now
        elif notify_role == PartyRole.RECEIVER:
            values["receiver_activity_at"] = now

        stmt = (
            update(SwapRequest)
            .where(and_(SwapRequest.id == swap_request_id, SwapRequest.status == expected.value))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount == 1

    async def touch_activity(self, swap_request_id: int, role: PartyRole, now: datetime) -> None:
        """해당 당사자에게 새 소식이 생겼음을 기록 (읽지 않음 상태로 되돌림)"""
        column = "sender_activity_at" if role == PartyRole.SENDER else "receiver_activity_at"
        stmt = (
            update(SwapRequest)
            .where(SwapRequest.id == swap_request_id)
            .values({column: now})
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        await self.db.commit()

    async def mark_read(self, swap_request_id: int, role: PartyRole, now: datetime) -> None:
        column = "read_by_sender_at" if role == PartyRole.SENDER else "read_by_receiver_at"
        stmt = (
            update(SwapRequest)
            .where(SwapRequest.id == swap_request_id)
            .values({column: now})
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        await self.db.commit()

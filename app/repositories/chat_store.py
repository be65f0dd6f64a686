from typing import Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_

from app.models.chat_messages import ChatMessage


class SqlChatStore:
    """교환 요청별 채팅 메시지 저장소"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, message: ChatMessage) -> ChatMessage:
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def find_by_id(self, message_id: int) -> Optional[ChatMessage]:
        return await self.db.get(ChatMessage, message_id)

    async def find_by_swap(self, swap_request_id: int) -> List[ChatMessage]:
        """전송 시각 순 (같은 시각은 저장 순서)"""
        query = (
            select(ChatMessage)
            .where(ChatMessage.swap_request_id == swap_request_id)
            .order_by(ChatMessage.sent_at.asc(), ChatMessage.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def find_latest(self, swap_request_id: int) -> Optional[ChatMessage]:
        query = (
            select(ChatMessage)
            .where(ChatMessage.swap_request_id == swap_request_id)
            .order_by(ChatMessage.sent_at.desc(), ChatMessage.id.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_latest_by_swaps(self, swap_request_ids: Iterable[int]) -> Dict[int, ChatMessage]:
        """여러 교환 요청의 최신 메시지를 한 번에 조회 (메시지가 없으면 결과에 없음)"""
        ids = list(swap_request_ids)
        if not ids:
            return {}

        ranked = (
            select(
                ChatMessage.id.label("message_id"),
                func.row_number().over(
                    partition_by=ChatMessage.swap_request_id,
                    order_by=(ChatMessage.sent_at.desc(), ChatMessage.id.desc())
                ).label("rank")
            )
            .where(ChatMessage.swap_request_id.in_(ids))
            .subquery()
        )
        query = (
            select(ChatMessage)
            .join(ranked, ChatMessage.id == ranked.c.message_id)
            .where(ranked.c.rank == 1)
        )
        result = await self.db.execute(query)
        return {message.swap_request_id: message for message in result.scalars().all()}

    async def count_unread(self, swap_request_id: int, excluding_sender_id: int) -> int:
        """excluding_sender_id가 보내지 않았고 아직 읽히지 않은 메시지 수"""
        query = select(func.count(ChatMessage.id)).where(
            and_(
                ChatMessage.swap_request_id == swap_request_id,
                ChatMessage.sender_id != excluding_sender_id,
                ChatMessage.read_by_receiver.is_(False)
            )
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def mark_read(self, swap_request_id: int, reader_id: int) -> int:
        """reader_id가 받은 읽지 않은 메시지를 일괄 읽음 처리하고 처리된 수를 반환"""
        stmt = (
            update(ChatMessage)
            .where(
                and_(
                    ChatMessage.swap_request_id == swap_request_id,
                    ChatMessage.sender_id != reader_id,
                    ChatMessage.read_by_receiver.is_(False)
                )
            )
            .values(read_by_receiver=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount

"""
사용자/책/장르 조회 (읽기 전용)

책/사용자/장르의 생성·수정은 이 서비스의 범위 밖이며 여기서는 조회만 합니다.
"""

from typing import Optional, Set
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, exists

from app.models.users import User
from app.models.books import Book, Genre, SwappableBook, book_swappable_genres


class BookCatalog:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_book(self, book_id: int) -> Optional[Book]:
        return await self.db.get(Book, book_id)

    async def get_genre(self, genre_id: int) -> Optional[Genre]:
        return await self.db.get(Genre, genre_id)

    async def user_owns_book(self, user_id: int, book_id: int) -> bool:
        query = select(exists().where(and_(Book.id == book_id, Book.owner_id == user_id)))
        result = await self.db.execute(query)
        return bool(result.scalar())

    async def swappable_book_ids(self, book_id: int) -> Set[int]:
        """책 소유자가 교환 대가로 받겠다고 등록한 책 ID들"""
        result = await self.db.execute(
            select(SwappableBook.id).where(SwappableBook.book_id == book_id)
        )
        return set(result.scalars().all())

    async def swappable_genre_ids(self, book_id: int) -> Set[int]:
        result = await self.db.execute(
            select(book_swappable_genres.c.genre_id).where(book_swappable_genres.c.book_id == book_id)
        )
        return set(result.scalars().all())

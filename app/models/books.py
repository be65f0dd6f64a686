from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Table
from sqlalchemy.orm import relationship
from app.database.mysql import Base
from app.utils.time_utils import utcnow


# 책이 교환 대가로 받을 수 있는 장르 목록
book_swappable_genres = Table(
    "book_swappable_genres",
    Base.metadata,
    Column("book_id", Integer, ForeignKey("books.id"), primary_key=True),
    Column("genre_id", Integer, ForeignKey("genres.id"), primary_key=True),
)


class Genre(Base):
    __tablename__ = "genres"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)

    def __repr__(self):
        return f"<Genre(id={self.id}, name={self.name})>"


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False, default="")
    condition = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    owner = relationship("User", back_populates="books")
    swappable_books = relationship("SwappableBook", back_populates="book", lazy="selectin")
    swappable_genres = relationship("Genre", secondary=book_swappable_genres, lazy="selectin")

    def __repr__(self):
        return f"<Book(id={self.id}, owner_id={self.owner_id}, title={self.title})>"


class SwappableBook(Base):
    """소유자가 교환 대가로 받고 싶은 책 (교환 조건)"""
    __tablename__ = "swappable_books"

    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False, default="")

    book = relationship("Book", back_populates="swappable_books")

    def __repr__(self):
        return f"<SwappableBook(id={self.id}, book_id={self.book_id}, title={self.title})>"

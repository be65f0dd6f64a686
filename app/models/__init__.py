from .users import User
from .books import Book, Genre, SwappableBook, book_swappable_genres
from .swap_requests import SwapRequest
from .chat_messages import ChatMessage

__all__ = [
    "User",
    "Book",
    "Genre",
    "SwappableBook",
    "book_swappable_genres",
    "SwapRequest",
    "ChatMessage",
]

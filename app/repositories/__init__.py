from .swap_request_store import SqlSwapRecordStore
from .chat_store import SqlChatStore
from .catalog import BookCatalog

__all__ = [
    "SqlSwapRecordStore",
    "SqlChatStore",
    "BookCatalog",
]

"""
WebSocket 인박스 실시간 모듈

주요 구성 요소:
- connection_manager: 사용자별 WebSocket 세션 관리
- inbox_push: 인박스 이벤트를 받아 변경된 행과 새 채팅 메시지를 세션으로 전송
"""

from .connection_manager import ConnectionManager
from .inbox_push import InboxPushSubscriber, inbox_snapshot_message, inbox_item_message, chat_message_message

__all__ = [
    "ConnectionManager",
    "InboxPushSubscriber",
    "inbox_snapshot_message",
    "inbox_item_message",
    "chat_message_message",
]

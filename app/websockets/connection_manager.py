from typing import Dict, List, Set
from fastapi import WebSocket

from app.core.logging import get_logger, log_websocket_event

logger = get_logger(__name__)


class ConnectionManager:
    """사용자별 인박스 WebSocket 세션 관리 (한 사용자가 여러 세션을 가질 수 있음)"""

    def __init__(self):
        # 사용자별 연결: {user_id: {websocket, ...}}
        self.user_connections: Dict[int, Set[WebSocket]] = {}
        # WebSocket별 사용자: {websocket: user_id}
        self.connection_info: Dict[WebSocket, int] = {}

    async def connect(self, websocket: WebSocket, user_id: int, accept: bool = True):
        """새로운 WebSocket 연결을 등록합니다."""
        if accept:
            await websocket.accept()

        self.user_connections.setdefault(user_id, set()).add(websocket)
        self.connection_info[websocket] = user_id

        log_websocket_event(
            logger, "connected", user_id, session_count=len(self.user_connections[user_id])
        )

    def disconnect(self, websocket: WebSocket):
        """WebSocket 연결을 해제합니다."""
        user_id = self.connection_info.pop(websocket, None)
        if user_id is None:
            return

        sessions = self.user_connections.get(user_id)
        if sessions is not None:
            sessions.discard(websocket)
            # 세션이 없으면 사용자 항목 자체를 제거
            if not sessions:
                del self.user_connections[user_id]

        log_websocket_event(logger, "disconnected", user_id)

    async def send_to_user(self, user_id: int, data: dict) -> int:
        """
        사용자의 모든 세션에 JSON을 전송합니다.

        연결된 세션이 없으면 아무것도 하지 않습니다. 전송에 실패한 세션은 정리합니다.

        Returns:
            int: 전송에 성공한 세션 수
        """
        sessions = list(self.user_connections.get(user_id, ()))
        delivered = 0
        failed: List[WebSocket] = []

        for websocket in sessions:
            try:
                await websocket.send_json(data)
                delivered += 1
            except Exception as e:
                logger.error(f"Failed to send JSON to user {user_id}: {e}")
                failed.append(websocket)

        for websocket in failed:
            self.disconnect(websocket)

        return delivered

    def is_user_connected(self, user_id: int) -> bool:
        """사용자가 연결되어 있는지 확인합니다."""
        return bool(self.user_connections.get(user_id))

    def get_session_count(self, user_id: int) -> int:
        return len(self.user_connections.get(user_id, ()))

    def get_connected_users(self) -> List[int]:
        return list(self.user_connections.keys())

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.api.dependencies import parse_user_id
from app.core.logging import get_logger, log_websocket_event
from app.database.mysql import AsyncSessionLocal
from app.services import build_services
from app.websockets import inbox_snapshot_message

logger = get_logger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


async def _send_snapshot(websocket: WebSocket, user_id: int):
    state = websocket.app.state
    session_factory = getattr(state, "session_factory", AsyncSessionLocal)
    async with session_factory() as db:
        services = build_services(db, state.cache, state.event_bus)
        items = await services.inbox.get_unified_inbox(user_id)
    await websocket.send_json(inbox_snapshot_message(items))


@router.websocket("/inbox")
async def inbox_websocket(websocket: WebSocket):
    """
    인박스 실시간 WebSocket

    연결 직후 전체 인박스 스냅샷(inbox_update)을 보내고, 이후에는 바뀐 행만
    inbox_item_update로 보냅니다. 사용자가 당사자인 교환 요청에 메시지가 오가면 chat_message로
    메시지 본문을 보냅니다. {"type": "refresh"}를 받으면 스냅샷을 다시 보냅니다.
    사용자는 X-User-Id 헤더 또는 user_id 쿼리 파라미터로 식별합니다.
    """
    user_id = parse_user_id(
        websocket.headers.get("x-user-id") or websocket.query_params.get("user_id")
    )
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager = websocket.app.state.connection_manager
    await manager.connect(websocket, user_id)

    try:
        await _send_snapshot(websocket, user_id)

        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                logger.error(f"Invalid JSON from user {user_id}: {e}")
                await websocket.send_json({
                    "type": "error",
                    "error_code": "invalid_json",
                    "message": "Invalid message format"
                })
                continue

            message_type = data.get("type") if isinstance(data, dict) else None
            if message_type == "refresh":
                await _send_snapshot(websocket, user_id)
            elif message_type == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({
                    "type": "error",
                    "error_code": "unknown_message_type",
                    "message": f"Unknown message type: {message_type}"
                })

    except WebSocketDisconnect:
        log_websocket_event(logger, "client_disconnected", user_id)

    finally:
        manager.disconnect(websocket)

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.cache import Cache
from app.infrastructure.event_bus import EventBus
from app.repositories import SqlSwapRecordStore, SqlChatStore, BookCatalog
from .delta_notifier import DeltaNotifier
from .swap_workflow import SwapWorkflow
from .chat_gate import ChatGate
from .inbox_aggregator import InboxAggregator


@dataclass
class SwapServices:
    """한 DB 세션 위에서 함께 동작하는 서비스 묶음"""
    workflow: SwapWorkflow
    chat_gate: ChatGate
    inbox: InboxAggregator


def build_services(db: AsyncSession, cache: Cache, event_bus: EventBus) -> SwapServices:
    store = SqlSwapRecordStore(db)
    chat_store = SqlChatStore(db)
    notifier = DeltaNotifier(event_bus)

    workflow = SwapWorkflow(store, BookCatalog(db), cache, notifier)
    chat_gate = ChatGate(store, chat_store, cache, notifier)
    inbox = InboxAggregator(store, chat_store, chat_gate, workflow)
    return SwapServices(workflow=workflow, chat_gate=chat_gate, inbox=inbox)


__all__ = [
    "SwapServices",
    "build_services",
    "DeltaNotifier",
    "SwapWorkflow",
    "ChatGate",
    "InboxAggregator",
]

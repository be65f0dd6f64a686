import pytest
import pytest_asyncio
from datetime import datetime
from typing import AsyncGenerator, List, Tuple
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database.mysql import Base, get_async_session
from app.domain.enums import InboxEventType, SwapStatus, SwapType
from app.infrastructure.cache import InMemoryCache
from app.infrastructure.event_bus import InProcessEventBus
from app.models import User, Book, Genre, SwappableBook, SwapRequest, ChatMessage, book_swappable_genres
from app.services import build_services
from app.websockets import ConnectionManager


# 테스트용 인메모리 SQLite 데이터베이스 설정
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0)


class RecordingEventBus(InProcessEventBus):
    """발행된 이벤트를 기록하는 이벤트 버스"""

    def __init__(self):
        super().__init__()
        self.published: List[Tuple[int, int, InboxEventType]] = []
        self.chat_message_ids: List[int] = []

    async def publish(self, user_id, swap_request_id, event_type, chat_message_id=None):
        self.published.append((user_id, swap_request_id, InboxEventType(event_type)))
        if chat_message_id is not None:
            self.chat_message_ids.append(chat_message_id)
        await super().publish(user_id, swap_request_id, event_type, chat_message_id=chat_message_id)

    def clear(self):
        self.published.clear()
        self.chat_message_ids.clear()


@pytest_asyncio.fixture
async def test_engine():
    """테스트용 비동기 데이터베이스 엔진 생성"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """테스트용 데이터베이스 세션"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def services(test_session, cache, event_bus):
    """테스트 세션 위의 서비스 묶음 (workflow, chat_gate, inbox)"""
    return build_services(test_session, cache, event_bus)


@pytest_asyncio.fixture
async def client(test_session, session_factory, cache, event_bus) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트 (lifespan 대신 app.state를 직접 구성)"""
    def get_test_session():
        return test_session

    app.dependency_overrides[get_async_session] = get_test_session
    app.state.cache = cache
    app.state.event_bus = event_bus
    app.state.connection_manager = ConnectionManager()
    app.state.session_factory = session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _add(session: AsyncSession, obj):
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    return obj


@pytest.fixture
def make_user(test_session):
    counter = {"n": 0}

    async def _make_user(first_name: str, last_name: str = "Tester") -> User:
        counter["n"] += 1
        return await _add(test_session, User(
            email=f"{first_name.lower()}{counter['n']}@example.com",
            first_name=first_name,
            last_name=last_name
        ))

    return _make_user


@pytest.fixture
def make_book(test_session):
    async def _make_book(owner: User, title: str, swappable_titles=(), genres=()) -> Book:
        book = await _add(test_session, Book(owner_id=owner.id, title=title, author="Author", condition="Good"))
        for swappable_title in swappable_titles:
            test_session.add(SwappableBook(book_id=book.id, title=swappable_title, author="Someone"))
        for genre in genres:
            await test_session.execute(
                book_swappable_genres.insert().values(book_id=book.id, genre_id=genre.id)
            )
        await test_session.commit()
        return book

    return _make_book


@pytest.fixture
def make_swap(test_session):
    """상태/시각을 직접 지정해 교환 요청 행을 만듦 (정렬·전이 테스트용)"""
    async def _make_swap(
        sender: User,
        receiver: User,
        book: Book,
        status: SwapStatus = SwapStatus.PENDING,
        requested_at: datetime = BASE_TIME
    ) -> SwapRequest:
        return await _add(test_session, SwapRequest(
            sender_id=sender.id,
            receiver_id=receiver.id,
            book_id=book.id,
            swap_type=SwapType.BY_BOOKS.value,
            status=status.value,
            requested_at=requested_at,
            updated_at=requested_at,
            sender_activity_at=requested_at,
            receiver_activity_at=requested_at
        ))

    return _make_swap


@pytest.fixture
def make_message(test_session):
    async def _make_message(swap: SwapRequest, sender: User, text: str = "hello",
                            sent_at: datetime = BASE_TIME, read: bool = False) -> ChatMessage:
        return await _add(test_session, ChatMessage(
            swap_request_id=swap.id,
            sender_id=sender.id,
            text=text,
            image_refs=[],
            sent_at=sent_at,
            read_by_receiver=read
        ))

    return _make_message


@pytest_asyncio.fixture
async def sender(make_user) -> User:
    """교환을 요청하는 사용자"""
    return await make_user("Alice", "Sender")


@pytest_asyncio.fixture
async def receiver(make_user) -> User:
    """책 소유자"""
    return await make_user("Bob", "Receiver")


@pytest_asyncio.fixture
async def outsider(make_user) -> User:
    """어느 교환에도 속하지 않은 사용자"""
    return await make_user("Carol", "Outsider")


@pytest_asyncio.fixture
async def fantasy_genre(test_session) -> Genre:
    return await _add(test_session, Genre(name="Fantasy"))


@pytest_asyncio.fixture
async def poetry_genre(test_session) -> Genre:
    return await _add(test_session, Genre(name="Poetry"))


@pytest_asyncio.fixture
async def book(make_book, receiver, fantasy_genre) -> Book:
    """받는 사람의 책 (교환 가능 책 1권, 교환 가능 장르 Fantasy)"""
    return await make_book(receiver, "Dune", swappable_titles=["Neuromancer"], genres=[fantasy_genre])


@pytest_asyncio.fixture
async def swappable_book(test_session, book) -> SwappableBook:
    from sqlalchemy import select
    result = await test_session.execute(select(SwappableBook).where(SwappableBook.book_id == book.id))
    return result.scalar_one()


@pytest_asyncio.fixture
async def pending_swap(services, sender, receiver, book, event_bus) -> SwapRequest:
    """서비스로 생성한 PENDING 교환 요청 (생성 이벤트는 지움)"""
    record = await services.workflow.create_swap_request(
        sender_id=sender.id,
        receiver_id=receiver.id,
        book_id=book.id,
        swap_type="ByBooks"
    )
    event_bus.clear()
    return record


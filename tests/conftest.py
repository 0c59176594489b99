import os

# wakili 모듈 import 전에 테스트 환경 설정
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
import pytest_asyncio
from datetime import timedelta
from typing import AsyncGenerator, List, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.websockets import WebSocketDisconnect

import wakili.models  # noqa: F401  (테이블 메타데이터 등록)
from wakili.main import app
from wakili.database.mysql import Base, get_async_session
from wakili.models.users import User, UserRole
from wakili.models.chat_rooms import ChatRoom, ChatRoomStatus
from wakili.utils.auth import create_access_token
from wakili.utils.time_utils import utcnow
from wakili.websockets.connection_manager import ConnectionManager
from wakili.websockets.server import ChatSocketServer


# 테스트용 인메모리 SQLite 데이터베이스 설정
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeWebSocket:
    """전송된 프레임을 기록하는 테스트용 WebSocket"""

    def __init__(self, token: Optional[str] = None, headers: Optional[dict] = None, incoming: Optional[list] = None):
        self.query_params = {"token": token} if token else {}
        self.headers = headers or {}
        self.sent: List[dict] = []
        self.accepted = False
        self.closed_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        # receive_json이 차례로 반환할 프레임 (예외 인스턴스는 발생시킴)
        self.incoming = list(incoming or [])

    async def accept(self):
        self.accepted = True

    async def receive_json(self):
        if not self.incoming:
            raise WebSocketDisconnect(code=1000)
        frame = self.incoming.pop(0)
        if isinstance(frame, Exception):
            raise frame
        return frame

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        self.closed_code = code
        self.close_reason = reason

    def events(self, name: str) -> List[dict]:
        """특정 이벤트의 data 목록"""
        return [frame["data"] for frame in self.sent if frame["event"] == name]

    def event_names(self) -> List[str]:
        return [frame["event"] for frame in self.sent]

    def clear(self):
        self.sent.clear()


def make_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "email": user.email})


@pytest_asyncio.fixture
async def test_engine():
    """테스트용 비동기 데이터베이스 엔진 생성"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    # 테이블 생성
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # 정리
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker:
    """핸들러에 주입하는 테스트용 세션 팩토리"""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """테스트용 데이터베이스 세션"""
    async with session_factory() as session:
        yield session


async def _create_user(session: AsyncSession, user_id: str, email: str, first_name: str,
                       last_name: str, role: str) -> User:
    user = User(id=user_id, email=email, first_name=first_name, last_name=last_name, role=role)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def client_user(test_session) -> User:
    """의뢰인 A"""
    return await _create_user(test_session, "client-a", "amina@example.com", "Amina", "Otieno", UserRole.CLIENT)


@pytest_asyncio.fixture
async def lawyer_user(test_session) -> User:
    """변호사 B"""
    return await _create_user(test_session, "lawyer-b", "baraka@example.com", "Baraka", "Mwangi", UserRole.LAWYER)


@pytest_asyncio.fixture
async def outsider_user(test_session) -> User:
    """채팅방에 참여하지 않은 사용자 C"""
    return await _create_user(test_session, "client-c", "chege@example.com", "Chege", "Kamau", UserRole.CLIENT)


@pytest_asyncio.fixture
async def admin_user(test_session) -> User:
    """관리자"""
    return await _create_user(test_session, "admin-1", "admin@example.com", "Ada", "Admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def test_chat_room(test_session, client_user, lawyer_user) -> ChatRoom:
    """A와 B가 참여하는 ACTIVE 채팅방 R123"""
    chat_room = ChatRoom(
        id="R123",
        booking_id="BK-123",
        client_id=client_user.id,
        lawyer_id=lawyer_user.id,
        status=ChatRoomStatus.ACTIVE,
        last_activity=utcnow() - timedelta(minutes=5),
        created_at=utcnow() - timedelta(days=1)
    )
    test_session.add(chat_room)
    await test_session.commit()
    return chat_room


@pytest_asyncio.fixture
async def auth_token_client(client_user) -> str:
    return make_token(client_user)


@pytest_asyncio.fixture
async def auth_token_lawyer(lawyer_user) -> str:
    return make_token(lawyer_user)


@pytest_asyncio.fixture
async def auth_token_outsider(outsider_user) -> str:
    return make_token(outsider_user)


@pytest_asyncio.fixture
async def auth_token_admin(admin_user) -> str:
    return make_token(admin_user)


@pytest_asyncio.fixture
async def chat_server(session_factory) -> ChatSocketServer:
    """테스트 DB를 사용하는 실시간 채팅 서버 (빈 레지스트리)"""
    return ChatSocketServer(ConnectionManager(), session_factory)


@pytest.fixture
def connect(chat_server):
    """사용자를 인증하여 채팅 서버에 연결시키는 헬퍼"""
    async def _connect(user: User):
        websocket = FakeWebSocket(token=make_token(user))
        context = await chat_server.connect(websocket)
        return context, websocket
    return _connect


@pytest_asyncio.fixture
async def client(session_factory, chat_server) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트"""
    async def get_test_session():
        async with session_factory() as session:
            yield session

    original_server = app.state.chat_server
    app.dependency_overrides[get_async_session] = get_test_session
    app.state.chat_server = chat_server

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    app.state.chat_server = original_server


def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )

import pytest
from unittest.mock import AsyncMock
from httpx import AsyncClient
from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from wakili.database.mysql import get_async_session
from wakili.main import app
from wakili.models.messages import ChatMessage
from wakili.models.notifications import Notification, NotificationType
from wakili.websockets.connection_manager import room_channel


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestChatRoomAPI:
    """채팅방 API 테스트"""

    @pytest.mark.asyncio
    async def test_get_chat_rooms_list(self, client: AsyncClient, auth_token_client, test_chat_room):
        """채팅방 목록 조회 API 테스트"""
        response = await client.get("/chat-rooms", headers=auth(auth_token_client))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [room["id"] for room in data] == ["R123"]
        assert data[0]["bookingId"] == "BK-123"
        assert data[0]["lawyer"]["firstName"] == "Baraka"

    @pytest.mark.asyncio
    async def test_get_chat_rooms_without_auth(self, client: AsyncClient):
        """인증 없이 채팅방 목록 조회 실패 테스트"""
        response = await client.get("/chat-rooms")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "authentication_error"

    @pytest.mark.asyncio
    async def test_create_chat_room(
        self, client: AsyncClient, chat_server, connect, auth_token_client, client_user, lawyer_user
    ):
        """채팅방 생성 및 상대방 실시간 알림 테스트"""
        context_b, ws_b = await connect(lawyer_user)
        body = {"bookingId": "BK-900", "clientId": client_user.id, "lawyerId": lawyer_user.id}

        response = await client.post("/chat-rooms", json=body, headers=auth(auth_token_client))

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["bookingId"] == "BK-900"
        assert data["status"] == "ACTIVE"
        assert data["client"]["id"] == client_user.id
        assert ws_b.events("chat_room_created") == [{"roomId": data["id"], "bookingId": "BK-900"}]
        assert chat_server.manager.is_subscribed(context_b.connection_id, room_channel(data["id"]))
        assert ws_b.events("new_notification")[0]["type"] == NotificationType.CHAT_ROOM_CREATED

    @pytest.mark.asyncio
    async def test_create_existing_chat_room(
        self, client: AsyncClient, auth_token_client, client_user, lawyer_user, test_chat_room
    ):
        """같은 예약의 채팅방이 있으면 기존 방을 반환하는지 테스트"""
        body = {"bookingId": "BK-123", "clientId": client_user.id, "lawyerId": lawyer_user.id}

        response = await client.post("/chat-rooms", json=body, headers=auth(auth_token_client))

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["id"] == "R123"

    @pytest.mark.asyncio
    async def test_create_chat_room_by_outsider(
        self, client: AsyncClient, auth_token_outsider, client_user, lawyer_user
    ):
        """예약 참여자가 아닌 사용자의 채팅방 생성 실패 테스트"""
        body = {"bookingId": "BK-901", "clientId": client_user.id, "lawyerId": lawyer_user.id}

        response = await client.post("/chat-rooms", json=body, headers=auth(auth_token_outsider))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_create_chat_room_with_self(self, client: AsyncClient, auth_token_client, client_user):
        """의뢰인과 변호사가 같은 경우 검증 실패 테스트"""
        body = {"bookingId": "BK-902", "clientId": client_user.id, "lawyerId": client_user.id}

        response = await client.post("/chat-rooms", json=body, headers=auth(auth_token_client))

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestChatMessagesAPI:
    """채팅방 메시지 조회 API 테스트"""

    @pytest.mark.asyncio
    async def test_get_messages(self, client: AsyncClient, test_session, auth_token_lawyer, client_user, test_chat_room):
        """참여자의 메시지 조회 테스트"""
        test_session.add(ChatMessage(id="m1", room_id="R123", sender_id=client_user.id, content="Hello"))
        await test_session.commit()

        response = await client.get("/chat-rooms/R123/messages", headers=auth(auth_token_lawyer))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["roomId"] == "R123"
        assert [m["content"] for m in data["messages"]] == ["Hello"]
        assert data["pagination"]["total"] == 1
        assert data["pagination"]["hasMore"] is False

    @pytest.mark.asyncio
    async def test_get_messages_non_participant(self, client: AsyncClient, auth_token_outsider, test_chat_room):
        """비참여자 메시지 조회 실패 테스트"""
        response = await client.get("/chat-rooms/R123/messages", headers=auth(auth_token_outsider))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "authorization_error"

    @pytest.mark.asyncio
    async def test_get_messages_unknown_room(self, client: AsyncClient, auth_token_client):
        """존재하지 않는 채팅방 메시지 조회 테스트"""
        response = await client.get("/chat-rooms/NOPE/messages", headers=auth(auth_token_client))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestSendMessageAPI:
    """REST 메시지 전송 API 테스트"""

    @pytest.mark.asyncio
    async def test_send_message(
        self, client: AsyncClient, connect, auth_token_client, client_user, lawyer_user, test_chat_room
    ):
        """REST 전송 메시지가 채팅방에 브로드캐스트되고 상대방에게 알림이 가는지 테스트"""
        _, ws_b = await connect(lawyer_user)

        response = await client.post(
            "/chat-rooms/R123/messages",
            json={"content": "  Sent over REST  "},
            headers=auth(auth_token_client)
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["roomId"] == "R123"
        assert data["senderId"] == client_user.id
        assert data["content"] == "Sent over REST"
        assert data["messageType"] == "TEXT"

        assert [m["id"] for m in ws_b.events("new_message")] == [data["id"]]
        notification = ws_b.events("new_notification")[0]
        assert notification["type"] == NotificationType.MESSAGE_RECEIVED
        assert notification["data"] == {"roomId": "R123", "messageId": data["id"]}

    @pytest.mark.asyncio
    async def test_send_message_unknown_room(self, client: AsyncClient, auth_token_client):
        response = await client.post(
            "/chat-rooms/NOPE/messages", json={"content": "Hello"}, headers=auth(auth_token_client)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_send_message_non_participant(
        self, client: AsyncClient, test_session, auth_token_outsider, test_chat_room
    ):
        """비참여자의 메시지 전송이 거부되고 저장되지 않는지 테스트"""
        response = await client.post(
            "/chat-rooms/R123/messages", json={"content": "Hello"}, headers=auth(auth_token_outsider)
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "authorization_error"
        result = await test_session.execute(select(ChatMessage))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_send_blank_message(self, client: AsyncClient, auth_token_client, test_chat_room):
        response = await client.post(
            "/chat-rooms/R123/messages", json={"content": "   "}, headers=auth(auth_token_client)
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestMarkMessageReadAPI:
    """REST 메시지 읽음 처리 API 테스트"""

    async def _seed(self, session, sender_id):
        session.add(ChatMessage(id="m-read", room_id="R123", sender_id=sender_id, content="Please review"))
        await session.commit()

    @pytest.mark.asyncio
    async def test_recipient_marks_read(
        self, client: AsyncClient, test_session, connect, auth_token_lawyer, client_user, lawyer_user,
        test_chat_room
    ):
        """수신자의 읽음 처리 및 message_read 브로드캐스트 테스트"""
        await self._seed(test_session, client_user.id)
        _, ws_a = await connect(client_user)

        response = await client.patch("/messages/m-read/read", headers=auth(auth_token_lawyer))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"messageId": "m-read", "readBy": lawyer_user.id, "isRead": True}
        assert ws_a.events("message_read") == [{"messageId": "m-read", "readBy": lawyer_user.id}]

        test_session.expire_all()
        message = await test_session.get(ChatMessage, "m-read")
        assert message.is_read is True

    @pytest.mark.asyncio
    async def test_sender_cannot_mark_own_message(
        self, client: AsyncClient, test_session, auth_token_client, client_user, test_chat_room
    ):
        await self._seed(test_session, client_user.id)

        response = await client.patch("/messages/m-read/read", headers=auth(auth_token_client))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_non_participant_cannot_mark_read(
        self, client: AsyncClient, test_session, auth_token_outsider, client_user, test_chat_room
    ):
        await self._seed(test_session, client_user.id)

        response = await client.patch("/messages/m-read/read", headers=auth(auth_token_outsider))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_unknown_message(self, client: AsyncClient, auth_token_lawyer):
        response = await client.patch("/messages/missing/read", headers=auth(auth_token_lawyer))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "resource_not_found"


class TestNotificationAPI:
    """알림 API 테스트"""

    async def _seed(self, session, user_id):
        read = Notification(id="n-read", user_id=user_id, type=NotificationType.SYSTEM,
                            title="Old", message="Already seen", is_read=True)
        unread = Notification(id="n-unread", user_id=user_id, type=NotificationType.SYSTEM,
                              title="New", message="Not seen yet")
        session.add_all([read, unread])
        await session.commit()

    @pytest.mark.asyncio
    async def test_list_notifications(self, client: AsyncClient, test_session, auth_token_client, client_user):
        """알림 목록 및 읽지 않은 알림 필터 테스트"""
        await self._seed(test_session, client_user.id)

        response = await client.get("/notifications", headers=auth(auth_token_client))
        unread_response = await client.get(
            "/notifications", params={"unreadOnly": "true"}, headers=auth(auth_token_client)
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["pagination"]["total"] == 2
        assert data["pagination"]["unreadCount"] == 1
        assert [n["id"] for n in unread_response.json()["notifications"]] == ["n-unread"]

    @pytest.mark.asyncio
    async def test_mark_notification_read(self, client: AsyncClient, test_session, auth_token_client, client_user):
        """단일 알림 읽음 처리 테스트"""
        await self._seed(test_session, client_user.id)

        response = await client.patch("/notifications/n-unread/read", headers=auth(auth_token_client))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["isRead"] is True
        assert response.json()["readAt"] is not None

    @pytest.mark.asyncio
    async def test_mark_other_users_notification(
        self, client: AsyncClient, test_session, auth_token_lawyer, client_user
    ):
        """다른 사용자의 알림 읽음 처리 실패 테스트"""
        await self._seed(test_session, client_user.id)

        response = await client.patch("/notifications/n-unread/read", headers=auth(auth_token_lawyer))

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestConnectionStatusAPI:
    """연결 현황 API 테스트"""

    @pytest.mark.asyncio
    async def test_admin_sees_connections(self, client: AsyncClient, connect, auth_token_admin, client_user):
        await connect(client_user)

        response = await client.get("/ws/status", headers=auth(auth_token_admin))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["activeUsers"] == 1
        assert data["connections"][0]["userId"] == client_user.id

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client: AsyncClient, auth_token_client):
        response = await client.get("/ws/status", headers=auth(auth_token_client))

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestHealthAPI:
    """헬스체크 API 테스트"""

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient):
        response = await client.get("/health/live")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_health_reports_store_and_connections(self, client: AsyncClient, connect, client_user):
        """헬스체크가 저장소 상태와 실시간 연결 수를 함께 보고하는지 테스트"""
        await connect(client_user)

        response = await client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["store"] == "connected"
        assert data["realtime"]["activeConnections"] == 1

    @pytest.mark.asyncio
    async def test_readiness(self, client: AsyncClient):
        response = await client.get("/health/ready")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "ready", "realtime": {"activeConnections": 0, "channels": 0}}

    @pytest.mark.asyncio
    async def test_not_ready_without_store(self, client: AsyncClient):
        """저장소 연결 실패 시 health는 degraded, ready는 503인지 테스트"""
        broken_session = AsyncMock()
        broken_session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))

        async def get_broken_session():
            yield broken_session

        app.dependency_overrides[get_async_session] = get_broken_session

        health = await client.get("/health")
        ready = await client.get("/health/ready")

        assert health.status_code == status.HTTP_200_OK
        assert health.json()["status"] == "degraded"
        assert health.json()["store"] == "disconnected"
        assert ready.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert ready.json()["error"] == "persistence_error"

import unittest
import uuid
from unittest.mock import patch, AsyncMock

import httpx

from dbsupport import DatabaseTestCase

from snet.core.config import settings
from snet.core.security import create_access_token
from snet.db.session import get_db
from snet.main import app
from snet.models.chat import ChatRoom
from snet.models.community import Post
from snet.models.user import User
from snet.schemas.ai import FlagLevel, ModerationAction, ModerationResult

API = settings.API_V1_STR


class ApiTestCase(DatabaseTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()

        async def override_get_db():
            async with self.session_factory() as session:
                yield session

        app.dependency_overrides[get_db] = override_get_db
        self.addCleanup(app.dependency_overrides.clear)

        secret = patch.object(settings, "SUPABASE_JWT_SECRET", "api-test-secret")
        secret.start()
        self.addCleanup(secret.stop)

        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
        self.addAsyncCleanup(self.client.aclose)

    def auth(self, user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}


class TestAuth(ApiTestCase):

    async def test_health_is_public(self):
        response = await self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    async def test_missing_token(self):
        response = await self.client.get(f"{API}/community/posts")
        self.assertEqual(response.status_code, 401)

    async def test_garbage_token(self):
        response = await self.client.get(f"{API}/community/posts", headers={"Authorization": "Bearer nope"})
        self.assertEqual(response.status_code, 401)

    async def test_unknown_user(self):
        token = create_access_token(uuid.uuid4())
        response = await self.client.get(f"{API}/community/posts", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 401)

    async def test_first_student_sign_in_provisions_profile(self):
        user_id = uuid.uuid4()
        token = create_access_token(
            user_id,
            extra_claims={
                "email": f"hoa.student@{settings.STUDENT_EMAIL_DOMAIN}",
                "user_metadata": {"username": "hoa", "full_name": "Trần Hoa"},
            },
        )

        response = await self.client.get(f"{API}/chat/room", headers={"Authorization": f"Bearer {token}"})

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json())
        self.assertEqual(await self.count(User, User.id == user_id), 1)

    async def test_inactive_user(self):
        user = await self.add_user("student", is_active=False)
        response = await self.client.get(f"{API}/community/posts", headers=self.auth(user))
        self.assertEqual(response.status_code, 403)

    async def test_staff_routes_refuse_students(self):
        for path in ("/moderation/pending", "/moderation/flagged", "/chat/rooms"):
            response = await self.client.get(f"{API}{path}", headers=self.auth(self.student))
            self.assertEqual(response.status_code, 403, path)

        response = await self.client.get(f"{API}/moderation/pending", headers=self.auth(self.counselor))
        self.assertEqual(response.status_code, 200)


class TestCommunityApi(ApiTestCase):

    @patch("snet.services.content_service.ModerationService.analyze_content", new_callable=AsyncMock)
    async def test_submit_post(self, mock_analyze):
        mock_analyze.return_value = ModerationResult(
            action=ModerationAction.ALLOW, flag_level=FlagLevel.NORMAL, category="safe", confidence=0.95
        )

        response = await self.client.post(
            f"{API}/community/posts", json={"content": "Chúc mọi người thi tốt!"}, headers=self.auth(self.student)
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["action"], "allow")
        self.assertIsNotNone(body["content_id"])
        self.assertEqual(await self.count(Post), 1)

        feed = await self.client.get(f"{API}/community/posts", headers=self.auth(self.student))
        self.assertEqual([p["content"] for p in feed.json()], ["Chúc mọi người thi tốt!"])

    async def test_service_errors_map_to_status_codes(self):
        response = await self.client.delete(f"{API}/community/posts/{uuid.uuid4()}", headers=self.auth(self.student))
        self.assertEqual(response.status_code, 404)
        self.assertIn("detail", response.json())


@patch("snet.api.v1.chat.TriageService.on_student_message", new_callable=AsyncMock)
@patch("snet.api.v1.chat.triage_timer")
class TestChatApi(ApiTestCase):

    async def open_room(self) -> dict:
        response = await self.client.post(f"{API}/chat/room", headers=self.auth(self.student))
        self.assertEqual(response.status_code, 201)
        return response.json()

    async def test_open_room_arms_timer_once(self, mock_timer, mock_triage):
        room = await self.open_room()

        mock_timer.arm.assert_called_once_with(uuid.UUID(room["id"]))
        again = await self.client.post(f"{API}/chat/room", headers=self.auth(self.student))
        self.assertEqual(again.status_code, 409)
        self.assertEqual(await self.count(ChatRoom), 1)

    async def test_student_message_schedules_triage(self, mock_timer, mock_triage):
        room = await self.open_room()

        response = await self.client.post(
            f"{API}/chat/rooms/{room['id']}/messages", json={"content": "Em cần nói chuyện"},
            headers=self.auth(self.student),
        )

        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.json()["is_ai"])
        mock_triage.assert_awaited_once_with(uuid.UUID(room["id"]))
        mock_timer.cancel.assert_not_called()

    async def test_counselor_message_stops_timer(self, mock_timer, mock_triage):
        room = await self.open_room()

        response = await self.client.post(
            f"{API}/chat/rooms/{room['id']}/messages", json={"content": "Chào em"},
            headers=self.auth(self.counselor),
        )

        self.assertEqual(response.status_code, 201)
        mock_timer.cancel.assert_called_once_with(uuid.UUID(room["id"]))
        mock_triage.assert_not_called()

    async def test_invalid_urgency(self, mock_timer, mock_triage):
        room = await self.open_room()

        response = await self.client.put(
            f"{API}/chat/rooms/{room['id']}/urgency", json={"level": 9}, headers=self.auth(self.counselor)
        )

        self.assertEqual(response.status_code, 400)

    async def test_delete_room_forgets_timer(self, mock_timer, mock_triage):
        room = await self.open_room()

        response = await self.client.delete(f"{API}/chat/room", headers=self.auth(self.student))

        self.assertEqual(response.json()["status"], "deleted")
        mock_timer.forget.assert_called_once_with(uuid.UUID(room["id"]))

    async def test_admin_deletes_any_room(self, mock_timer, mock_triage):
        room = await self.open_room()
        path = f"{API}/chat/rooms/{room['id']}"

        refused = await self.client.delete(path, headers=self.auth(self.counselor))
        self.assertEqual(refused.status_code, 403)

        response = await self.client.delete(path, headers=self.auth(self.admin))

        self.assertEqual(response.json()["status"], "deleted")
        self.assertEqual(await self.count(ChatRoom), 0)
        mock_timer.forget.assert_called_once_with(uuid.UUID(room["id"]))

    async def test_counseled_toggle(self, mock_timer, mock_triage):
        room = await self.open_room()
        path = f"{API}/chat/rooms/{room['id']}/counseled"

        refused = await self.client.put(path, json={"counseled": True}, headers=self.auth(self.student))
        self.assertEqual(refused.status_code, 403)

        response = await self.client.put(path, json={"counseled": True}, headers=self.auth(self.counselor))

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["is_counseled"])
        self.assertEqual(response.json()["counseled_by"], str(self.counselor.id))

    async def test_student_notes(self, mock_timer, mock_triage):
        path = f"{API}/chat/students/{self.student.id}/notes"

        empty = await self.client.get(path, headers=self.auth(self.counselor))
        self.assertEqual(empty.status_code, 200)
        self.assertEqual(empty.json()["content"], "")
        self.assertIsNone(empty.json()["updated_by"])

        saved = await self.client.put(path, json={"content": "Cần theo dõi thêm"}, headers=self.auth(self.counselor))
        self.assertEqual(saved.status_code, 200)
        self.assertEqual(saved.json()["updated_by"], str(self.counselor.id))

        read = await self.client.get(path, headers=self.auth(self.admin))
        self.assertEqual(read.json()["content"], "Cần theo dõi thêm")

        refused = await self.client.get(path, headers=self.auth(self.student))
        self.assertEqual(refused.status_code, 403)


if __name__ == "__main__":
    unittest.main()

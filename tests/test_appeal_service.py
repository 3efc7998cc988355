import unittest
import uuid

from dbsupport import DatabaseTestCase

from snet.core.exceptions import ConflictError, InvalidStateError, NotFoundError, PermissionDeniedError
from snet.models.community import Post
from snet.models.moderation import ContentAppeal, PendingContent
from snet.models.notification import Notification
from snet.services.appeal_service import AppealService


class TestAppeals(DatabaseTestCase):

    async def test_submit_notifies_staff(self):
        appeal = await AppealService.submit_appeal(
            self.db, self.student, "post", uuid.uuid4(), "Bài của mình không có gì xấu", original_content="..."
        )

        self.assertEqual(appeal.status, "pending")
        notes = await self.fetch_all(Notification)
        self.assertEqual({n.user_id for n in notes}, {self.counselor.id, self.admin.id})
        self.assertTrue(all(n.type == "content_appeal" for n in notes))

    async def test_one_appeal_per_content(self):
        content_id = uuid.uuid4()
        await AppealService.submit_appeal(self.db, self.student, "post", content_id, "lần 1")

        with self.assertRaises(ConflictError):
            await AppealService.submit_appeal(self.db, self.student, "post", content_id, "lần 2")
        self.assertEqual(await self.count(ContentAppeal), 1)

        # A different student may appeal the same item
        other = await self.add_user("student")
        await AppealService.submit_appeal(self.db, other, "post", content_id, "của mình")
        self.assertEqual(await self.count(ContentAppeal), 2)

    async def test_approving_appeal_on_held_content_publishes_it(self):
        item = PendingContent(user_id=self.student.id, content_type="post", content="Chờ lâu quá", status="pending")
        self.db.add(item)
        await self.db.commit()
        appeal = await AppealService.submit_appeal(self.db, self.student, "pending", item.id, "Xin duyệt giúp")

        await AppealService.review_appeal(self.db, self.counselor, appeal.id, True, "Ok")

        stored = (await self.fetch_all(ContentAppeal))[0]
        self.assertEqual(stored.status, "approved")
        self.assertEqual(stored.reviewed_by, self.counselor.id)
        self.assertEqual(stored.review_notes, "Ok")
        posts = await self.fetch_all(Post)
        self.assertEqual([p.content for p in posts], ["Chờ lâu quá"])
        self.assertEqual((await self.fetch_all(PendingContent))[0].status, "approved")

        decision = await self.fetch_all(Notification, Notification.type == "appeal_decision")
        self.assertEqual([n.user_id for n in decision], [self.student.id])

    async def test_cannot_appeal_someone_elses_held_content(self):
        item = PendingContent(user_id=self.student.id, content_type="post", content="Của An", status="pending")
        self.db.add(item)
        await self.db.commit()
        other = await self.add_user("student")

        with self.assertRaises(PermissionDeniedError):
            await AppealService.submit_appeal(self.db, other, "pending", item.id, "Duyệt giúp mình")

        self.assertEqual(await self.count(ContentAppeal), 0)
        self.assertEqual(await self.count(Post), 0)
        self.assertEqual(await self.count(Notification), 0)

    async def test_appeal_on_missing_held_content(self):
        with self.assertRaises(NotFoundError):
            await AppealService.submit_appeal(self.db, self.student, "pending", uuid.uuid4(), "Đâu rồi?")

    async def test_cannot_appeal_someone_elses_post(self):
        post = Post(author_id=self.student.id, content="Bài của An", is_anonymous=True)
        self.db.add(post)
        await self.db.commit()
        other = await self.add_user("student")

        with self.assertRaises(PermissionDeniedError):
            await AppealService.submit_appeal(self.db, other, "post", post.id, "không phải của mình")
        await AppealService.submit_appeal(self.db, self.student, "post", post.id, "của mình")
        self.assertEqual(await self.count(ContentAppeal), 1)

    async def test_rejected_appeal_tells_the_reason(self):
        appeal = await AppealService.submit_appeal(self.db, self.student, "post", uuid.uuid4(), "Xin xem lại")

        await AppealService.review_appeal(self.db, self.admin, appeal.id, False, "Vi phạm quy tắc")

        decision = (await self.fetch_all(Notification, Notification.type == "appeal_decision"))[0]
        self.assertIn("Vi phạm quy tắc", decision.message)
        self.assertEqual(await self.count(Post), 0)

    async def test_review_requires_staff_and_pending(self):
        appeal = await AppealService.submit_appeal(self.db, self.student, "post", uuid.uuid4(), "Xin xem lại")

        with self.assertRaises(PermissionDeniedError):
            await AppealService.review_appeal(self.db, self.student, appeal.id, True)

        await AppealService.review_appeal(self.db, self.counselor, appeal.id, False)
        with self.assertRaises(InvalidStateError):
            await AppealService.review_appeal(self.db, self.counselor, appeal.id, True)

    async def test_listing_and_pending_count(self):
        other = await self.add_user("student")
        mine = await AppealService.submit_appeal(self.db, self.student, "post", uuid.uuid4(), "1")
        await AppealService.submit_appeal(self.db, other, "comment", uuid.uuid4(), "2")

        self.assertEqual([a.id for a in await AppealService.list_appeals(self.db, self.student)], [mine.id])
        self.assertEqual(len(await AppealService.list_appeals(self.db, self.counselor)), 2)
        self.assertEqual(await AppealService.pending_count(self.db), 2)

        await AppealService.review_appeal(self.db, self.counselor, mine.id, True)
        self.assertEqual(await AppealService.pending_count(self.db), 1)


if __name__ == "__main__":
    unittest.main()

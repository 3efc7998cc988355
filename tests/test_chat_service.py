import unittest
from datetime import timedelta

from dbsupport import DatabaseTestCase

from snet.core.exceptions import ConflictError, InvalidStateError, NotFoundError, PermissionDeniedError
from snet.core.time_utils import get_utc_now
from snet.models.chat import ChatMessage, ChatRoom, ChatTransfer, StudentNote
from snet.models.notification import Notification
from snet.services.chat_service import ChatService


class TestRooms(DatabaseTestCase):

    async def test_one_room_per_student(self):
        room = await ChatService.create_room(self.db, self.student)

        self.assertIsNone(room.counselor_id)
        self.assertEqual(room.status, "active")
        self.assertEqual(room.urgency_level, 0)
        with self.assertRaises(ConflictError):
            await ChatService.create_room(self.db, self.student)
        self.assertEqual(await self.count(ChatRoom), 1)

    async def test_staff_cannot_open_a_room(self):
        with self.assertRaises(PermissionDeniedError):
            await ChatService.create_room(self.db, self.counselor)

    async def test_staff_listing_visibility_and_order(self):
        other_counselor = await self.add_user("counselor", "Cô Mai")
        s2 = await self.add_user("student")
        s3 = await self.add_user("student")
        now = get_utc_now()

        public_calm = await ChatService.create_room(self.db, self.student)
        public_calm.last_message_at = now
        public_urgent = await ChatService.create_room(self.db, s2)
        public_urgent.urgency_level = 2
        public_urgent.last_message_at = now - timedelta(hours=1)
        assigned_elsewhere = await ChatService.create_room(self.db, s3)
        assigned_elsewhere.counselor_id = other_counselor.id
        await self.db.commit()

        as_counselor = await ChatService.list_rooms_for_staff(self.db, self.counselor)
        as_admin = await ChatService.list_rooms_for_staff(self.db, self.admin)

        self.assertEqual([r.id for r in as_counselor], [public_urgent.id, public_calm.id])
        self.assertEqual(len(as_admin), 3)
        self.assertEqual(as_admin[0].id, public_urgent.id)

        with self.assertRaises(PermissionDeniedError):
            await ChatService.list_rooms_for_staff(self.db, self.student)

    async def test_delete_room_owner_or_admin(self):
        room = await ChatService.create_room(self.db, self.student)
        await ChatService.send_message(self.db, self.student, room.id, "xin chào")

        with self.assertRaises(PermissionDeniedError):
            await ChatService.delete_room(self.db, self.counselor, room.id)

        await ChatService.delete_room(self.db, self.admin, room.id)
        self.assertEqual(await self.count(ChatRoom), 0)
        self.assertEqual(await self.count(ChatMessage), 0)


class TestMessages(DatabaseTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.room = await ChatService.create_room(self.db, self.student)

    async def test_first_staff_reply_is_recorded_once(self):
        await ChatService.send_message(self.db, self.student, self.room.id, "Em cần giúp")
        self.assertIsNone(self.room.counselor_first_reply_at)

        await ChatService.send_message(self.db, self.counselor, self.room.id, "Cô đây")
        first = self.room.counselor_first_reply_at
        self.assertIsNotNone(first)

        await ChatService.send_message(self.db, self.admin, self.room.id, "Thầy cũng ở đây")
        self.assertEqual(self.room.counselor_first_reply_at, first)
        self.assertIsNotNone(self.room.last_message_at)

    async def test_student_message_in_public_room_notifies_all_staff(self):
        await ChatService.send_message(self.db, self.student, self.room.id, "Em cần giúp")

        notes = await self.fetch_all(Notification)
        self.assertEqual({n.user_id for n in notes}, {self.counselor.id, self.admin.id})
        self.assertTrue(all(n.type == "new_message" for n in notes))

    async def test_student_message_in_assigned_room_notifies_that_counselor(self):
        self.room.counselor_id = self.counselor.id
        await self.db.commit()

        await ChatService.send_message(self.db, self.student, self.room.id, "Em cần giúp")

        notes = await self.fetch_all(Notification)
        self.assertEqual([n.user_id for n in notes], [self.counselor.id])

    async def test_staff_message_notifies_student(self):
        await ChatService.send_message(self.db, self.counselor, self.room.id, "Chào em")

        notes = await self.fetch_all(Notification)
        self.assertEqual([(n.user_id, n.type) for n in notes], [(self.student.id, "counselor_replied")])

    async def test_strangers_cannot_read_or_write(self):
        other = await self.add_user("student")
        with self.assertRaises(PermissionDeniedError):
            await ChatService.send_message(self.db, other, self.room.id, "hi")
        with self.assertRaises(PermissionDeniedError):
            await ChatService.list_messages(self.db, other, self.room.id)

    async def test_blank_message_rejected(self):
        with self.assertRaises(InvalidStateError):
            await ChatService.send_message(self.db, self.student, self.room.id, "   ")

    async def test_delete_message_sender_only(self):
        message = await ChatService.send_message(self.db, self.student, self.room.id, "gửi nhầm")

        with self.assertRaises(PermissionDeniedError):
            await ChatService.delete_message(self.db, self.counselor, message.id)
        await ChatService.delete_message(self.db, self.student, message.id)
        self.assertEqual(await self.count(ChatMessage), 0)

    async def test_read_receipts_and_unread_count(self):
        await ChatService.send_message(self.db, self.student, self.room.id, "một")
        await ChatService.send_message(self.db, self.student, self.room.id, "hai")
        await ChatService.send_message(self.db, self.counselor, self.room.id, "ba")

        self.assertEqual(await ChatService.unread_count(self.db, self.counselor), 2)
        self.assertEqual(await ChatService.unread_count(self.db, self.student), 1)

        marked = await ChatService.mark_room_read(self.db, self.counselor, self.room.id)
        self.assertEqual(marked, 2)
        self.assertEqual(await ChatService.unread_count(self.db, self.counselor), 0)
        self.assertEqual(await ChatService.mark_room_read(self.db, self.counselor, self.room.id), 0)

        messages = await self.fetch_all(ChatMessage, ChatMessage.sender_id == self.student.id)
        self.assertTrue(all(str(self.counselor.id) in m.read_by for m in messages))


class TestStaffActions(DatabaseTestCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.room = await ChatService.create_room(self.db, self.student)
        self.target = await self.add_user("counselor", "Cô Mai")

    async def test_transfer(self):
        await ChatService.transfer_room(self.db, self.counselor, self.room.id, self.target.id, "Chuyên môn phù hợp")

        self.assertEqual(self.room.counselor_id, self.target.id)
        transfers = await self.fetch_all(ChatTransfer)
        self.assertEqual(len(transfers), 1)
        self.assertEqual(transfers[0].from_counselor_id, self.counselor.id)
        self.assertEqual(transfers[0].student_id, self.student.id)

        notes = await self.fetch_all(Notification, Notification.type == "chat_transfer")
        self.assertEqual({n.user_id for n in notes}, {self.target.id, self.student.id})

        system = await self.fetch_all(ChatMessage, ChatMessage.is_system.is_(True))
        self.assertEqual(len(system), 1)
        self.assertIn("Chuyên môn phù hợp", system[0].content)

        # The previous counselor loses access to a room pinned elsewhere
        with self.assertRaises(PermissionDeniedError):
            await ChatService.get_room(self.db, self.counselor, self.room.id)

    async def test_transfer_to_non_staff(self):
        with self.assertRaises(NotFoundError):
            await ChatService.transfer_room(self.db, self.counselor, self.room.id, self.student.id)

    async def test_urgency_bounds(self):
        with self.assertRaises(InvalidStateError):
            await ChatService.set_urgency(self.db, self.counselor, self.room.id, 4)
        with self.assertRaises(InvalidStateError):
            await ChatService.set_urgency(self.db, self.counselor, self.room.id, -1)

    async def test_counseled_toggle_records_who_and_when(self):
        room = await ChatService.set_counseled(self.db, self.counselor, self.room.id, True)

        self.assertTrue(room.is_counseled)
        self.assertIsNotNone(room.counseled_at)
        self.assertEqual(room.counseled_by, self.counselor.id)

        await ChatService.set_counseled(self.db, self.admin, self.room.id, False)
        stored = (await self.fetch_all(ChatRoom))[0]
        self.assertFalse(stored.is_counseled)
        self.assertIsNone(stored.counseled_at)
        self.assertIsNone(stored.counseled_by)

    async def test_counseled_toggle_is_staff_only(self):
        with self.assertRaises(PermissionDeniedError):
            await ChatService.set_counseled(self.db, self.student, self.room.id, True)
        self.assertFalse((await self.fetch_all(ChatRoom))[0].is_counseled)

    async def test_critical_urgency_notifies_admins(self):
        second_admin = await self.add_user("admin")

        await ChatService.set_urgency(self.db, self.counselor, self.room.id, 2)
        self.assertEqual(await self.count(Notification, Notification.type == "urgent_case"), 0)

        await ChatService.set_urgency(self.db, self.counselor, self.room.id, 3)
        notes = await self.fetch_all(Notification, Notification.type == "urgent_case")
        self.assertEqual({n.user_id for n in notes}, {self.admin.id, second_admin.id})
        self.assertEqual(self.room.urgency_level, 3)



class TestStudentNotes(DatabaseTestCase):

    async def test_no_note_yet(self):
        self.assertIsNone(await ChatService.get_student_notes(self.db, self.counselor, self.student.id))

    async def test_save_upserts_one_note_per_student(self):
        await ChatService.save_student_notes(self.db, self.counselor, self.student.id, "Hay lo âu trước kỳ thi")
        note = await ChatService.save_student_notes(self.db, self.admin, self.student.id, "Đã gặp phụ huynh")

        self.assertEqual(await self.count(StudentNote), 1)
        stored = await ChatService.get_student_notes(self.db, self.counselor, self.student.id)
        self.assertEqual(stored.id, note.id)
        self.assertEqual(stored.content, "Đã gặp phụ huynh")
        self.assertEqual(stored.updated_by, self.admin.id)
        self.assertIsNotNone(stored.updated_at)

    async def test_students_cannot_read_or_write_notes(self):
        with self.assertRaises(PermissionDeniedError):
            await ChatService.get_student_notes(self.db, self.student, self.student.id)
        with self.assertRaises(PermissionDeniedError):
            await ChatService.save_student_notes(self.db, self.student, self.student.id, "tự ghi")
        self.assertEqual(await self.count(StudentNote), 0)

    async def test_notes_only_for_students(self):
        with self.assertRaises(NotFoundError):
            await ChatService.save_student_notes(self.db, self.admin, self.counselor.id, "...")


if __name__ == "__main__":
    unittest.main()

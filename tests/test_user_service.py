import unittest
import uuid

from dbsupport import DatabaseTestCase

from snet.core.config import settings
from snet.models.user import User
from snet.services.user_service import UserService

DOMAIN = settings.STUDENT_EMAIL_DOMAIN


class TestProvisionStudent(DatabaseTestCase):

    async def test_first_sign_in_creates_student_profile(self):
        user_id = uuid.uuid4()
        claims = {
            "email": f"nguyenbinh.student@{DOMAIN}",
            "user_metadata": {"username": "NguyenBinh", "full_name": "Nguyễn Bình"},
        }

        user = await UserService.provision_student(self.db, user_id, claims)

        self.assertEqual(user.id, user_id)
        self.assertEqual(user.role, "student")
        self.assertEqual(user.username, "nguyenbinh")
        self.assertEqual(user.full_name, "Nguyễn Bình")
        self.assertEqual(await self.count(User, User.id == user_id), 1)

    async def test_username_falls_back_to_the_address(self):
        user = await UserService.provision_student(self.db, uuid.uuid4(), {"email": f"lan.student@{DOMAIN}"})
        self.assertEqual(user.username, "lan")

    async def test_staff_addresses_are_not_provisioned(self):
        user = await UserService.provision_student(self.db, uuid.uuid4(), {"email": f"co.lan@{DOMAIN}"})

        self.assertIsNone(user)
        self.assertEqual(await self.count(User), 3)

    async def test_metadata_must_match_the_address(self):
        claims = {"email": f"an.student@{DOMAIN}", "user_metadata": {"username": "binh"}}
        self.assertIsNone(await UserService.provision_student(self.db, uuid.uuid4(), claims))

    async def test_missing_email(self):
        self.assertIsNone(await UserService.provision_student(self.db, uuid.uuid4(), {}))

    async def test_address_already_taken(self):
        taken = await self.add_user("student")
        claims = {"email": taken.email.replace("@example.com", f".student@{DOMAIN}")}
        taken.email = claims["email"]
        await self.db.commit()

        self.assertIsNone(await UserService.provision_student(self.db, uuid.uuid4(), claims))
        self.assertEqual(await self.count(User), 4)


if __name__ == "__main__":
    unittest.main()

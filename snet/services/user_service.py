import uuid
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from snet.core.security import build_student_email, is_student_email
from snet.models.user import User, UserRole

logger = structlog.get_logger()


class UserService:

    @staticmethod
    async def provision_student(db: AsyncSession, user_id: uuid.UUID, claims: Dict[str, Any]) -> Optional[User]:
        """
        Create the profile row for a student signing in for the first time.

        Students sign up against Supabase with a username only, so their token
        carries the synthetic {username}.student@ address. Anyone else (staff
        or a foreign address) must already have a profile and gets None.
        """
        email = str(claims.get("email") or "").strip().lower()
        if not email or not is_student_email(email):
            return None

        meta = claims.get("user_metadata") or {}
        username = meta.get("username") or email.rsplit(".student@", 1)[0]
        try:
            expected = build_student_email(username)
        except ValueError:
            return None
        if expected != email:
            logger.warning("student_email_mismatch", user_id=str(user_id), email=email)
            return None

        user = User(
            id=user_id,
            email=email,
            username=username.strip().lower(),
            full_name=meta.get("full_name"),
            role=UserRole.STUDENT.value,
            is_active=True,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # A parallel request created the profile first
            await db.rollback()
            return await db.get(User, user_id)

        logger.info("student_profile_provisioned", user_id=str(user_id), username=user.username)
        return user

import uuid
import enum
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.dialects.postgresql import UUID

from snet.core.time_utils import get_utc_now
from snet.db.base import Base


class UserRole(str, enum.Enum):
    STUDENT = "student"
    COUNSELOR = "counselor"
    ADMIN = "admin"


STAFF_ROLES = (UserRole.COUNSELOR.value, UserRole.ADMIN.value)


class User(Base):
    """
    Mirror of the public users profile table kept in sync with Supabase auth.
    """
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), nullable=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), default=UserRole.STUDENT.value, nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=get_utc_now, nullable=False)

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""User ORM model."""

from sqlalchemy import Column, Integer, String, Text, Boolean, Date, DateTime, Enum, Index
from sqlalchemy.orm import column_property

from database import Base
from models.mixins import AuditFieldsMixin, SoftDeleteMixin, TimestampMixin

GENDERS = ("MALE", "FEMALE", "OTHER")


class User(TimestampMixin, SoftDeleteMixin, AuditFieldsMixin, Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Case-sensitive; RFC 5321 caps a forward path at 254 characters
    email = Column(String(254), nullable=False)
    name = Column(String(100), nullable=False, default="Bạn")
    # Hash only – see core.security.hash_password
    password = Column(String(255), nullable=False)
    phone_number = Column(String(15), nullable=True)
    avatar_url = Column(Text, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(Enum(*GENDERS, name="enum_users_gender"), nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    # active_history: the policy needs the old value to spot false → true
    email_verified = column_property(
        Column(Boolean, nullable=False, default=False), active_history=True
    )
    phone_verified = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_users_email", "email", unique=True),
        Index("idx_users_name", "name"),
        Index("idx_users_phone", "phone_number"),
        Index("idx_users_active", "is_active"),
        Index("idx_users_deleted", "is_deleted"),
        Index("idx_users_created", "created_at"),
        Index("idx_users_login_status", "email", "is_active", "is_deleted"),
    )

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email})"

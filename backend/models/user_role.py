# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""UserRole junction – which roles a user holds."""

from sqlalchemy import Column, Integer, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from database import Base
from models.mixins import SoftDeleteMixin, TimestampMixin


class UserRole(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    role_id = Column(
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    # Independent of the parents' own is_active / is_deleted state
    is_active = Column(Boolean, nullable=False, default=True)

    user = relationship("User")
    role = relationship("Role")

    __table_args__ = (
        Index("idx_user_roles_user", "user_id"),
        Index("idx_user_roles_role", "role_id"),
        Index("idx_user_roles_composite", "user_id", "role_id", unique=True),
        Index("idx_user_roles_active", "is_active"),
        Index("idx_user_roles_deleted", "is_deleted"),
    )

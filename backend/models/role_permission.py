# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
RolePermission junction – which permissions a role grants.

Soft-delete only: ``session.delete(row)`` and ``delete(RolePermission)``
statements are rewritten by ``core.audit`` into an update that sets
``is_deleted``/``deleted_at``, so grant history is never lost through an
ordinary delete.  A role or permission that still has grant rows cannot be
physically removed either (``InUse``); the ON DELETE CASCADE below only
fires for raw SQL that bypasses the session.
"""

from sqlalchemy import Column, Integer, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship

from database import Base
from models.mixins import SoftDeleteOnlyMixin, TimestampMixin


class RolePermission(TimestampMixin, SoftDeleteOnlyMixin, Base):
    __tablename__ = "role_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    permission_id = Column(
        Integer,
        ForeignKey("permissions.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    is_active = Column(Boolean, nullable=False, default=True)

    role = relationship("Role")
    permission = relationship("Permission")

    __table_args__ = (
        Index("idx_role_permissions_role", "role_id"),
        Index("idx_role_permissions_perm", "permission_id"),
        Index("idx_role_permissions_composite", "role_id", "permission_id", unique=True),
        Index("idx_role_permissions_active", "is_active"),
        Index("idx_role_permissions_deleted", "is_deleted"),
    )

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Role ORM model (RBAC)."""

from sqlalchemy import Column, Integer, String, Text, Boolean, Index, JSON

from database import Base
from models.mixins import AuditFieldsMixin, SoftDeleteMixin, TimestampMixin


class Role(TimestampMixin, SoftDeleteMixin, AuditFieldsMixin, Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_name = Column(String(50), nullable=False)
    role_code = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    # Legacy flag blob, e.g. {"full_access": true}.  Grants are resolved from
    # role_permissions only; nothing reads this for authorization.
    permissions = Column(JSON, nullable=False, default=dict)
    # True for the seeded ADMIN / USER roles, which cannot be removed
    is_system = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_roles_name", "role_name", unique=True),
        Index("idx_roles_code", "role_code", unique=True),
        Index("idx_roles_active", "is_active"),
        Index("idx_roles_deleted", "is_deleted"),
        Index("idx_roles_system", "is_system"),
    )

    def __repr__(self) -> str:
        return f"Role(id={self.id}, code={self.role_code})"

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Permission ORM model (RBAC)."""

from sqlalchemy import Column, Integer, String, Text, Boolean, Index

from database import Base
from models.mixins import AuditFieldsMixin, SoftDeleteMixin, TimestampMixin


class Permission(TimestampMixin, SoftDeleteMixin, AuditFieldsMixin, Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    permission_name = Column(String(100), nullable=False)
    permission_code = Column(String(100), nullable=False)  # e.g. "USER_VIEW"
    description = Column(Text, nullable=True)
    # Classification triple, e.g. user / view / profile
    module = Column(String(50), nullable=True)
    action = Column(String(50), nullable=True)
    resource = Column(String(50), nullable=True)
    is_system = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_permissions_name", "permission_name", unique=True),
        Index("idx_permissions_code", "permission_code", unique=True),
        Index("idx_permissions_module", "module"),
        Index("idx_permissions_active", "is_active"),
        Index("idx_permissions_deleted", "is_deleted"),
        Index("idx_permissions_module_action_resource", "module", "action", "resource"),
    )

    def __repr__(self) -> str:
        return f"Permission(id={self.id}, code={self.permission_code})"

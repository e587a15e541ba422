# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Column mixins shared by the ORM models.

The mixins double as capability markers: ``core.audit`` decides which
lifecycle rules apply to a row by checking which of these classes its model
inherits from.

* TimestampMixin       created_at / updated_at maintained on every write
* SoftDeleteMixin      is_deleted / deleted_at kept in step
* SoftDeleteOnlyMixin  a DELETE is turned into a soft delete
* AuditFieldsMixin     creator_id / modifier_id referencing users.id
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SoftDeleteMixin:
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class SoftDeleteOnlyMixin(SoftDeleteMixin):
    """Rows of this model are never physically removed by a session delete."""


class AuditFieldsMixin:
    # SET NULL: removing the acting user must not take audited rows with it

    @declared_attr
    def creator_id(cls):
        return Column(
            Integer,
            ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"),
            nullable=True,
        )

    @declared_attr
    def modifier_id(cls):
        return Column(
            Integer,
            ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"),
            nullable=True,
        )

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""UserToken ORM model – issued access/refresh/API/one-shot tokens."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Enum, ForeignKey, Index, JSON
from sqlalchemy.orm import column_property, relationship

from database import Base
from models.mixins import TimestampMixin

TOKEN_TYPES = ("ACCESS", "REFRESH", "API", "RESET_PASSWORD", "EMAIL_VERIFICATION")


class UserToken(TimestampMixin, Base):
    __tablename__ = "user_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Cascade delete: removing a user removes all their tokens atomically.
    user_id = Column(
        Integer,
        ForeignKey("users.id", name="fk_user_tokens_user", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    token_type = Column(
        Enum(*TOKEN_TYPES, name="enum_user_tokens_token_type"),
        nullable=False,
        default="ACCESS",
    )
    # SHA-256 hex of the raw token.  The raw value is never stored.
    token_hash = Column(String(512), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # active_history: the policy refuses a true → false transition
    is_revoked = column_property(
        Column(Boolean, nullable=False, default=False), active_history=True
    )
    ip_address = Column(String(45), nullable=True)  # supports IPv6
    user_agent = Column(Text, nullable=True)
    device_info = Column(JSON, nullable=True)

    user = relationship("User")

    __table_args__ = (
        Index("idx_user_tokens_user", "user_id"),
        Index("idx_user_tokens_hash", "token_hash", unique=True),
        Index("idx_user_tokens_expires", "expires_at"),
        Index("idx_user_tokens_user_type", "user_id", "token_type"),
        Index("idx_user_tokens_validity", "user_id", "is_revoked", "expires_at"),
    )

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""OtpToken ORM model – one-time codes, optionally tied to a user."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import column_property, relationship

from database import Base
from models.mixins import TimestampMixin

OTP_TYPES = (
    "REGISTRATION",
    "LOGIN",
    "EMAIL_VERIFICATION",
    "PHONE_VERIFICATION",
    "PASSWORD_RESET",
    "TRANSACTION",
)


class OtpToken(TimestampMixin, Base):
    __tablename__ = "otp_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Nullable: codes can be issued before the account exists (registration).
    # SET NULL keeps the code history when the account is removed.
    user_id = Column(
        Integer,
        ForeignKey("users.id", name="fk_otp_tokens_user", ondelete="SET NULL", onupdate="CASCADE"),
        nullable=True,
    )
    email = Column(String(254), nullable=False)
    phone_number = Column(String(15), nullable=True)
    # HMAC-SHA256 hex of the code, keyed by settings.secret_key
    otp_hash = Column(String(255), nullable=False)
    token_type = Column(Enum(*OTP_TYPES, name="enum_otp_tokens_token_type"), nullable=False)
    is_used = column_property(
        Column(Boolean, nullable=False, default=False), active_history=True
    )
    is_revoked = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    device_id = Column(String(255), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User")

    __table_args__ = (
        Index("idx_otp_verification", "email", "token_type", "is_used", "expires_at"),
        Index("idx_otp_phone_verification", "phone_number", "token_type", "is_used", "expires_at"),
        Index("idx_otp_expires", "expires_at"),
        Index("idx_otp_user", "user_id"),
        Index("idx_otp_created", "created_at"),
        Index("idx_otp_email_created", "email", "created_at"),
    )

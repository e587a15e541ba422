# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Credential store – one-time codes (``otp_tokens``) and the attempt guard.

Attempt guard
-------------
``record_otp_attempt`` is a single conditional UPDATE:

    UPDATE otp_tokens SET attempts = attempts + 1 [, is_used, used_at]
     WHERE id = :id AND attempts < max_attempts [AND is_used = false …]

so the bound is checked against the *proposed* value in the same statement
that writes it.  Either the row changes completely or not at all, and two
concurrent consumers of one code cannot both win: the loser's UPDATE matches
no row and is reported as AlreadyUsed (or AttemptsExceeded).

Delivering the code (mail, SMS) is not handled here; ``create_otp`` returns
the plaintext once so a sender can pass it on.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from core import audit
from core.config import settings
from core.errors import AlreadyUsed, AttemptsExceeded, Expired, NotFound, Revoked
from core.logger import logger
from core.security import generate_otp_code, hash_otp, otp_matches
from models.otp_token import OTP_TYPES, OtpToken


def create_otp(
    db: Session,
    *,
    email: str,
    token_type: str,
    user_id: Optional[int] = None,
    phone_number: Optional[str] = None,
    max_attempts: Optional[int] = None,
    expires_in: Optional[timedelta] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    device_id: Optional[str] = None,
    code: Optional[str] = None,
) -> tuple[OtpToken, str]:
    """
    Issue a one-time code.  *user_id* may be None for flows that run before
    the account exists.  Returns ``(row, plaintext_code)``.
    """
    if token_type not in OTP_TYPES:
        raise ValueError(f"token_type must be one of {', '.join(OTP_TYPES)}")
    if max_attempts is None:
        max_attempts = settings.otp_max_attempts
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    code = code or generate_otp_code()
    otp = OtpToken(
        user_id=user_id,
        email=email,
        phone_number=phone_number,
        otp_hash=hash_otp(code),
        token_type=token_type,
        attempts=0,
        max_attempts=max_attempts,
        ip_address=ip_address,
        user_agent=user_agent,
        device_id=device_id,
        expires_at=audit.utcnow() + (expires_in or timedelta(minutes=settings.otp_expire_minutes)),
    )
    db.add(otp)
    db.commit()
    db.refresh(otp)
    logger.info("OTP created | id=%s type=%s user=%s", otp.id, token_type, user_id)
    return otp, code


def get_otp(db: Session, otp_id: int) -> OtpToken:
    otp = db.query(OtpToken).filter(OtpToken.id == otp_id).first()
    if not otp:
        raise NotFound("OTP not found", {"otp_id": otp_id})
    return otp


def is_otp_usable(otp: OtpToken, now: Optional[datetime] = None) -> bool:
    now = now or audit.utcnow()
    return (
        not otp.is_used
        and not otp.is_revoked
        and otp.attempts < otp.max_attempts
        and audit.as_utc(otp.expires_at) > now
    )


def find_active_otp(db: Session, email: str, token_type: str) -> Optional[OtpToken]:
    """Newest usable code for an email and purpose, if any."""
    now = audit.utcnow()
    return (
        db.query(OtpToken)
        .filter(
            OtpToken.email == email,
            OtpToken.token_type == token_type,
            OtpToken.is_used.is_(False),
            OtpToken.is_revoked.is_(False),
            OtpToken.attempts < OtpToken.max_attempts,
            OtpToken.expires_at > now,
        )
        .order_by(OtpToken.created_at.desc(), OtpToken.id.desc())
        .first()
    )


def _raise_rejection(db: Session, otp_id: int, success: bool):
    """Explain why the conditional update matched no row."""
    otp = get_otp(db, otp_id)
    if success and otp.is_used:
        raise AlreadyUsed("OTP has already been used", {"otp_id": otp_id})
    if otp.attempts >= otp.max_attempts:
        logger.warning("OTP attempts exhausted | id=%s max=%s", otp_id, otp.max_attempts)
        raise AttemptsExceeded(
            "OTP attempt limit reached",
            {"otp_id": otp_id, "attempts": otp.attempts, "max_attempts": otp.max_attempts},
        )
    if otp.is_revoked:
        raise Revoked("OTP has been revoked", {"otp_id": otp_id})
    raise Expired("OTP has expired", {"otp_id": otp_id})


def record_otp_attempt(db: Session, otp_id: int, success: bool) -> OtpToken:
    """
    Count one attempt against the code.  With ``success=True`` the same
    statement also consumes it (``is_used``, ``used_at``).

    Raises AttemptsExceeded when the increment would pass ``max_attempts``
    (``attempts`` is left unchanged), AlreadyUsed when consuming a used code,
    Revoked / Expired when consuming a dead one.
    """
    now = audit.utcnow()
    conditions = [OtpToken.id == otp_id, OtpToken.attempts < OtpToken.max_attempts]
    values = {"attempts": OtpToken.attempts + 1}
    if success:
        conditions += [
            OtpToken.is_used.is_(False),
            OtpToken.is_revoked.is_(False),
            OtpToken.expires_at > now,
        ]
        values.update(is_used=True, used_at=now)

    result = db.execute(
        update(OtpToken)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        _raise_rejection(db, otp_id, success)

    db.commit()
    otp = get_otp(db, otp_id)
    if success:
        logger.info("OTP consumed | id=%s", otp_id)
    return otp


def verify_otp(db: Session, otp_id: int, code: str) -> bool:
    """
    Check *code* against the stored hash and record the attempt.  Returns
    True when the code matched (and is now consumed), False on a wrong code.
    Dead codes raise before the comparison.
    """
    otp = get_otp(db, otp_id)
    if otp.is_used:
        raise AlreadyUsed("OTP has already been used", {"otp_id": otp_id})
    if otp.is_revoked:
        raise Revoked("OTP has been revoked", {"otp_id": otp_id})
    if audit.as_utc(otp.expires_at) <= audit.utcnow():
        raise Expired("OTP has expired", {"otp_id": otp_id})

    matched = otp_matches(code, otp.otp_hash)
    record_otp_attempt(db, otp_id, success=matched)
    return matched


def revoke_otp(db: Session, otp_id: int) -> OtpToken:
    otp = get_otp(db, otp_id)
    if not otp.is_revoked:
        otp.is_revoked = True
        db.commit()
        db.refresh(otp)
    return otp


def revoke_pending_otps(db: Session, email: str, token_type: str) -> int:
    """Revoke every unused code for an email and purpose (e.g. before re-sending)."""
    result = db.execute(
        update(OtpToken)
        .where(
            OtpToken.email == email,
            OtpToken.token_type == token_type,
            OtpToken.is_used.is_(False),
            OtpToken.is_revoked.is_(False),
        )
        .values(is_revoked=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount

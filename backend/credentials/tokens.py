# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Credential store – issued tokens (``user_tokens``).

Invariants
----------
* Only the SHA-256 of a token is stored; the raw value is returned once, by
  ``issue_token``, and never again.
* ``token_hash`` is unique across every user and type.  A colliding insert
  raises ``DuplicateToken`` and leaves the existing row untouched.
* A token is valid iff it is not revoked and ``expires_at`` is in the future.
* Revocation is one-way.  The lifecycle policy rejects any attempt to clear
  ``is_revoked`` with ``Revoked``.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from core import audit
from core.config import settings
from core.errors import DuplicateToken, Expired, NotFound, Revoked
from core.logger import logger
from core.security import generate_token, hash_token
from database import commit_or_raise
from models.user_token import TOKEN_TYPES, UserToken
from users.service import get_user

# Lifetime applied when the caller does not pass one
DEFAULT_LIFETIMES = {
    "ACCESS": timedelta(minutes=settings.access_token_expire_minutes),
    "REFRESH": timedelta(days=30),
    "API": timedelta(days=365),
    "RESET_PASSWORD": timedelta(hours=1),
    "EMAIL_VERIFICATION": timedelta(days=1),
}


def _duplicate() -> DuplicateToken:
    # Never echo the hash back: it is as good as the token for lookups
    return DuplicateToken("Token hash already exists", {"field": "token_hash"})


def store_token_hash(
    db: Session,
    *,
    user_id: int,
    token_hash: str,
    token_type: str = "ACCESS",
    expires_at: Optional[datetime] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    device_info: Optional[dict[str, Any]] = None,
) -> UserToken:
    """Persist an already-hashed token for *user_id*."""
    if token_type not in TOKEN_TYPES:
        raise ValueError(f"token_type must be one of {', '.join(TOKEN_TYPES)}")

    get_user(db, user_id)

    if db.query(UserToken.id).filter(UserToken.token_hash == token_hash).first():
        raise _duplicate()

    if expires_at is None:
        expires_at = audit.utcnow() + DEFAULT_LIFETIMES[token_type]

    token = UserToken(
        user_id=user_id,
        token_type=token_type,
        token_hash=token_hash,
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
        device_info=device_info,
    )
    db.add(token)
    commit_or_raise(db, _duplicate())
    db.refresh(token)
    return token


def issue_token(
    db: Session,
    *,
    user_id: int,
    token_type: str = "ACCESS",
    expires_in: Optional[timedelta] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    device_info: Optional[dict[str, Any]] = None,
) -> tuple[UserToken, str]:
    """
    Generate a random token for *user_id* and store its hash.

    Returns ``(row, raw_token)``.  The raw token must be handed to the client
    now; it cannot be recovered later.
    """
    raw = generate_token()
    expires_at = audit.utcnow() + expires_in if expires_in is not None else None
    token = store_token_hash(
        db,
        user_id=user_id,
        token_hash=hash_token(raw),
        token_type=token_type,
        expires_at=expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
        device_info=device_info,
    )
    logger.info("Token issued | user=%s type=%s id=%s", user_id, token_type, token.id)
    return token, raw


def find_token(db: Session, raw: str) -> Optional[UserToken]:
    """Look a presented raw token up by its hash."""
    return db.query(UserToken).filter(UserToken.token_hash == hash_token(raw)).first()


def get_token(db: Session, token_id: int) -> UserToken:
    token = db.query(UserToken).filter(UserToken.id == token_id).first()
    if not token:
        raise NotFound("Token not found", {"token_id": token_id})
    return token


def is_token_valid(token: UserToken, now: Optional[datetime] = None) -> bool:
    now = now or audit.utcnow()
    return not token.is_revoked and audit.as_utc(token.expires_at) > now


def check_token(token: UserToken) -> UserToken:
    """Like ``is_token_valid`` but says why: raises Revoked or Expired."""
    if token.is_revoked:
        raise Revoked("Token has been revoked", {"token_id": token.id})
    if audit.as_utc(token.expires_at) <= audit.utcnow():
        raise Expired("Token has expired", {"token_id": token.id})
    return token


def revoke_token(db: Session, token_id: int) -> UserToken:
    """Revoke one token.  Revoking twice is harmless."""
    token = get_token(db, token_id)
    if not token.is_revoked:
        token.is_revoked = True
        db.commit()
        db.refresh(token)
        logger.info("Token revoked | id=%s user=%s", token.id, token.user_id)
    return token


def revoke_user_tokens(db: Session, user_id: int, commit: bool = True) -> int:
    """Revoke every live token of a user in one statement.  Returns the count."""
    result = db.execute(
        update(UserToken)
        .where(UserToken.user_id == user_id, UserToken.is_revoked.is_(False))
        .values(is_revoked=True)
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.commit()
    return result.rowcount


def list_user_tokens(db: Session, user_id: int, only_valid: bool = False) -> list[UserToken]:
    q = db.query(UserToken).filter(UserToken.user_id == user_id)
    if only_valid:
        q = q.filter(UserToken.is_revoked.is_(False), UserToken.expires_at > audit.utcnow())
    return q.order_by(UserToken.created_at.desc(), UserToken.id.desc()).all()

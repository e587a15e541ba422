# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Identity store – user account lifecycle.

Accounts are soft-deleted in the normal flow: the row stays, its email stays
reserved, and ``is_deleted``/``deleted_at`` are maintained by the lifecycle
policy in ``core.audit``.  ``purge_user`` is the only physical delete and
relies on the storage-level cascades (tokens and role links removed, OTP
rows unlinked, audit references nulled).
"""

from typing import Optional

from sqlalchemy.orm import Session

from core.errors import DuplicateKey, NotFound
from core.logger import logger
from core.security import hash_password
from database import commit_or_raise
from models.user import GENDERS, User

# Columns a caller may change through update_user.  email and password have
# dedicated handling below; flags like is_admin are deliberately absent.
_UPDATABLE = {
    "name",
    "phone_number",
    "avatar_url",
    "date_of_birth",
    "gender",
    "is_active",
    "phone_verified",
}


def _duplicate_email(email: str) -> DuplicateKey:
    return DuplicateKey("Email already exists", {"field": "email", "value": email})


def get_user(db: Session, user_id: int, include_deleted: bool = False) -> User:
    """Load a user by id.  Soft-deleted accounts count as missing unless asked for."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user or (user.is_deleted and not include_deleted):
        raise NotFound("User not found", {"user_id": user_id})
    return user


def list_users(db: Session, include_deleted: bool = False) -> list[User]:
    q = db.query(User)
    if not include_deleted:
        q = q.filter(User.is_deleted.is_(False))
    return q.order_by(User.id).all()


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    name: Optional[str] = None,
    phone_number: Optional[str] = None,
    avatar_url: Optional[str] = None,
    date_of_birth=None,
    gender: Optional[str] = None,
    is_admin: bool = False,
    creator_id: Optional[int] = None,
) -> User:
    """
    Register an account.  Email comparison is exact (case-sensitive) and
    includes soft-deleted accounts, whose addresses stay reserved.
    """
    if gender is not None and gender not in GENDERS:
        raise ValueError(f"gender must be one of {', '.join(GENDERS)}")

    if db.query(User).filter(User.email == email).first():
        raise _duplicate_email(email)

    user = User(
        email=email,
        password=hash_password(password),
        phone_number=phone_number,
        avatar_url=avatar_url,
        date_of_birth=date_of_birth,
        gender=gender,
        is_admin=is_admin,
        creator_id=creator_id,
        modifier_id=creator_id,
    )
    if name:
        user.name = name
    db.add(user)
    commit_or_raise(db, _duplicate_email(email))
    db.refresh(user)
    logger.info("User created | id=%s creator=%s", user.id, creator_id)
    return user


def update_user(
    db: Session,
    user_id: int,
    *,
    modifier_id: Optional[int] = None,
    **changes,
) -> User:
    """
    Apply a partial update.  ``email`` is re-checked for uniqueness and
    ``password`` is re-hashed; unknown keys raise ValueError.
    """
    user = get_user(db, user_id)

    unknown = set(changes) - _UPDATABLE - {"email", "password"}
    if unknown:
        raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    gender = changes.get("gender")
    if gender is not None and gender not in GENDERS:
        raise ValueError(f"gender must be one of {', '.join(GENDERS)}")

    email = changes.pop("email", None)
    if email is not None and email != user.email:
        clash = db.query(User).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise _duplicate_email(email)
        user.email = email

    password = changes.pop("password", None)
    if password:
        user.password = hash_password(password)

    for key, value in changes.items():
        setattr(user, key, value)
    if modifier_id is not None:
        user.modifier_id = modifier_id

    commit_or_raise(db, _duplicate_email(email or user.email))
    db.refresh(user)
    return user


def verify_email(db: Session, user_id: int) -> User:
    """
    Mark the email as verified.  The first false → true transition also
    stamps ``last_login_at`` (lifecycle policy); repeating it changes nothing.
    """
    user = get_user(db, user_id)
    if not user.email_verified:
        user.email_verified = True
        db.commit()
        db.refresh(user)
        logger.info("Email verified | user=%s", user.id)
    return user


def soft_delete_user(db: Session, user_id: int, modifier_id: Optional[int] = None) -> User:
    """
    Flag the account as deleted and revoke every token it still holds.  The
    row and its history are kept.
    """
    # Lazy import: credentials.tokens imports this module for get_user
    from credentials.tokens import revoke_user_tokens

    user = get_user(db, user_id)
    user.is_deleted = True
    if modifier_id is not None:
        user.modifier_id = modifier_id
    revoked = revoke_user_tokens(db, user.id, commit=False)
    db.commit()
    db.refresh(user)
    logger.info("User soft-deleted | id=%s by=%s tokens_revoked=%d", user.id, modifier_id, revoked)
    return user


def restore_user(db: Session, user_id: int, modifier_id: Optional[int] = None) -> User:
    """Undo a soft delete.  Revoked tokens stay revoked."""
    user = get_user(db, user_id, include_deleted=True)
    if user.is_deleted:
        user.is_deleted = False
        if modifier_id is not None:
            user.modifier_id = modifier_id
        db.commit()
        db.refresh(user)
        logger.info("User restored | id=%s by=%s", user.id, modifier_id)
    return user


def purge_user(db: Session, user_id: int) -> None:
    """Physically remove an account (administrative clean-up only)."""
    user = get_user(db, user_id, include_deleted=True)
    db.delete(user)
    db.commit()
    # Rows removed or nulled by ON DELETE rules are stale in the identity map
    db.expire_all()
    logger.warning("User purged | id=%s", user_id)

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Central security module.  All hashing primitives and auth guards live here.
No other module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing                         (passlib pbkdf2_sha256)
2. Opaque token / OTP generation + hashing  (secrets, SHA-256, HMAC-SHA256)
3. FastAPI dependency guards                (get_current_token,
                                             get_current_user,
                                             require_permission)
"""

import hashlib
import hmac
import secrets

from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import settings
from core.errors import PermissionDenied
from database import get_db

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------
# Only the hash is stored in users.password.  Verifying a login is not this
# service's job; the hash format is what other components rely on.
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Hash a plaintext password with PBKDF2-SHA256 (salt embedded in the hash)."""
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


# ---------------------------------------------------------------------------
# 2.  Tokens and one-time codes
# ---------------------------------------------------------------------------


def generate_token() -> str:
    """Return a fresh opaque bearer token (256 bits, URL-safe)."""
    return secrets.token_urlsafe(32)


def hash_token(raw: str) -> str:
    """
    SHA-256 hex digest of a raw token.  Tokens carry 256 bits of entropy, so
    an unsalted digest is enough and keeps the lookup an index hit on
    user_tokens.token_hash.
    """
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def generate_otp_code(length: int = 6) -> str:
    """Numeric one-time code, zero padded."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def hash_otp(code: str) -> str:
    """
    HMAC-SHA256 of an OTP keyed with SECRET_KEY.  Six digits are trivially
    brute-forced offline, so a plain digest would not protect a leaked table.
    """
    return hmac.new(
        settings.secret_key.encode("utf-8"), code.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def otp_matches(code: str, otp_hash: str) -> bool:
    """Constant-time comparison of a submitted code against a stored hash."""
    return hmac.compare_digest(hash_otp(code), otp_hash)


# ---------------------------------------------------------------------------
# 3.  FastAPI dependency guards
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db=Depends(get_db),
):
    """
    Dependency: hash the presented bearer token and load its user_tokens row.
    Returns the UserToken ORM instance.

    Raises 401 if the token is unknown, revoked or expired.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Lazy import to avoid circular dependency at module load time
    from credentials.tokens import find_token, is_token_valid  # noqa: E402

    token = find_token(db, credentials.credentials)
    if token is None or not is_token_valid(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid, revoked or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def get_current_user(token=Depends(get_current_token), db=Depends(get_db)):
    """
    Dependency: the owner of the presented token, provided the account is
    active and not soft-deleted.  Returns the User ORM instance.
    """
    from models.user import User  # noqa: E402

    user = db.query(User).filter(User.id == token.user_id).first()
    if not user or not user.is_active or user.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def require_permission(code: str):
    """
    Dependency factory: ``Depends(require_permission("USER_VIEW"))`` resolves
    to the current user when their effective permissions contain *code*,
    otherwise raises 403.
    """

    def _guard(current_user=Depends(get_current_user), db=Depends(get_db)):
        from rbac.service import has_permission  # noqa: E402

        if not has_permission(db, current_user.id, code):
            raise PermissionDenied(f"Permission {code} required", {"permission": code})
        return current_user

    return _guard


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"

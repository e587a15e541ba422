# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Domain errors raised by the stores and the lifecycle policy.

Every error is a recoverable, caller-facing condition.  Each carries the HTTP
status and machine-readable code that ``main.py`` uses to build the JSON
error envelope, so the service layer never imports FastAPI.
"""

from typing import Any, Optional


class AccountsError(Exception):
    status_code = 400
    code = "ACCOUNTS_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> dict[str, Any]:
        body = {"status": "error", "code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class DuplicateKey(AccountsError):
    """A unique constraint would be violated (email, codes, junction pair …)."""

    status_code = 409
    code = "DUPLICATE_KEY"


class DuplicateToken(DuplicateKey):
    code = "DUPLICATE_TOKEN"


class NotFound(AccountsError):
    status_code = 404
    code = "NOT_FOUND"


class AttemptsExceeded(AccountsError):
    status_code = 429
    code = "ATTEMPTS_EXCEEDED"


class AlreadyUsed(AccountsError):
    status_code = 409
    code = "ALREADY_USED"


class Expired(AccountsError):
    status_code = 410
    code = "EXPIRED"


class Revoked(AccountsError):
    status_code = 401
    code = "REVOKED"


class SystemRoleProtected(AccountsError):
    """System roles and permissions are part of the seed and cannot be removed."""

    status_code = 403
    code = "SYSTEM_PROTECTED"


class PermissionDenied(AccountsError):
    status_code = 403
    code = "PERMISSION_DENIED"


class InUse(AccountsError):
    """The row is still referenced by history that must not be removed."""

    status_code = 409
    code = "IN_USE"

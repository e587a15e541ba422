# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Token endpoints – inspect and revoke issued tokens.

Issuing tokens (login) is handled elsewhere; this router only manages rows
that already exist.  A user may list and revoke their own tokens; revoking
someone else's needs USER_UPDATE.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.errors import NotFound
from core.logger import logger
from core.security import get_current_token, get_current_user
from credentials import tokens
from credentials.schemas import TokenListResponse, TokenRow
from database import get_db
from models.user import User
from models.user_token import UserToken
from rbac.service import has_permission

router = APIRouter(prefix="/v1/tokens", tags=["tokens"])


# ---------------------------------------------------------------------------
# GET /v1/tokens  – the caller's tokens
# ---------------------------------------------------------------------------


@router.get("", response_model=TokenListResponse)
def list_tokens(
    only_valid: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return TokenListResponse(tokens=tokens.list_user_tokens(db, current_user.id, only_valid=only_valid))


# ---------------------------------------------------------------------------
# POST /v1/tokens/logout  – revoke the presented token
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=TokenRow)
def logout(
    token: UserToken = Depends(get_current_token),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return tokens.revoke_token(db, token.id)


# ---------------------------------------------------------------------------
# POST /v1/tokens/{id}/revoke
# ---------------------------------------------------------------------------


@router.post("/{token_id}/revoke", response_model=TokenRow)
def revoke_token(
    token_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    token = tokens.get_token(db, token_id)
    if token.user_id != current_user.id:
        if not has_permission(db, current_user.id, "USER_UPDATE"):
            # Do not confirm that another user's token id exists
            logger.warning("Token revoke refused | token=%s by=%s", token_id, current_user.id)
            raise NotFound("Token not found", {"token_id": token_id})
    return tokens.revoke_token(db, token_id)

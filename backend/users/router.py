# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
User endpoints – account CRUD over the identity store.

Management routes are guarded by ``require_permission`` with the USER_*
permission matching the action.  ``/v1/users/profile`` only needs a valid
token and always acts on the caller's own account.

Domain errors (NotFound, DuplicateKey …) propagate to the handler in
``main.py``; only request-shape problems are turned into HTTPException here.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from core.security import get_current_user, require_permission
from database import get_db
from models.user import User
from rbac.service import effective_permissions
from users import service
from users.schemas import (
    CreateUserRequest,
    EffectivePermissionsResponse,
    UpdateProfileRequest,
    UpdateUserRequest,
    UserListResponse,
    UserRow,
)

router = APIRouter(prefix="/v1/users", tags=["users"])

# Columns that reject NULL; an explicit null in a PATCH body means "leave as is"
_NOT_NULL = {"email", "password", "name", "is_active", "phone_verified"}


def _changes(body) -> dict:
    return {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k not in _NOT_NULL
    }


# ---------------------------------------------------------------------------
# /v1/users/profile  – the caller's own account
# ---------------------------------------------------------------------------
# Declared before /{user_id} so "profile" is not parsed as an id.


@router.get("/profile", response_model=UserRow)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/profile", response_model=UserRow)
def update_profile(
    body: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    changes = _changes(body)
    return service.update_user(db, current_user.id, modifier_id=current_user.id, **changes)


# ---------------------------------------------------------------------------
# GET /v1/users  – list accounts
# ---------------------------------------------------------------------------


@router.get("", response_model=UserListResponse)
def list_users(
    include_deleted: bool = Query(False),
    _: User = Depends(require_permission("USER_VIEW")),
    db: Session = Depends(get_db),
):
    return UserListResponse(users=service.list_users(db, include_deleted=include_deleted))


# ---------------------------------------------------------------------------
# POST /v1/users  – create an account
# ---------------------------------------------------------------------------


@router.post("", response_model=UserRow, status_code=status.HTTP_201_CREATED)
def create_user(
    body: CreateUserRequest,
    actor: User = Depends(require_permission("USER_CREATE")),
    db: Session = Depends(get_db),
):
    return service.create_user(db, creator_id=actor.id, **body.model_dump())


# ---------------------------------------------------------------------------
# GET / PATCH / DELETE /v1/users/{id}
# ---------------------------------------------------------------------------


@router.get("/{user_id}", response_model=UserRow)
def get_user(
    user_id: int,
    _: User = Depends(require_permission("USER_VIEW")),
    db: Session = Depends(get_db),
):
    return service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserRow)
def update_user(
    user_id: int,
    body: UpdateUserRequest,
    actor: User = Depends(require_permission("USER_UPDATE")),
    db: Session = Depends(get_db),
):
    changes = _changes(body)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")
    return service.update_user(db, user_id, modifier_id=actor.id, **changes)


@router.delete("/{user_id}", response_model=UserRow)
def delete_user(
    user_id: int,
    actor: User = Depends(require_permission("USER_DELETE")),
    db: Session = Depends(get_db),
):
    """Soft delete: the row is kept, flagged, and its tokens are revoked."""
    if user_id == actor.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")
    return service.soft_delete_user(db, user_id, modifier_id=actor.id)


# ---------------------------------------------------------------------------
# POST /v1/users/{id}/verify-email
# ---------------------------------------------------------------------------


@router.post("/{user_id}/verify-email", response_model=UserRow)
def verify_email(
    user_id: int,
    _: User = Depends(require_permission("USER_UPDATE")),
    db: Session = Depends(get_db),
):
    return service.verify_email(db, user_id)


# ---------------------------------------------------------------------------
# GET /v1/users/{id}/permissions  – effective permission set
# ---------------------------------------------------------------------------


@router.get("/{user_id}/permissions", response_model=EffectivePermissionsResponse)
def user_permissions(
    user_id: int,
    _: User = Depends(require_permission("USER_VIEW")),
    db: Session = Depends(get_db),
):
    codes = effective_permissions(db, user_id)
    return EffectivePermissionsResponse(user_id=user_id, permissions=sorted(codes))

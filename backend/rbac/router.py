# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Role / permission endpoints.

Reads need USER_VIEW; every write needs USER_UPDATE (there is no separate
RBAC-admin permission in the seed).  System roles and permissions cannot be
deleted: the service raises SystemRoleProtected, rendered as 403.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.security import require_permission
from database import get_db
from models.user import User
from rbac import service
from rbac.schemas import (
    CreatePermissionRequest,
    CreateRoleRequest,
    PermissionListResponse,
    PermissionRow,
    RoleCodesResponse,
    RoleListResponse,
    RolePermissionRow,
    RoleRow,
    UserRoleRow,
)

router = APIRouter(prefix="/v1", tags=["rbac"])

_can_view = require_permission("USER_VIEW")
_can_manage = require_permission("USER_UPDATE")


# ---------------------------------------------------------------------------
# /v1/roles
# ---------------------------------------------------------------------------


@router.get("/roles", response_model=RoleListResponse)
def list_roles(
    include_deleted: bool = Query(False),
    _: User = Depends(_can_view),
    db: Session = Depends(get_db),
):
    return RoleListResponse(roles=service.list_roles(db, include_deleted=include_deleted))


@router.post("/roles", response_model=RoleRow, status_code=status.HTTP_201_CREATED)
def create_role(
    body: CreateRoleRequest,
    actor: User = Depends(_can_manage),
    db: Session = Depends(get_db),
):
    return service.create_role(db, creator_id=actor.id, **body.model_dump())


@router.delete("/roles/{role_id}", response_model=RoleRow)
def delete_role(
    role_id: int,
    actor: User = Depends(_can_manage),
    db: Session = Depends(get_db),
):
    return service.soft_delete_role(db, role_id, modifier_id=actor.id)


@router.get("/roles/{role_id}/permissions", response_model=RoleCodesResponse)
def role_permissions(
    role_id: int,
    _: User = Depends(_can_view),
    db: Session = Depends(get_db),
):
    service.get_role(db, role_id)
    return RoleCodesResponse(role_id=role_id, permissions=sorted(service.role_permission_codes(db, role_id)))


@router.put("/roles/{role_id}/permissions/{permission_id}", response_model=RolePermissionRow)
def grant_permission(
    role_id: int,
    permission_id: int,
    _: User = Depends(_can_manage),
    db: Session = Depends(get_db),
):
    return service.grant_permission(db, role_id, permission_id)


@router.delete("/roles/{role_id}/permissions/{permission_id}", response_model=RolePermissionRow)
def revoke_permission(
    role_id: int,
    permission_id: int,
    _: User = Depends(_can_manage),
    db: Session = Depends(get_db),
):
    """The grant row is kept with is_deleted=true and returned."""
    return service.revoke_permission(db, role_id, permission_id)


# ---------------------------------------------------------------------------
# /v1/permissions
# ---------------------------------------------------------------------------


@router.get("/permissions", response_model=PermissionListResponse)
def list_permissions(
    module: Optional[str] = Query(None),
    _: User = Depends(_can_view),
    db: Session = Depends(get_db),
):
    return PermissionListResponse(permissions=service.list_permissions(db, module=module))


@router.post("/permissions", response_model=PermissionRow, status_code=status.HTTP_201_CREATED)
def create_permission(
    body: CreatePermissionRequest,
    actor: User = Depends(_can_manage),
    db: Session = Depends(get_db),
):
    return service.create_permission(db, creator_id=actor.id, **body.model_dump())


@router.delete("/permissions/{permission_id}", response_model=PermissionRow)
def delete_permission(
    permission_id: int,
    actor: User = Depends(_can_manage),
    db: Session = Depends(get_db),
):
    return service.soft_delete_permission(db, permission_id, modifier_id=actor.id)


# ---------------------------------------------------------------------------
# /v1/users/{id}/roles  – role assignment
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/roles", response_model=RoleListResponse)
def user_roles(
    user_id: int,
    _: User = Depends(_can_view),
    db: Session = Depends(get_db),
):
    return RoleListResponse(roles=service.user_roles(db, user_id))


@router.put("/users/{user_id}/roles/{role_id}", response_model=UserRoleRow)
def assign_role(
    user_id: int,
    role_id: int,
    _: User = Depends(_can_manage),
    db: Session = Depends(get_db),
):
    return service.assign_role(db, user_id, role_id)


@router.delete("/users/{user_id}/roles/{role_id}", response_model=UserRoleRow)
def unassign_role(
    user_id: int,
    role_id: int,
    _: User = Depends(_can_manage),
    db: Session = Depends(get_db),
):
    return service.unassign_role(db, user_id, role_id)

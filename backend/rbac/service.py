# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Authorization model – roles, permissions and the two junctions.

Resolution
----------
A user holds permission *P* iff there is an unbroken path

    user_roles → roles → role_permissions → permissions

where every hop is active and not soft-deleted.  One inactive or deleted link
drops the whole path; a permission reached through two roles is reported once.
The path is resolved by a single join in the database (``effective_permissions``).

The ``roles.permissions`` JSON blob is a legacy flag field and is never
consulted here.
"""

from typing import Any, Optional

from sqlalchemy.orm import Session

from core.errors import DuplicateKey, InUse, NotFound, SystemRoleProtected
from core.logger import logger
from database import commit_or_raise
from models.permission import Permission
from models.role import Role
from models.role_permission import RolePermission
from models.user import User
from models.user_role import UserRole
from users.service import get_user

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


def get_role(db: Session, role_id: int, include_deleted: bool = False) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role or (role.is_deleted and not include_deleted):
        raise NotFound("Role not found", {"role_id": role_id})
    return role


def get_role_by_code(db: Session, role_code: str) -> Role:
    role = db.query(Role).filter(Role.role_code == role_code, Role.is_deleted.is_(False)).first()
    if not role:
        raise NotFound("Role not found", {"role_code": role_code})
    return role


def list_roles(db: Session, include_deleted: bool = False) -> list[Role]:
    q = db.query(Role)
    if not include_deleted:
        q = q.filter(Role.is_deleted.is_(False))
    return q.order_by(Role.id).all()


def create_role(
    db: Session,
    *,
    role_name: str,
    role_code: str,
    description: Optional[str] = None,
    permissions: Optional[dict[str, Any]] = None,
    is_system: bool = False,
    creator_id: Optional[int] = None,
) -> Role:
    clash = db.query(Role).filter((Role.role_name == role_name) | (Role.role_code == role_code)).first()
    if clash:
        field = "role_code" if clash.role_code == role_code else "role_name"
        raise DuplicateKey("Role already exists", {"field": field})

    role = Role(
        role_name=role_name,
        role_code=role_code,
        description=description,
        permissions=permissions or {},
        is_system=is_system,
        creator_id=creator_id,
        modifier_id=creator_id,
    )
    db.add(role)
    commit_or_raise(db, DuplicateKey("Role already exists", {"field": "role_code"}))
    db.refresh(role)
    logger.info("Role created | code=%s id=%s", role.role_code, role.id)
    return role


def soft_delete_role(db: Session, role_id: int, modifier_id: Optional[int] = None) -> Role:
    """Retire a role.  Users holding it lose its grants immediately."""
    role = get_role(db, role_id)
    if role.is_system:
        raise SystemRoleProtected("System roles cannot be deleted", {"role_code": role.role_code})
    role.is_deleted = True
    role.modifier_id = modifier_id
    db.commit()
    db.refresh(role)
    logger.info("Role soft-deleted | code=%s by=%s", role.role_code, modifier_id)
    return role


def purge_role(db: Session, role_id: int) -> None:
    """
    Physically remove a non-system role.  Its user_roles rows go with it
    through ON DELETE CASCADE.  A role that has ever granted a permission
    keeps its role_permissions history and cannot be purged (InUse); soft
    delete it instead.
    """
    role = get_role(db, role_id, include_deleted=True)
    if role.is_system:
        raise SystemRoleProtected("System roles cannot be deleted", {"role_code": role.role_code})
    db.delete(role)
    try:
        db.commit()
    except InUse:
        db.rollback()
        raise
    db.expire_all()
    logger.warning("Role purged | id=%s", role_id)


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


def get_permission(db: Session, permission_id: int, include_deleted: bool = False) -> Permission:
    perm = db.query(Permission).filter(Permission.id == permission_id).first()
    if not perm or (perm.is_deleted and not include_deleted):
        raise NotFound("Permission not found", {"permission_id": permission_id})
    return perm


def list_permissions(db: Session, module: Optional[str] = None) -> list[Permission]:
    q = db.query(Permission).filter(Permission.is_deleted.is_(False))
    if module:
        q = q.filter(Permission.module == module)
    return q.order_by(Permission.id).all()


def create_permission(
    db: Session,
    *,
    permission_name: str,
    permission_code: str,
    description: Optional[str] = None,
    module: Optional[str] = None,
    action: Optional[str] = None,
    resource: Optional[str] = None,
    is_system: bool = False,
    creator_id: Optional[int] = None,
) -> Permission:
    clash = (
        db.query(Permission)
        .filter(
            (Permission.permission_name == permission_name)
            | (Permission.permission_code == permission_code)
        )
        .first()
    )
    if clash:
        field = "permission_code" if clash.permission_code == permission_code else "permission_name"
        raise DuplicateKey("Permission already exists", {"field": field})

    perm = Permission(
        permission_name=permission_name,
        permission_code=permission_code,
        description=description,
        module=module,
        action=action,
        resource=resource,
        is_system=is_system,
        creator_id=creator_id,
        modifier_id=creator_id,
    )
    db.add(perm)
    commit_or_raise(db, DuplicateKey("Permission already exists", {"field": "permission_code"}))
    db.refresh(perm)
    logger.info("Permission created | code=%s id=%s", perm.permission_code, perm.id)
    return perm


def soft_delete_permission(db: Session, permission_id: int, modifier_id: Optional[int] = None) -> Permission:
    perm = get_permission(db, permission_id)
    if perm.is_system:
        raise SystemRoleProtected(
            "System permissions cannot be deleted", {"permission_code": perm.permission_code}
        )
    perm.is_deleted = True
    perm.modifier_id = modifier_id
    db.commit()
    db.refresh(perm)
    logger.info("Permission soft-deleted | code=%s by=%s", perm.permission_code, modifier_id)
    return perm


def purge_permission(db: Session, permission_id: int) -> None:
    """Physically remove a non-system permission that was never granted."""
    perm = get_permission(db, permission_id, include_deleted=True)
    if perm.is_system:
        raise SystemRoleProtected(
            "System permissions cannot be deleted", {"permission_code": perm.permission_code}
        )
    db.delete(perm)
    try:
        db.commit()
    except InUse:
        db.rollback()
        raise
    db.expire_all()
    logger.warning("Permission purged | id=%s", permission_id)


# ---------------------------------------------------------------------------
# role ↔ permission
# ---------------------------------------------------------------------------


def grant_permission(db: Session, role_id: int, permission_id: int) -> RolePermission:
    """
    Link a permission to a role.  A previously revoked (soft-deleted) grant
    is revived in place; an existing live grant raises DuplicateKey.
    """
    get_role(db, role_id)
    get_permission(db, permission_id)

    link = (
        db.query(RolePermission)
        .filter(RolePermission.role_id == role_id, RolePermission.permission_id == permission_id)
        .first()
    )
    if link and not link.is_deleted and link.is_active:
        raise DuplicateKey(
            "Permission already granted to role",
            {"role_id": role_id, "permission_id": permission_id},
        )
    if link:
        link.is_deleted = False
        link.is_active = True
    else:
        link = RolePermission(role_id=role_id, permission_id=permission_id)
        db.add(link)

    commit_or_raise(
        db,
        DuplicateKey("Permission already granted to role", {"role_id": role_id, "permission_id": permission_id}),
    )
    db.refresh(link)
    logger.info("Permission granted | role=%s permission=%s", role_id, permission_id)
    return link


def revoke_permission(db: Session, role_id: int, permission_id: int) -> RolePermission:
    """
    Remove a grant.  The delete is converted into a soft delete by the
    lifecycle policy, so the returned row still exists with ``is_deleted``.
    """
    link = (
        db.query(RolePermission)
        .filter(
            RolePermission.role_id == role_id,
            RolePermission.permission_id == permission_id,
            RolePermission.is_deleted.is_(False),
        )
        .first()
    )
    if not link:
        raise NotFound("Grant not found", {"role_id": role_id, "permission_id": permission_id})

    db.delete(link)
    db.commit()
    db.refresh(link)
    logger.info("Permission revoked | role=%s permission=%s", role_id, permission_id)
    return link


def role_permission_codes(db: Session, role_id: int) -> set[str]:
    """Live permission codes granted directly by one role."""
    rows = (
        db.query(Permission.permission_code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(
            RolePermission.role_id == role_id,
            RolePermission.is_active.is_(True),
            RolePermission.is_deleted.is_(False),
            Permission.is_active.is_(True),
            Permission.is_deleted.is_(False),
        )
        .all()
    )
    return {code for (code,) in rows}


# ---------------------------------------------------------------------------
# user ↔ role
# ---------------------------------------------------------------------------


def assign_role(db: Session, user_id: int, role_id: int) -> UserRole:
    """Give a user a role, reviving a soft-deleted assignment if one exists."""
    get_user(db, user_id)
    get_role(db, role_id)

    link = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
        .first()
    )
    if link and not link.is_deleted and link.is_active:
        raise DuplicateKey("Role already assigned", {"user_id": user_id, "role_id": role_id})
    if link:
        link.is_deleted = False
        link.is_active = True
    else:
        link = UserRole(user_id=user_id, role_id=role_id)
        db.add(link)

    commit_or_raise(db, DuplicateKey("Role already assigned", {"user_id": user_id, "role_id": role_id}))
    db.refresh(link)
    logger.info("Role assigned | user=%s role=%s", user_id, role_id)
    return link


def unassign_role(db: Session, user_id: int, role_id: int) -> UserRole:
    link = (
        db.query(UserRole)
        .filter(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
            UserRole.is_deleted.is_(False),
        )
        .first()
    )
    if not link:
        raise NotFound("Role assignment not found", {"user_id": user_id, "role_id": role_id})
    link.is_deleted = True
    db.commit()
    db.refresh(link)
    logger.info("Role unassigned | user=%s role=%s", user_id, role_id)
    return link


def user_roles(db: Session, user_id: int) -> list[Role]:
    """Roles currently in effect for a user (same filters as resolution)."""
    return (
        db.query(Role)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(
            UserRole.user_id == user_id,
            UserRole.is_active.is_(True),
            UserRole.is_deleted.is_(False),
            Role.is_active.is_(True),
            Role.is_deleted.is_(False),
        )
        .order_by(Role.id)
        .all()
    )


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def effective_permissions(db: Session, user_id: int) -> set[str]:
    """
    Permission codes reachable from *user_id*.  Unknown users raise NotFound;
    disabled or soft-deleted users resolve to the empty set.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found", {"user_id": user_id})
    if not user.is_active or user.is_deleted:
        return set()

    rows = (
        db.query(Permission.permission_code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(Role, Role.id == RolePermission.role_id)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(
            UserRole.user_id == user_id,
            UserRole.is_active.is_(True),
            UserRole.is_deleted.is_(False),
            Role.is_active.is_(True),
            Role.is_deleted.is_(False),
            RolePermission.is_active.is_(True),
            RolePermission.is_deleted.is_(False),
            Permission.is_active.is_(True),
            Permission.is_deleted.is_(False),
        )
        .distinct()
        .all()
    )
    return {code for (code,) in rows}


def has_permission(db: Session, user_id: int, code: str) -> bool:
    return code in effective_permissions(db, user_id)

# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Baseline authorization data: the two system roles, the USER_* permissions
and the grants between them.

``seed_defaults`` only inserts what is missing, so it is safe to call on
every start-up, from ``bin/seed_admin.py`` and from the test fixtures.  The
same rows are written by migration ``0002_seed_rbac``.
"""

from typing import Optional

from sqlalchemy.orm import Session

from core.logger import logger
from models.permission import Permission
from models.role import Role
from models.role_permission import RolePermission
from models.user import User
from models.user_role import UserRole
from users.service import create_user

SYSTEM_ROLES = [
    {
        "role_code": "ADMIN",
        "role_name": "Administrator",
        "description": "Full access to every resource",
        "permissions": {"full_access": True},
    },
    {
        "role_code": "USER",
        "role_name": "User",
        "description": "Regular account",
        "permissions": {"view_profile": True},
    },
]

SYSTEM_PERMISSIONS = [
    {"permission_code": f"USER_{action.upper()}", "permission_name": f"{action.capitalize()} users", "action": action}
    for action in ("view", "create", "update", "delete")
]

ROLE_GRANTS = {
    "ADMIN": ["USER_VIEW", "USER_CREATE", "USER_UPDATE", "USER_DELETE"],
    "USER": ["USER_VIEW"],
}


def seed_defaults(db: Session) -> None:
    roles = {r.role_code: r for r in db.query(Role).all()}
    for row in SYSTEM_ROLES:
        if row["role_code"] not in roles:
            role = Role(is_system=True, **row)
            db.add(role)
            roles[role.role_code] = role
            logger.info("Seeded role %s", role.role_code)

    perms = {p.permission_code: p for p in db.query(Permission).all()}
    for row in SYSTEM_PERMISSIONS:
        if row["permission_code"] not in perms:
            perm = Permission(module="user", resource="profile", is_system=True, **row)
            db.add(perm)
            perms[perm.permission_code] = perm
            logger.info("Seeded permission %s", perm.permission_code)

    db.flush()

    existing = {(rp.role_id, rp.permission_id) for rp in db.query(RolePermission).all()}
    for role_code, codes in ROLE_GRANTS.items():
        role = roles[role_code]
        for code in codes:
            pair = (role.id, perms[code].id)
            if pair not in existing:
                db.add(RolePermission(role_id=role.id, permission_id=perms[code].id))

    db.commit()


def ensure_admin(db: Session, *, email: str, password: str, name: Optional[str] = None) -> User:
    """
    Create the first administrator (linked to the ADMIN role) unless an
    account with *email* already exists.  A removed or disabled ADMIN link is
    brought back.  Returns the account either way.
    """
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = create_user(db, email=email, password=password, name=name, is_admin=True)
        logger.info("First admin created | id=%s", user.id)

    admin_role = db.query(Role).filter(Role.role_code == "ADMIN").one()
    link = (
        db.query(UserRole)
        .filter(UserRole.user_id == user.id, UserRole.role_id == admin_role.id)
        .first()
    )
    if link is None:
        db.add(UserRole(user_id=user.id, role_id=admin_role.id))
        db.commit()
    elif link.is_deleted or not link.is_active:
        link.is_deleted = False
        link.is_active = True
        db.commit()
        logger.info("Admin role link restored | user=%s", user.id)
    return user

"""Seed the system roles, baseline permissions and their grants

Revision ID: 0002_seed_rbac
Revises: 0001_initial
Create Date: 2026-10-19

ADMIN gets every USER_* permission, USER gets USER_VIEW.  Both roles and all
four permissions are flagged is_system so the service refuses to delete them.
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_seed_rbac"
down_revision = "0001_initial"
branch_labels = None
depends_on = None

_ROLES = [
    ("ADMIN", "Administrator", "Full access to every resource", {"full_access": True}),
    ("USER", "User", "Regular account", {"view_profile": True}),
]
_ACTIONS = ("view", "create", "update", "delete")
_GRANTS = [("ADMIN", f"USER_{a.upper()}") for a in _ACTIONS] + [("USER", "USER_VIEW")]

# Lightweight table stubs: migrations must not import the ORM models
roles = sa.table(
    "roles",
    sa.column("id", sa.Integer),
    sa.column("role_code", sa.String),
    sa.column("role_name", sa.String),
    sa.column("description", sa.Text),
    sa.column("permissions", sa.JSON),
    sa.column("is_system", sa.Boolean),
)
permissions = sa.table(
    "permissions",
    sa.column("id", sa.Integer),
    sa.column("permission_code", sa.String),
    sa.column("permission_name", sa.String),
    sa.column("module", sa.String),
    sa.column("action", sa.String),
    sa.column("resource", sa.String),
    sa.column("is_system", sa.Boolean),
)
role_permissions = sa.table(
    "role_permissions",
    sa.column("role_id", sa.Integer),
    sa.column("permission_id", sa.Integer),
)


def upgrade() -> None:
    op.bulk_insert(
        roles,
        [
            {
                "role_code": code,
                "role_name": name,
                "description": desc,
                "permissions": flags,
                "is_system": True,
            }
            for code, name, desc, flags in _ROLES
        ],
    )
    op.bulk_insert(
        permissions,
        [
            {
                "permission_code": f"USER_{a.upper()}",
                "permission_name": f"{a.capitalize()} users",
                "module": "user",
                "action": a,
                "resource": "profile",
                "is_system": True,
            }
            for a in _ACTIONS
        ],
    )

    # Resolve ids by code so the grants do not depend on autoincrement values
    for role_code, perm_code in _GRANTS:
        op.execute(
            role_permissions.insert().from_select(
                ["role_id", "permission_id"],
                sa.select(roles.c.id, permissions.c.id).where(
                    roles.c.role_code == role_code,
                    permissions.c.permission_code == perm_code,
                ),
            )
        )


def downgrade() -> None:
    codes = [code for code, *_ in _ROLES]
    perm_codes = [f"USER_{a.upper()}" for a in _ACTIONS]
    # role_permissions rows go with their parents (ON DELETE CASCADE)
    op.execute(roles.delete().where(roles.c.role_code.in_(codes)))
    op.execute(permissions.delete().where(permissions.c.permission_code.in_(perm_codes)))

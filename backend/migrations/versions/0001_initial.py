"""Initial schema – identity, credential and RBAC tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

Creates the seven tables with their foreign keys, ON DELETE / ON UPDATE rules
and indexes.  The lifecycle rules (timestamps, soft delete, OTP attempt limit)
are applied by the application session, not by database triggers.
"""

from alembic import op
import sqlalchemy as sa

# Alembic revision identifiers
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _soft_delete():
    return [
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _audit_fields():
    return [
        sa.Column(
            "creator_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "modifier_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"),
            nullable=True,
        ),
    ]


def upgrade() -> None:
    # -- users ----------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("name", sa.String(100), nullable=False, server_default="Bạn"),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("phone_number", sa.String(15), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("gender", sa.Enum("MALE", "FEMALE", "OTHER", name="enum_users_gender"), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("phone_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_soft_delete(),
        *_audit_fields(),
        *_timestamps(),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=True)
    op.create_index("idx_users_name", "users", ["name"])
    op.create_index("idx_users_phone", "users", ["phone_number"])
    op.create_index("idx_users_active", "users", ["is_active"])
    op.create_index("idx_users_deleted", "users", ["is_deleted"])
    op.create_index("idx_users_created", "users", ["created_at"])
    op.create_index("idx_users_login_status", "users", ["email", "is_active", "is_deleted"])

    # -- user_tokens ----------------------------------------------------
    op.create_table(
        "user_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_user_tokens_user", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "token_type",
            sa.Enum(
                "ACCESS", "REFRESH", "API", "RESET_PASSWORD", "EMAIL_VERIFICATION",
                name="enum_user_tokens_token_type",
            ),
            nullable=False,
            server_default="ACCESS",
        ),
        sa.Column("token_hash", sa.String(512), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("device_info", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_user_tokens_user", "user_tokens", ["user_id"])
    op.create_index("idx_user_tokens_hash", "user_tokens", ["token_hash"], unique=True)
    op.create_index("idx_user_tokens_expires", "user_tokens", ["expires_at"])
    op.create_index("idx_user_tokens_user_type", "user_tokens", ["user_id", "token_type"])
    op.create_index("idx_user_tokens_validity", "user_tokens", ["user_id", "is_revoked", "expires_at"])

    # -- otp_tokens -----------------------------------------------------
    op.create_table(
        "otp_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", name="fk_otp_tokens_user", ondelete="SET NULL", onupdate="CASCADE"),
            nullable=True,
        ),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("phone_number", sa.String(15), nullable=True),
        sa.Column("otp_hash", sa.String(255), nullable=False),
        sa.Column(
            "token_type",
            sa.Enum(
                "REGISTRATION", "LOGIN", "EMAIL_VERIFICATION", "PHONE_VERIFICATION",
                "PASSWORD_RESET", "TRANSACTION",
                name="enum_otp_tokens_token_type",
            ),
            nullable=False,
        ),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("device_id", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_otp_verification", "otp_tokens", ["email", "token_type", "is_used", "expires_at"]
    )
    op.create_index(
        "idx_otp_phone_verification", "otp_tokens", ["phone_number", "token_type", "is_used", "expires_at"]
    )
    op.create_index("idx_otp_expires", "otp_tokens", ["expires_at"])
    op.create_index("idx_otp_user", "otp_tokens", ["user_id"])
    op.create_index("idx_otp_created", "otp_tokens", ["created_at"])
    op.create_index("idx_otp_email_created", "otp_tokens", ["email", "created_at"])

    # -- roles ----------------------------------------------------------
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("role_name", sa.String(50), nullable=False),
        sa.Column("role_code", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_soft_delete(),
        *_audit_fields(),
        *_timestamps(),
    )
    op.create_index("idx_roles_name", "roles", ["role_name"], unique=True)
    op.create_index("idx_roles_code", "roles", ["role_code"], unique=True)
    op.create_index("idx_roles_active", "roles", ["is_active"])
    op.create_index("idx_roles_deleted", "roles", ["is_deleted"])
    op.create_index("idx_roles_system", "roles", ["is_system"])

    # -- permissions ----------------------------------------------------
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("permission_name", sa.String(100), nullable=False),
        sa.Column("permission_code", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("module", sa.String(50), nullable=True),
        sa.Column("action", sa.String(50), nullable=True),
        sa.Column("resource", sa.String(50), nullable=True),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_soft_delete(),
        *_audit_fields(),
        *_timestamps(),
    )
    op.create_index("idx_permissions_name", "permissions", ["permission_name"], unique=True)
    op.create_index("idx_permissions_code", "permissions", ["permission_code"], unique=True)
    op.create_index("idx_permissions_module", "permissions", ["module"])
    op.create_index("idx_permissions_active", "permissions", ["is_active"])
    op.create_index("idx_permissions_deleted", "permissions", ["is_deleted"])
    op.create_index(
        "idx_permissions_module_action_resource", "permissions", ["module", "action", "resource"]
    )

    # -- user_roles -----------------------------------------------------
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "role_id",
            sa.Integer(),
            sa.ForeignKey("roles.id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_soft_delete(),
        *_timestamps(),
    )
    op.create_index("idx_user_roles_user", "user_roles", ["user_id"])
    op.create_index("idx_user_roles_role", "user_roles", ["role_id"])
    op.create_index("idx_user_roles_composite", "user_roles", ["user_id", "role_id"], unique=True)
    op.create_index("idx_user_roles_active", "user_roles", ["is_active"])
    op.create_index("idx_user_roles_deleted", "user_roles", ["is_deleted"])

    # -- role_permissions -----------------------------------------------
    op.create_table(
        "role_permissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "role_id",
            sa.Integer(),
            sa.ForeignKey("roles.id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "permission_id",
            sa.Integer(),
            sa.ForeignKey("permissions.id", ondelete="CASCADE", onupdate="CASCADE"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_soft_delete(),
        *_timestamps(),
    )
    op.create_index("idx_role_permissions_role", "role_permissions", ["role_id"])
    op.create_index("idx_role_permissions_perm", "role_permissions", ["permission_id"])
    op.create_index(
        "idx_role_permissions_composite", "role_permissions", ["role_id", "permission_id"], unique=True
    )
    op.create_index("idx_role_permissions_active", "role_permissions", ["is_active"])
    op.create_index("idx_role_permissions_deleted", "role_permissions", ["is_deleted"])


def downgrade() -> None:
    # Children first; dropping a table drops its indexes with it
    for table in ("role_permissions", "user_roles", "permissions", "roles", "otp_tokens", "user_tokens", "users"):
        op.drop_table(table)
    sa.Enum(name="enum_otp_tokens_token_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="enum_user_tokens_token_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="enum_users_gender").drop(op.get_bind(), checkfirst=True)

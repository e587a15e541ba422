import pytest
from sqlalchemy import delete

from core.audit import as_utc
from core.errors import DuplicateKey, InUse, NotFound, SystemRoleProtected
from models.permission import Permission
from models.role import Role
from models.role_permission import RolePermission
from models.user_role import UserRole
from rbac.seed import ensure_admin, seed_defaults
from rbac.service import (
    assign_role,
    create_permission,
    create_role,
    effective_permissions,
    get_role_by_code,
    grant_permission,
    has_permission,
    purge_permission,
    purge_role,
    revoke_permission,
    soft_delete_permission,
    soft_delete_role,
    unassign_role,
    user_roles,
)
from users.service import update_user

BASELINE = {"USER_VIEW", "USER_CREATE", "USER_UPDATE", "USER_DELETE"}


@pytest.fixture
def editor(db):
    """A custom role EDITOR granting POST_EDIT."""
    role = create_role(db, role_name="Editor", role_code="EDITOR")
    perm = create_permission(
        db, permission_name="Edit posts", permission_code="POST_EDIT", module="post", action="edit"
    )
    grant_permission(db, role.id, perm.id)
    return role, perm


def test_admin_resolves_to_the_four_baseline_permissions(db, make_user):
    admin = make_user(role_code="ADMIN")
    assert effective_permissions(db, admin.id) == BASELINE


def test_user_role_resolves_to_view_only(db, make_user):
    user = make_user(role_code="USER")
    assert effective_permissions(db, user.id) == {"USER_VIEW"}
    assert has_permission(db, user.id, "USER_VIEW")
    assert not has_permission(db, user.id, "USER_DELETE")


def test_permission_reached_through_two_roles_is_reported_once(db, make_user, editor):
    user = make_user(role_code="USER")
    role, _ = editor
    view = db.query(Permission).filter(Permission.permission_code == "USER_VIEW").one()
    grant_permission(db, role.id, view.id)
    assign_role(db, user.id, role.id)

    assert effective_permissions(db, user.id) == {"USER_VIEW", "POST_EDIT"}


def test_user_without_roles_has_nothing(db, make_user):
    assert effective_permissions(db, make_user().id) == set()


def test_unknown_user(db):
    with pytest.raises(NotFound):
        effective_permissions(db, 4242)


def test_disabled_user_has_nothing(db, make_user):
    user = make_user(role_code="ADMIN")
    update_user(db, user.id, is_active=False)
    assert effective_permissions(db, user.id) == set()


@pytest.mark.parametrize(
    "break_link",
    [
        lambda db, u, r, p: setattr(r, "is_deleted", True),
        lambda db, u, r, p: setattr(r, "is_active", False),
        lambda db, u, r, p: setattr(p, "is_deleted", True),
        lambda db, u, r, p: setattr(p, "is_active", False),
        lambda db, u, r, p: setattr(_user_role(db, u, r), "is_deleted", True),
        lambda db, u, r, p: setattr(_user_role(db, u, r), "is_active", False),
        lambda db, u, r, p: setattr(_role_permission(db, r, p), "is_active", False),
        lambda db, u, r, p: setattr(_role_permission(db, r, p), "is_deleted", True),
    ],
    ids=[
        "role-deleted",
        "role-inactive",
        "permission-deleted",
        "permission-inactive",
        "assignment-deleted",
        "assignment-inactive",
        "grant-inactive",
        "grant-deleted",
    ],
)
def test_any_broken_hop_drops_the_path(db, make_user, editor, break_link):
    role, perm = editor
    user = make_user(role_code="USER")
    assign_role(db, user.id, role.id)
    assert "POST_EDIT" in effective_permissions(db, user.id)

    break_link(db, user, role, perm)
    db.commit()

    assert effective_permissions(db, user.id) == {"USER_VIEW"}


def _user_role(db, user, role):
    return db.query(UserRole).filter(UserRole.user_id == user.id, UserRole.role_id == role.id).one()


def _role_permission(db, role, perm):
    return (
        db.query(RolePermission)
        .filter(RolePermission.role_id == role.id, RolePermission.permission_id == perm.id)
        .one()
    )


def test_revoke_permission_keeps_the_row(db, clock, editor):
    role, perm = editor
    link = revoke_permission(db, role.id, perm.id)

    assert link.is_deleted is True
    assert as_utc(link.deleted_at) == clock.now
    row = _role_permission(db, role, perm)
    assert row.id == link.id
    assert row.is_deleted is True


def test_session_delete_of_grant_becomes_soft_delete(db, clock, editor):
    role, perm = editor
    row = _role_permission(db, role, perm)

    db.delete(row)
    db.commit()

    assert db.query(RolePermission).filter(RolePermission.id == row.id).count() == 1
    db.refresh(row)
    assert row.is_deleted is True
    assert as_utc(row.deleted_at) == clock.now


def test_bulk_delete_of_grants_becomes_soft_delete(db, clock):
    admin = get_role_by_code(db, "ADMIN")
    before = db.query(RolePermission).count()

    db.execute(delete(RolePermission).where(RolePermission.role_id == admin.id))
    db.commit()

    assert db.query(RolePermission).count() == before
    rows = db.query(RolePermission).filter(RolePermission.role_id == admin.id).all()
    assert len(rows) == 4
    assert all(r.is_deleted and as_utc(r.deleted_at) == clock.now for r in rows)


def test_grant_twice_is_a_duplicate_but_regrant_after_revoke_revives(db, editor):
    role, perm = editor
    with pytest.raises(DuplicateKey):
        grant_permission(db, role.id, perm.id)

    revoked = revoke_permission(db, role.id, perm.id)
    regranted = grant_permission(db, role.id, perm.id)

    assert regranted.id == revoked.id
    assert regranted.is_deleted is False
    assert regranted.deleted_at is None


def test_assign_twice_and_unassign(db, make_user, editor):
    role, _ = editor
    user = make_user()
    assign_role(db, user.id, role.id)
    with pytest.raises(DuplicateKey):
        assign_role(db, user.id, role.id)

    link = unassign_role(db, user.id, role.id)
    assert link.is_deleted is True
    assert user_roles(db, user.id) == []

    again = assign_role(db, user.id, role.id)
    assert again.id == link.id
    assert [r.role_code for r in user_roles(db, user.id)] == ["EDITOR"]


def test_system_rows_cannot_be_deleted(db):
    admin = get_role_by_code(db, "ADMIN")
    view = db.query(Permission).filter(Permission.permission_code == "USER_VIEW").one()

    with pytest.raises(SystemRoleProtected):
        soft_delete_role(db, admin.id)
    with pytest.raises(SystemRoleProtected):
        purge_role(db, admin.id)
    with pytest.raises(SystemRoleProtected):
        soft_delete_permission(db, view.id)


def test_custom_role_soft_delete(db, clock, editor):
    role, _ = editor
    deleted = soft_delete_role(db, role.id)
    assert deleted.is_deleted is True
    assert as_utc(deleted.deleted_at) == clock.now
    with pytest.raises(NotFound):
        get_role_by_code(db, "EDITOR")


def test_purge_role_with_grant_history_is_refused(db, make_user, editor):
    role, perm = editor
    user = make_user()
    assign_role(db, user.id, role.id)

    with pytest.raises(InUse):
        purge_role(db, role.id)

    assert db.query(Role).filter(Role.id == role.id).count() == 1
    assert _role_permission(db, role, perm).is_deleted is False
    assert effective_permissions(db, user.id) == {"POST_EDIT"}


def test_revoked_grants_still_block_the_purge(db, editor):
    role, perm = editor
    revoke_permission(db, role.id, perm.id)

    with pytest.raises(InUse):
        purge_role(db, role.id)
    with pytest.raises(InUse):
        purge_permission(db, perm.id)
    assert _role_permission(db, role, perm).is_deleted is True


def test_purge_role_without_grants_cascades_to_assignments(db, make_user):
    role = create_role(db, role_name="Temp", role_code="TEMP")
    user = make_user()
    assign_role(db, user.id, role.id)

    purge_role(db, role.id)

    assert db.query(Role).filter(Role.id == role.id).count() == 0
    assert db.query(UserRole).filter(UserRole.role_id == role.id).count() == 0


def test_bulk_delete_of_a_granting_role_is_refused(db, editor):
    role, _ = editor

    with pytest.raises(InUse):
        db.execute(delete(Role).where(Role.id == role.id))
    db.rollback()

    assert db.query(Role).filter(Role.id == role.id).count() == 1
    assert db.query(RolePermission).filter(RolePermission.role_id == role.id).count() == 1


def test_purge_unused_permission(db):
    perm = create_permission(db, permission_name="Draft", permission_code="POST_DRAFT")
    purge_permission(db, perm.id)
    assert db.query(Permission).filter(Permission.id == perm.id).count() == 0


def test_duplicate_role_and_permission_codes(db, editor):
    with pytest.raises(DuplicateKey):
        create_role(db, role_name="Another editor", role_code="EDITOR")
    with pytest.raises(DuplicateKey):
        create_permission(db, permission_name="Edit posts", permission_code="POST_EDIT_2")


def test_seed_is_idempotent(db):
    counts = (db.query(Role).count(), db.query(Permission).count(), db.query(RolePermission).count())
    seed_defaults(db)
    seed_defaults(db)
    assert (db.query(Role).count(), db.query(Permission).count(), db.query(RolePermission).count()) == counts
    assert counts == (2, 4, 5)


def test_ensure_admin_links_the_admin_role(db):
    admin = ensure_admin(db, email="root@example.com", password="bootstrap-pw", name="Root")
    again = ensure_admin(db, email="root@example.com", password="ignored-pw")

    assert again.id == admin.id
    assert admin.is_admin is True
    assert effective_permissions(db, admin.id) == BASELINE
    assert db.query(UserRole).filter(UserRole.user_id == admin.id).count() == 1


@pytest.mark.parametrize("field, value", [("is_deleted", True), ("is_active", False)])
def test_ensure_admin_restores_a_broken_admin_link(db, field, value):
    admin = ensure_admin(db, email="root@example.com", password="bootstrap-pw")
    link = db.query(UserRole).filter(UserRole.user_id == admin.id).one()
    setattr(link, field, value)
    db.commit()
    assert effective_permissions(db, admin.id) == set()

    ensure_admin(db, email="root@example.com", password="ignored-pw")

    db.refresh(link)
    assert link.is_deleted is False
    assert link.deleted_at is None
    assert link.is_active is True
    assert effective_permissions(db, admin.id) == BASELINE
    assert db.query(UserRole).filter(UserRole.user_id == admin.id).count() == 1

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from core.audit import as_utc
from core.errors import AlreadyUsed, AttemptsExceeded, Revoked
from credentials.otp import create_otp
from credentials.tokens import issue_token, revoke_token
from models.otp_token import OtpToken
from models.user import User
from models.user_token import UserToken
from users.service import verify_email


def test_insert_stamps_both_timestamps(db, clock, make_user):
    user = make_user()

    assert as_utc(user.created_at) == clock.now
    assert as_utc(user.updated_at) == clock.now
    assert user.is_deleted is False
    assert user.deleted_at is None


def test_update_moves_updated_at_and_overrides_caller_value(db, clock, make_user):
    user = make_user()
    created = clock.now

    clock.advance(minutes=5)
    user.name = "Renamed"
    user.updated_at = datetime(1999, 1, 1, tzinfo=timezone.utc)
    db.commit()
    db.refresh(user)

    assert as_utc(user.updated_at) == clock.now
    assert as_utc(user.created_at) == created


def test_created_at_cannot_be_rewritten(db, clock, make_user):
    user = make_user()
    created = clock.now

    clock.advance(hours=1)
    user.created_at = datetime(2000, 1, 1, tzinfo=timezone.utc)
    user.name = "Someone"
    db.commit()
    db.refresh(user)

    assert as_utc(user.created_at) == created


def test_soft_delete_flag_and_timestamp_move_together(db, clock, make_user):
    user = make_user()

    clock.advance(minutes=1)
    user.is_deleted = True
    db.commit()
    db.refresh(user)
    assert as_utc(user.deleted_at) == clock.now

    clock.advance(minutes=1)
    user.is_deleted = False
    db.commit()
    db.refresh(user)
    assert user.deleted_at is None


def test_direct_edit_of_deleted_at_is_discarded(db, clock, make_user):
    user = make_user()

    user.deleted_at = clock.now
    user.name = "Still here"
    db.commit()
    db.refresh(user)

    assert user.is_deleted is False
    assert user.deleted_at is None


def test_inserting_an_already_deleted_row_stamps_deleted_at(db, clock):
    user = User(email="ghost@example.com", password="x", is_deleted=True)
    db.add(user)
    db.commit()
    db.refresh(user)

    assert as_utc(user.deleted_at) == clock.now


def test_email_verification_stamps_last_login_once(db, clock, make_user):
    user = make_user()
    assert user.last_login_at is None

    clock.advance(minutes=10)
    verified_at = clock.now
    verify_email(db, user.id)
    db.refresh(user)
    assert as_utc(user.last_login_at) == verified_at

    # later unrelated updates leave it alone
    clock.advance(days=1)
    user.name = "Changed"
    db.commit()
    db.refresh(user)
    assert as_utc(user.last_login_at) == verified_at

    # verifying again is a no-op
    verify_email(db, user.id)
    db.refresh(user)
    assert as_utc(user.last_login_at) == verified_at


def test_revoked_token_cannot_be_reinstated(db, clock, make_user):
    user = make_user()
    token, _ = issue_token(db, user_id=user.id)
    revoke_token(db, token.id)

    token.is_revoked = False
    with pytest.raises(Revoked):
        db.commit()
    db.rollback()

    db.refresh(token)
    assert token.is_revoked is True


def test_consumed_otp_cannot_be_reset(db, clock):
    otp, _ = create_otp(db, email="a@example.com", token_type="LOGIN")
    otp.is_used = True
    db.commit()
    db.refresh(otp)
    assert as_utc(otp.used_at) == clock.now

    otp.is_used = False
    with pytest.raises(AlreadyUsed):
        db.commit()
    db.rollback()


def test_orm_write_past_attempt_limit_is_rejected(db, clock):
    otp, _ = create_otp(db, email="a@example.com", token_type="LOGIN", max_attempts=2)

    otp.attempts = 3
    with pytest.raises(AttemptsExceeded):
        db.commit()
    db.rollback()

    db.refresh(otp)
    assert otp.attempts == 0


def test_bulk_update_also_stamps_updated_at(db, clock, make_user):
    user = make_user()

    clock.advance(minutes=30)
    db.execute(
        update(User)
        .where(User.id == user.id)
        .values(name="Bulk")
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(user)

    assert user.name == "Bulk"
    assert as_utc(user.updated_at) == clock.now
    assert as_utc(user.created_at) == clock.now - timedelta(minutes=30)


def _bulk(db, stmt):
    db.execute(stmt.execution_options(synchronize_session=False))
    db.commit()


def test_bulk_soft_delete_stamps_and_clears_deleted_at(db, clock, make_user):
    user = make_user()

    clock.advance(minutes=1)
    _bulk(db, update(User).where(User.id == user.id).values(is_deleted=True))
    db.refresh(user)
    assert user.is_deleted is True
    assert as_utc(user.deleted_at) == clock.now

    # deleting again keeps the first stamp
    stamped = clock.now
    clock.advance(minutes=1)
    _bulk(db, update(User).where(User.id == user.id).values(is_deleted=True))
    db.refresh(user)
    assert as_utc(user.deleted_at) == stamped

    _bulk(db, update(User).where(User.id == user.id).values(is_deleted=False))
    db.refresh(user)
    assert user.is_deleted is False
    assert user.deleted_at is None


def test_bulk_edit_of_deleted_at_or_created_at_is_discarded(db, clock, make_user):
    user = make_user()
    created = clock.now

    clock.advance(hours=1)
    _bulk(
        db,
        update(User)
        .where(User.id == user.id)
        .values(deleted_at=clock.now, created_at=datetime(2000, 1, 1, tzinfo=timezone.utc)),
    )
    db.refresh(user)

    assert user.deleted_at is None
    assert as_utc(user.created_at) == created
    assert as_utc(user.updated_at) == clock.now


def test_bulk_email_verification_stamps_only_unverified_rows(db, clock, make_user):
    early = make_user()
    verify_email(db, early.id)
    verified_at = clock.now
    late = make_user()

    clock.advance(hours=2)
    _bulk(db, update(User).where(User.id.in_([early.id, late.id])).values(email_verified=True))
    db.refresh(early)
    db.refresh(late)

    assert as_utc(early.last_login_at) == verified_at
    assert late.email_verified is True
    assert as_utc(late.last_login_at) == clock.now


def test_bulk_unrevoke_is_rejected(db, clock, make_user):
    user = make_user()
    live, _ = issue_token(db, user_id=user.id)
    dead, _ = issue_token(db, user_id=user.id)
    revoke_token(db, dead.id)

    with pytest.raises(Revoked):
        db.execute(update(UserToken).where(UserToken.user_id == user.id).values(is_revoked=False))
    db.rollback()
    db.refresh(dead)
    assert dead.is_revoked is True

    # rows that were never revoked may be written with is_revoked=False
    _bulk(db, update(UserToken).where(UserToken.id == live.id).values(is_revoked=False))


def test_bulk_attempts_past_the_limit_are_rejected(db, clock):
    otp, _ = create_otp(db, email="a@example.com", token_type="LOGIN", max_attempts=3)

    with pytest.raises(AttemptsExceeded):
        db.execute(update(OtpToken).where(OtpToken.id == otp.id).values(attempts=OtpToken.attempts + 4))
    db.rollback()
    with pytest.raises(AttemptsExceeded):
        db.execute(update(OtpToken).where(OtpToken.id == otp.id).values(attempts=2, max_attempts=1))
    db.rollback()

    db.refresh(otp)
    assert (otp.attempts, otp.max_attempts) == (0, 3)

    _bulk(db, update(OtpToken).where(OtpToken.id == otp.id).values(attempts=3))
    db.refresh(otp)
    assert otp.attempts == 3


def test_bulk_consume_stamps_used_at_and_reset_is_rejected(db, clock):
    otp, _ = create_otp(db, email="a@example.com", token_type="LOGIN")

    clock.advance(seconds=20)
    _bulk(db, update(OtpToken).where(OtpToken.id == otp.id).values(is_used=True))
    db.refresh(otp)
    assert as_utc(otp.used_at) == clock.now

    with pytest.raises(AlreadyUsed):
        db.execute(update(OtpToken).where(OtpToken.id == otp.id).values(is_used=False))
    db.rollback()
    db.refresh(otp)
    assert otp.is_used is True


def test_lifecycle_flags_must_be_literal_in_statements(db, make_user):
    user = make_user()
    with pytest.raises(ValueError):
        db.execute(update(User).where(User.id == user.id).values(is_deleted=User.is_active))
    db.rollback()


def test_bulk_update_by_primary_key(db, clock, make_user):
    user = make_user()

    clock.advance(minutes=3)
    db.execute(update(User), [{"id": user.id, "is_deleted": True, "name": "Gone"}])
    db.commit()
    db.refresh(user)
    assert user.name == "Gone"
    assert as_utc(user.deleted_at) == clock.now
    assert as_utc(user.updated_at) == clock.now

    with pytest.raises(ValueError):
        db.execute(update(User), [{"id": user.id, "email_verified": True}])
    db.rollback()

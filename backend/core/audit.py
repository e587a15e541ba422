# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Lifecycle policy – the rules every write to the store must obey.

The rules are attached to the SQLAlchemy ``Session`` class, so they run for
every session in the process (request sessions, scripts, tests) and cannot be
skipped by a call site that forgets to invoke a helper.

Unit-of-work writes (``before_flush``)
--------------------------------------
* TimestampMixin       created_at/updated_at set on insert; updated_at moved
                       to *now* on every update (caller values overwritten);
                       a change to created_at is discarded.
* SoftDeleteMixin      is_deleted → true stamps deleted_at, → false clears it.
                       A direct edit of deleted_at alone is discarded.
* SoftDeleteOnlyMixin  ``session.delete(row)`` is withdrawn and turned into a
                       soft delete.  The caller's delete succeeds; the row stays.
* users                email_verified false → true stamps last_login_at.
* user_tokens          is_revoked true → false raises Revoked.
* otp_tokens           attempts > max_attempts raises AttemptsExceeded;
                       is_used false → true stamps used_at; true → false
                       raises AlreadyUsed.

Statement writes (``do_orm_execute``)
-------------------------------------
* ``delete(Model)`` on a soft-delete-only model is rewritten to an UPDATE.
* ``update(Model)`` gets the same rules as a flush, expressed in SQL:
  updated_at is set, created_at is pinned to its stored value, is_deleted
  drives deleted_at, an un-revoke or un-use of a matching row raises,
  last_login_at is stamped for rows whose email_verified flips, and an
  attempts/max_attempts change that would exceed the bound raises
  AttemptsExceeded (the bound is also added to the WHERE clause).
  Lifecycle flags must be set to literal values in a statement.
* Bulk UPDATE by primary key (a list of parameter sets) may only touch
  columns without transition rules; is_deleted still drives deleted_at.

Removing history
----------------
A parent of soft-delete-only rows (a role or permission with grant rows)
cannot be deleted while such rows reference it, through either path.  The
storage-level cascade would otherwise remove the history physically.
InUse is raised and nothing is written.

All rules for one flush share a single *now*, so e.g. last_login_at equals
the updated_at written by the same flush.
"""

from datetime import datetime, timezone

from sqlalchemy import event, func, inspect, not_, select, update
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import BindParameter, False_, Null, True_

from core.errors import AlreadyUsed, AttemptsExceeded, InUse, Revoked
from core.logger import logger
from models.mixins import SoftDeleteMixin, SoftDeleteOnlyMixin, TimestampMixin


def utcnow() -> datetime:
    """Current time in UTC.  The single clock used by policy and services."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    SQLite hands back naive datetimes for DateTime(timezone=True) columns.
    Everything is written in UTC, so a naive value is UTC.
    """
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _transition(obj, key):
    """
    Return ``(old, new)`` if *key* was assigned a different value in this
    unit of work, otherwise None.  *old* is None when it was never loaded.
    """
    hist = inspect(obj).attrs[key].history
    if not hist.added:
        return None
    old = hist.deleted[0] if hist.deleted else None
    return old, hist.added[0]


# ---------------------------------------------------------------------------
# Per-model rules
# ---------------------------------------------------------------------------


def _user_rules(obj, now):
    change = _transition(obj, "email_verified")
    if change and change[0] is False and change[1]:
        obj.last_login_at = now


def _token_rules(obj, now):
    change = _transition(obj, "is_revoked")
    if change and change[0] and not change[1]:
        raise Revoked("A revoked token cannot be reinstated", {"token_id": obj.id})


def _otp_rules(obj, now):
    attempts = obj.attempts or 0
    limit = obj.max_attempts if obj.max_attempts is not None else 3
    if attempts > limit:
        raise AttemptsExceeded(
            "OTP attempt limit reached",
            {"otp_id": obj.id, "max_attempts": limit},
        )

    change = _transition(obj, "is_used")
    if change is None:
        return
    old, new = change
    if old and not new:
        raise AlreadyUsed("A consumed OTP cannot be reset", {"otp_id": obj.id})
    if new and not old:
        obj.used_at = now


def _model_rules(obj):
    # Imported lazily: the models import database, which imports this module.
    from models.otp_token import OtpToken
    from models.user import User
    from models.user_token import UserToken

    if isinstance(obj, User):
        return _user_rules
    if isinstance(obj, UserToken):
        return _token_rules
    if isinstance(obj, OtpToken):
        return _otp_rules
    return None


# ---------------------------------------------------------------------------
# History protection
# ---------------------------------------------------------------------------


def _count(session, model, *criteria):
    criteria = [c for c in criteria if c is not None]
    return session.execute(select(func.count()).select_from(model).where(*criteria)).scalar()


def _history_links(model):
    """``(child, fk column, referenced column)`` for soft-delete-only tables pointing at *model*."""
    links = []
    for mapper in inspect(model).registry.mappers:
        child = mapper.class_
        if not issubclass(child, SoftDeleteOnlyMixin):
            continue
        for fk in child.__table__.foreign_keys:
            if fk.column.table is model.__table__:
                links.append((child, fk.parent, fk.column))
    return links


def _refuse_history_loss(session, model, referenced, details):
    """
    Raise InUse when soft-delete-only rows point at the *model* rows about to
    be removed.  ``referenced(column)`` returns the values (or a subquery) of
    the referenced column for those rows.
    """
    for child, column, target in _history_links(model):
        if _count(session, child, column.in_(referenced(target))):
            raise InUse(
                f"{model.__tablename__} row is still referenced by {child.__tablename__}",
                details,
            )


# ---------------------------------------------------------------------------
# Unit-of-work hook
# ---------------------------------------------------------------------------


def _on_insert(obj, now):
    if isinstance(obj, TimestampMixin):
        obj.created_at = now
        obj.updated_at = now
    if isinstance(obj, SoftDeleteMixin):
        obj.deleted_at = now if obj.is_deleted else None


def _on_update(session, obj, now):
    state = inspect(obj)
    if isinstance(obj, TimestampMixin):
        if state.attrs.created_at.history.has_changes():
            session.expire(obj, ["created_at"])
        obj.updated_at = now
    if isinstance(obj, SoftDeleteMixin):
        change = _transition(obj, "is_deleted")
        if change is not None:
            obj.deleted_at = now if change[1] else None
        elif state.attrs.deleted_at.history.has_changes():
            session.expire(obj, ["deleted_at"])


@event.listens_for(Session, "before_flush")
def _apply_write_policy(session, flush_context, instances):
    now = utcnow()

    for obj in list(session.deleted):
        if isinstance(obj, SoftDeleteOnlyMixin):
            # Re-adding a row that is pending deletion withdraws the DELETE
            session.add(obj)
            obj.is_deleted = True
            logger.info(
                "Delete of %s id=%s converted to soft delete",
                type(obj).__tablename__,
                obj.id,
            )
        else:
            _refuse_history_loss(
                session,
                type(obj),
                lambda target: [getattr(obj, target.key)],
                {"table": type(obj).__tablename__, "id": obj.id},
            )

    for obj in list(session.new):
        _on_insert(obj, now)
        rules = _model_rules(obj)
        if rules:
            rules(obj, now)

    for obj in list(session.dirty):
        if not session.is_modified(obj):
            continue
        _on_update(session, obj, now)
        rules = _model_rules(obj)
        if rules:
            rules(obj, now)


# ---------------------------------------------------------------------------
# Statement hook
# ---------------------------------------------------------------------------

# Columns whose rules depend on the value already stored in each row
_TRANSITION_COLUMNS = {
    "users": {"email_verified"},
    "user_tokens": {"is_revoked"},
    "otp_tokens": {"is_used", "attempts", "max_attempts"},
}


def _set_clause(statement):
    """Column name -> value expression of an UPDATE's SET clause."""
    return {getattr(key, "key", key): value for key, value in (statement._values or {}).items()}


def _literal(name, value):
    if isinstance(value, BindParameter):
        return value.effective_value
    if isinstance(value, True_):
        return True
    if isinstance(value, False_):
        return False
    if isinstance(value, Null):
        return None
    raise ValueError(f"{name} must be set to a literal value in an UPDATE statement")


def _guard_update(orm_execute_state, model, now):
    session = orm_execute_state.session
    stmt = orm_execute_state.statement
    where = stmt.whereclause
    values = _set_clause(stmt)
    table = model.__tablename__
    extra = {}

    if issubclass(model, TimestampMixin):
        extra["updated_at"] = now
        if "created_at" in values:
            extra["created_at"] = model.created_at

    if issubclass(model, SoftDeleteMixin):
        if "is_deleted" in values:
            if _literal("is_deleted", values["is_deleted"]):
                extra["deleted_at"] = func.coalesce(model.deleted_at, now)
            else:
                extra["deleted_at"] = None
        elif "deleted_at" in values:
            extra["deleted_at"] = model.deleted_at

    if table == "users" and "email_verified" in values:
        if _literal("email_verified", values["email_verified"]):
            # Separate statement: some backends evaluate SET clauses left to right
            session.execute(
                update(model)
                .where(*[c for c in (where, model.email_verified.is_(False)) if c is not None])
                .values(last_login_at=now)
                .execution_options(synchronize_session=False)
            )

    if table == "user_tokens" and "is_revoked" in values:
        if not _literal("is_revoked", values["is_revoked"]) and _count(
            session, model, where, model.is_revoked.is_(True)
        ):
            raise Revoked("A revoked token cannot be reinstated")

    if table == "otp_tokens":
        if "is_used" in values:
            if _literal("is_used", values["is_used"]):
                extra["used_at"] = func.coalesce(model.used_at, now)
            elif _count(session, model, where, model.is_used.is_(True)):
                raise AlreadyUsed("A consumed OTP cannot be reset")
        if "attempts" in values or "max_attempts" in values:
            bound = values.get("attempts", model.attempts) <= values.get("max_attempts", model.max_attempts)
            if _count(session, model, where, not_(bound)):
                raise AttemptsExceeded("OTP attempt limit reached")
            stmt = stmt.where(bound)

    orm_execute_state.statement = stmt.values(**extra) if extra else stmt


def _guard_update_by_primary_key(orm_execute_state, model, now):
    refused_always = set(_TRANSITION_COLUMNS.get(model.__tablename__, ()))
    if issubclass(model, TimestampMixin):
        refused_always.add("created_at")

    overrides = []
    for params in orm_execute_state.parameters:
        refused = refused_always.intersection(params)
        if issubclass(model, SoftDeleteMixin) and "deleted_at" in params and "is_deleted" not in params:
            refused.add("deleted_at")
        if refused:
            raise ValueError(
                f"{', '.join(sorted(refused))} cannot be changed by a bulk update by primary key"
            )
        row = {}
        if issubclass(model, TimestampMixin):
            row["updated_at"] = now
        if issubclass(model, SoftDeleteMixin) and "is_deleted" in params:
            row["deleted_at"] = now if params["is_deleted"] else None
        overrides.append(row)

    if not any(overrides):
        return None
    return orm_execute_state.invoke_statement(params=overrides)


@event.listens_for(Session, "do_orm_execute")
def _apply_statement_policy(orm_execute_state):
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return None

    mapper = orm_execute_state.bind_mapper
    if mapper is None:
        return None
    model = mapper.class_
    now = utcnow()

    if orm_execute_state.is_delete:
        where = orm_execute_state.statement.whereclause
        if not issubclass(model, SoftDeleteOnlyMixin):
            _refuse_history_loss(
                orm_execute_state.session,
                model,
                lambda target: select(target) if where is None else select(target).where(where),
                {"table": model.__tablename__},
            )
            return None

        values = {"is_deleted": True, "deleted_at": now}
        if issubclass(model, TimestampMixin):
            values["updated_at"] = now
        stmt = update(model).values(**values)
        if where is not None:
            stmt = stmt.where(where)
        logger.info("Bulk delete on %s converted to soft delete", model.__tablename__)
        return orm_execute_state.invoke_statement(statement=stmt)

    if isinstance(orm_execute_state.parameters, (list, tuple)):
        return _guard_update_by_primary_key(orm_execute_state, model, now)

    _guard_update(orm_execute_state, model, now)
    return None

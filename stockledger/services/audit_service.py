import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.exceptions import AuditWriteFailure, NotFoundError
from stockledger.models.audit_log import AuditAction, AuditLog
from stockledger.schemas.audit import SNAPSHOT_TYPES
from stockledger.services import query

logger = logging.getLogger(__name__)

AUDIT_WARNINGS_KEY = "audit_warnings"

# Bookkeeping columns that change on every write and say nothing about the edit.
_IGNORED_IN_DIFF = {"updated_at"}


def snapshot(entity) -> dict:
    """Full JSON-safe image of an entity, tagged with its type."""
    schema = SNAPSHOT_TYPES[type(entity).__name__]
    return schema.model_validate(entity).model_dump(mode="json")


def record(
    db: Session,
    *,
    actor_id: str | None,
    entity_type: str,
    entity_id: str,
    action: AuditAction,
    before: dict | None,
    after: dict | None,
    ip_address: str | None = None,
) -> AuditLog | None:
    """Append one audit row inside a savepoint of the caller's transaction.

    Callers must flush their own changes first. If the audit insert fails, only the
    savepoint is rolled back: the failure is logged, a warning is left on the session
    for the response, and the business change goes on to commit.
    """
    action = AuditAction(action)
    entry = AuditLog(
        user_id=actor_id or "system",
        entity=entity_type,
        entity_id=str(entity_id),
        action=action,
        before=before,
        after=after,
        ip_address=ip_address,
    )
    try:
        with db.begin_nested():
            db.add(entry)
    except SQLAlchemyError as exc:
        failure = AuditWriteFailure(entity_type, str(entity_id), action.value, str(exc))
        logger.warning("%s: %s", failure.message, exc)
        db.info.setdefault(AUDIT_WARNINGS_KEY, []).append(failure.message)
        return None
    return entry


def pop_warnings(db: Session) -> list[str]:
    return db.info.pop(AUDIT_WARNINGS_KEY, [])


def list_logs(db: Session, page: int = 1, limit: int | None = None, filters: Mapping[str, Any] | None = None) -> dict:
    page, limit = query.normalize_page(page, limit)
    q = db.query(AuditLog).filter(*query.audit_predicates(filters or {}))
    return query.paginate(q, AuditLog, page, limit)


def list_for_entity(db: Session, entity: str, entity_id: str, page: int = 1, limit: int | None = None) -> dict:
    return list_logs(db, page, limit, {"entity": entity, "entity_id": entity_id})


def get_log(db: Session, log_id: int) -> AuditLog:
    log = db.query(AuditLog).filter(AuditLog.id == log_id).first()
    if not log:
        raise NotFoundError("AuditLog", str(log_id))
    return log


def changed_fields(log: AuditLog) -> dict[str, dict]:
    """Compare the stored images; a pure diff, no replay needed."""
    before = log.before or {}
    after = log.after or {}
    changes = {}
    for field in sorted(set(before) | set(after)):
        if field in _IGNORED_IN_DIFF or field == "entity_type":
            continue
        old, new = before.get(field), after.get(field)
        if old != new:
            changes[field] = {"before": old, "after": new}
    return changes

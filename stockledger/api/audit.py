from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockledger.api.deps import AUDITORS, ok, paged, require_roles
from stockledger.database import get_db
from stockledger.models.user import User
from stockledger.schemas.audit import AuditLogDetailOut, AuditLogOut
from stockledger.services import audit_service

router = APIRouter(prefix="/audit-log", tags=["Audit"])


@router.get("")
def list_audit_logs(
    page: int = 1,
    limit: int | None = None,
    entity: str | None = None,
    action: str | None = None,
    user_id: str | None = None,
    user: User = Depends(require_roles(*AUDITORS)),
    db: Session = Depends(get_db),
):
    result = audit_service.list_logs(db, page, limit, {"entity": entity, "action": action, "user_id": user_id})
    return paged(result, AuditLogOut)


@router.get("/entity/{entity}/{entity_id}")
def entity_history(
    entity: str,
    entity_id: str,
    page: int = 1,
    limit: int | None = None,
    user: User = Depends(require_roles(*AUDITORS)),
    db: Session = Depends(get_db),
):
    result = audit_service.list_for_entity(db, entity, entity_id, page, limit)
    return paged(result, AuditLogOut)


@router.get("/{log_id}")
def get_audit_log(log_id: int, user: User = Depends(require_roles(*AUDITORS)), db: Session = Depends(get_db)):
    log = audit_service.get_log(db, log_id)
    detail = AuditLogDetailOut.model_validate(log)
    detail.changes = audit_service.changed_fields(log)
    return ok(detail)

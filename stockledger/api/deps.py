from fastapi import Cookie, Depends, Header, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stockledger.database import get_db
from stockledger.models.user import Role, User
from stockledger.services import audit_service, auth_service

WRITERS = (Role.STOCKMASTER, Role.INVENTORY_MANAGER)
STOCK_WRITERS = (Role.STOCKMASTER, Role.INVENTORY_MANAGER, Role.WAREHOUSE_STAFF)
AUDITORS = (Role.STOCKMASTER,)


def get_current_user(
    authorization: str | None = Header(default=None),
    token: str | None = Cookie(default=None, alias="token"),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: resolve the actor from a Bearer header or the ``token`` cookie."""
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    if not token:
        raise HTTPException(401, "Not authenticated")
    payload = auth_service.decode_token(token)
    if not payload:
        raise HTTPException(401, "Invalid or expired token")
    user = auth_service.get_user_by_id(db, payload["sub"])
    if not user or not user.active:
        raise HTTPException(401, "User not found or disabled")
    return user


def require_roles(*roles: Role):
    allowed = {r.value for r in roles}

    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(403, "Forbidden - insufficient permissions")
        return user

    return dependency


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def ok(data, db: Session | None = None) -> dict:
    body = {"ok": True, "data": data}
    if db is not None:
        warnings = audit_service.pop_warnings(db)
        if warnings:
            body["warnings"] = warnings
    return body


def paged(result: dict, schema: type[BaseModel]) -> dict:
    return {
        "ok": True,
        "data": [schema.model_validate(item) for item in result["items"]],
        "meta": {key: result[key] for key in ("page", "limit", "total", "total_pages")},
    }

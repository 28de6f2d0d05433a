"""Filter predicates and deterministic pagination for list endpoints."""

import math
from collections.abc import Mapping
from typing import Any

from sqlalchemy import or_
from sqlalchemy.orm import Query

from stockledger.config import settings
from stockledger.exceptions import ValidationError
from stockledger.models.audit_log import AuditAction, AuditLog
from stockledger.models.location import Location, ProductLocation
from stockledger.models.product import Category, Product
from stockledger.models.supplier import Supplier

_TRUE = {"true"}
_FALSE = {"false"}


def parse_bool(value: Any, field: str = "is_active") -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    raise ValidationError(f"{field} must be a boolean", details={"field": field, "value": value})


def normalize_page(page: Any = 1, limit: Any = None) -> tuple[int, int]:
    """Coerce page/limit; limit above MAX_PAGE_LIMIT is clamped, not rejected."""
    try:
        page = int(page) if page is not None else 1
        limit = int(limit) if limit is not None else settings.DEFAULT_PAGE_LIMIT
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers", details={"page": page, "limit": limit})
    if page < 1:
        raise ValidationError("page must be >= 1", details={"page": page})
    if limit < 1:
        raise ValidationError("limit must be >= 1", details={"limit": limit})
    return page, min(limit, settings.MAX_PAGE_LIMIT)


def _visible(model, filters: Mapping[str, Any]) -> list:
    # Soft-deleted rows are hidden unless the caller asks for them explicitly.
    if filters.get("include_deleted") is not None and parse_bool(filters["include_deleted"], "include_deleted"):
        return []
    return [model.deleted_at.is_(None)]


def _search(term: Any, *columns) -> list:
    if term is None or not str(term).strip():
        return []
    term = str(term).strip()
    return [or_(*(col.icontains(term, autoescape=True) for col in columns))]


def product_predicates(filters: Mapping[str, Any]) -> list:
    preds = _visible(Product, filters)
    if filters.get("category_id"):
        preds.append(Product.category_id == filters["category_id"])
    if filters.get("is_active") is not None:
        preds.append(Product.is_active == parse_bool(filters["is_active"]))
    if filters.get("location_id"):
        preds.append(Product.stock_rows.any(ProductLocation.location_id == filters["location_id"]))
    preds += _search(filters.get("search"), Product.name, Product.sku)
    return preds


def supplier_predicates(filters: Mapping[str, Any]) -> list:
    preds = _visible(Supplier, filters)
    if filters.get("is_active") is not None:
        preds.append(Supplier.is_active == parse_bool(filters["is_active"]))
    preds += _search(filters.get("search"), Supplier.name, Supplier.email, Supplier.phone)
    return preds


def category_predicates(filters: Mapping[str, Any]) -> list:
    return _visible(Category, filters) + _search(filters.get("search"), Category.name)


def location_predicates(filters: Mapping[str, Any]) -> list:
    preds = _visible(Location, filters)
    if filters.get("is_active") is not None:
        preds.append(Location.is_active == parse_bool(filters["is_active"]))
    if filters.get("type"):
        preds.append(Location.type == filters["type"])
    preds += _search(filters.get("search"), Location.code, Location.name)
    return preds


def audit_predicates(filters: Mapping[str, Any]) -> list:
    preds = []
    if filters.get("entity"):
        preds.append(AuditLog.entity == filters["entity"])
    if filters.get("entity_id"):
        preds.append(AuditLog.entity_id == filters["entity_id"])
    if filters.get("action"):
        try:
            action = AuditAction(str(filters["action"]).upper())
        except ValueError:
            raise ValidationError(
                "action must be one of CREATE, UPDATE, DELETE", details={"action": filters["action"]}
            )
        preds.append(AuditLog.action == action)
    if filters.get("user_id"):
        preds.append(AuditLog.user_id == filters["user_id"])
    return preds


def paginate(q: Query, model, page: int, limit: int) -> dict:
    """Run a filtered query newest-first and return one page plus totals.

    ``total`` is counted over the same filtered query, so ``total_pages`` always
    describes the filter the caller asked for.
    """
    total = q.order_by(None).count()
    items = (
        q.order_by(model.created_at.desc(), model.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": items,
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit),
    }

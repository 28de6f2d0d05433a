"""Per-location stock quantities.

``set_quantity`` is a last-write-wins upsert, not a counter. Callers that think in
deltas use ``adjust_quantity``, which locks the row and does the read and the write
in one transaction.
"""

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.exceptions import ConflictError, NotFoundError, ValidationError
from stockledger.models.audit_log import AuditAction
from stockledger.models.location import Location, ProductLocation
from stockledger.models.product import Product
from stockledger.services import audit_service

logger = logging.getLogger(__name__)


def _require_product(db: Session, product_id: str, include_deleted: bool = False) -> Product:
    q = db.query(Product).filter(Product.id == product_id)
    if not include_deleted:
        q = q.filter(Product.deleted_at.is_(None))
    product = q.first()
    if not product:
        raise NotFoundError("Product", product_id)
    return product


def _require_location(db: Session, location_id: str, include_deleted: bool = False) -> Location:
    q = db.query(Location).filter(Location.id == location_id)
    if not include_deleted:
        q = q.filter(Location.deleted_at.is_(None))
    location = q.first()
    if not location:
        raise NotFoundError("Location", location_id)
    return location


def _check_quantity(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    return value


def _locked_row(db: Session, product_id: str, location_id: str) -> ProductLocation | None:
    return (
        db.query(ProductLocation)
        .filter(ProductLocation.product_id == product_id, ProductLocation.location_id == location_id)
        .with_for_update()
        .first()
    )


def _write(
    db: Session,
    product_id: str,
    location_id: str,
    quantity: int,
    actor_id: str | None,
    ip_address: str | None,
    commit: bool,
) -> ProductLocation:
    row = _locked_row(db, product_id, location_id)
    if row:
        before = audit_service.snapshot(row)
        row.quantity = quantity
        action = AuditAction.UPDATE
    else:
        before = None
        row = ProductLocation(product_id=product_id, location_id=location_id, quantity=quantity)
        db.add(row)
        action = AuditAction.CREATE

    try:
        db.flush()
    except IntegrityError as exc:
        # Another writer inserted the same pair between our read and our insert.
        db.rollback()
        raise ConflictError.from_integrity_error("ProductLocation", exc)

    audit_service.record(
        db,
        actor_id=actor_id,
        entity_type="ProductLocation",
        entity_id=row.id,
        action=action,
        before=before,
        after=audit_service.snapshot(row),
        ip_address=ip_address,
    )
    if commit:
        db.commit()
        db.refresh(row)
    logger.info("Stock set: product=%s location=%s quantity=%d", product_id, location_id, quantity)
    return row


def set_quantity(
    db: Session,
    product_id: str,
    location_id: str,
    quantity: int,
    *,
    actor_id: str | None = None,
    ip_address: str | None = None,
    commit: bool = True,
) -> ProductLocation:
    quantity = _check_quantity(quantity, "quantity")
    if quantity < 0:
        raise ValidationError("quantity cannot be negative", details={"quantity": quantity})
    _require_product(db, product_id)
    _require_location(db, location_id)
    return _write(db, product_id, location_id, quantity, actor_id, ip_address, commit)


def adjust_quantity(
    db: Session,
    product_id: str,
    location_id: str,
    delta: int,
    *,
    actor_id: str | None = None,
    ip_address: str | None = None,
    commit: bool = True,
) -> ProductLocation:
    delta = _check_quantity(delta, "delta")
    _require_product(db, product_id)
    _require_location(db, location_id)
    row = _locked_row(db, product_id, location_id)
    current = row.quantity if row else 0
    new_qty = current + delta
    if new_qty < 0:
        raise ValidationError(
            f"Insufficient stock. Current: {current}, requested change: {delta}",
            details={"current": current, "delta": delta},
        )
    return _write(db, product_id, location_id, new_qty, actor_id, ip_address, commit)


def get_by_product(db: Session, product_id: str, include_deleted: bool = False) -> list[ProductLocation]:
    _require_product(db, product_id, include_deleted=include_deleted)
    return (
        db.query(ProductLocation)
        .filter(ProductLocation.product_id == product_id)
        .order_by(ProductLocation.location_id)
        .all()
    )


def get_by_location(db: Session, location_id: str, include_deleted: bool = False) -> list[ProductLocation]:
    _require_location(db, location_id, include_deleted=include_deleted)
    return (
        db.query(ProductLocation)
        .filter(ProductLocation.location_id == location_id)
        .order_by(ProductLocation.product_id)
        .all()
    )


def _totals_subquery(db: Session):
    return (
        db.query(ProductLocation.product_id, func.sum(ProductLocation.quantity).label("total"))
        .group_by(ProductLocation.product_id)
        .subquery()
    )


def product_totals(db: Session, product_ids: list[str] | None = None) -> dict[str, int]:
    q = db.query(ProductLocation.product_id, func.sum(ProductLocation.quantity)).group_by(ProductLocation.product_id)
    if product_ids is not None:
        q = q.filter(ProductLocation.product_id.in_(product_ids))
    return {product_id: int(total or 0) for product_id, total in q.all()}


def low_stock(db: Session, threshold: int | None = None) -> list[dict]:
    """Live, active products whose summed stock is at or below the reorder point (or ``threshold``)."""
    totals = _totals_subquery(db)
    total_col = func.coalesce(totals.c.total, 0)
    limit_col = Product.reorder_point if threshold is None else threshold
    rows = (
        db.query(Product, total_col)
        .outerjoin(totals, totals.c.product_id == Product.id)
        .filter(Product.deleted_at.is_(None), Product.is_active.is_(True), total_col <= limit_col)
        .order_by(total_col, Product.sku)
        .all()
    )
    return [
        {
            "product_id": p.id,
            "sku": p.sku,
            "name": p.name,
            "reorder_point": p.reorder_point,
            "total_quantity": int(total),
        }
        for p, total in rows
    ]

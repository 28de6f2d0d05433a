"""The single write path for catalog entities.

Each operation validates, reads the current state, writes the entity, and appends
one audit row, all in the caller's session transaction. The unique pre-check and
the insert share that transaction; the database constraint backs it up and a
constraint hit is reported as a conflict.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockledger.exceptions import ConflictError, NotFoundError, ValidationError
from stockledger.models.audit_log import AuditAction
from stockledger.models.location import Location
from stockledger.models.mixins import utcnow
from stockledger.models.product import Category, Product
from stockledger.models.supplier import Supplier
from stockledger.schemas.location import LocationCreate, LocationUpdate
from stockledger.schemas.product import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate
from stockledger.schemas.supplier import SupplierCreate, SupplierUpdate
from stockledger.services import audit_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntitySpec:
    model: type
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]
    # Checked across live and soft-deleted rows alike
    unique_fields: tuple[str, ...] = ()


ENTITIES: dict[str, EntitySpec] = {
    "Product": EntitySpec(Product, ProductCreate, ProductUpdate, ("sku",)),
    "Category": EntitySpec(Category, CategoryCreate, CategoryUpdate, ("name",)),
    "Location": EntitySpec(Location, LocationCreate, LocationUpdate, ("code", "name")),
    "Supplier": EntitySpec(Supplier, SupplierCreate, SupplierUpdate),
}


def _spec(entity_type: str) -> EntitySpec:
    spec = ENTITIES.get(entity_type)
    if not spec:
        raise ValidationError(f"Unknown entity type '{entity_type}'", details={"entity": entity_type})
    return spec


def _validate(entity_type: str, schema: type[BaseModel], data: Any, partial: bool = False) -> dict:
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=partial)
    try:
        parsed = schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {entity_type} data",
            details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        )
    values = parsed.model_dump(exclude_unset=partial)
    if partial:
        columns = schema_columns(entity_type)
        for field, value in values.items():
            if value is None and not columns[field].nullable:
                raise ValidationError(f"{field} cannot be null", details={"field": field})
    return values


def schema_columns(entity_type: str):
    return _spec(entity_type).model.__table__.c


def _unique_clash(db: Session, spec: EntitySpec, values: Mapping[str, Any], exclude_id: str | None = None) -> str | None:
    for field in spec.unique_fields:
        if field not in values:
            continue
        q = db.query(spec.model.id).filter(getattr(spec.model, field) == values[field])
        if exclude_id:
            q = q.filter(spec.model.id != exclude_id)
        if q.first():
            return field
    return None


def _check_unique(db: Session, entity_type: str, spec: EntitySpec, values: Mapping[str, Any], exclude_id=None) -> None:
    field = _unique_clash(db, spec, values, exclude_id)
    if field:
        raise ConflictError(
            f"{entity_type} with {field} '{values[field]}' already exists",
            details={"entity": entity_type, field: values[field]},
        )


def _check_references(db: Session, entity_type: str, values: Mapping[str, Any]) -> None:
    if entity_type != "Product" or values.get("category_id") is None:
        return
    exists = (
        db.query(Category.id)
        .filter(Category.id == values["category_id"], Category.deleted_at.is_(None))
        .first()
    )
    if not exists:
        raise ValidationError(
            f"Category {values['category_id']} does not exist",
            details={"category_id": values["category_id"]},
        )


def _flush(db: Session, entity_type: str) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError.from_integrity_error(entity_type, exc)


def _load_live(db: Session, entity_type: str, spec: EntitySpec, entity_id: str):
    entity = (
        db.query(spec.model)
        .filter(spec.model.id == entity_id, spec.model.deleted_at.is_(None))
        .with_for_update()
        .first()
    )
    if not entity:
        raise NotFoundError(entity_type, entity_id)
    return entity


def create(db: Session, entity_type: str, data: Any, actor_id: str | None = None, ip_address: str | None = None):
    spec = _spec(entity_type)
    values = _validate(entity_type, spec.create_schema, data)
    _check_references(db, entity_type, values)
    _check_unique(db, entity_type, spec, values)

    entity = spec.model(**values)
    db.add(entity)
    _flush(db, entity_type)

    audit_service.record(
        db,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity.id,
        action=AuditAction.CREATE,
        before=None,
        after=audit_service.snapshot(entity),
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(entity)
    logger.info("%s created: %s", entity_type, entity.id)
    return entity


def update(
    db: Session,
    entity_type: str,
    entity_id: str,
    patch: Any,
    actor_id: str | None = None,
    ip_address: str | None = None,
):
    spec = _spec(entity_type)
    values = _validate(entity_type, spec.update_schema, patch, partial=True)
    entity = _load_live(db, entity_type, spec, entity_id)
    before = audit_service.snapshot(entity)

    changed_unique = {f: values[f] for f in spec.unique_fields if f in values and values[f] != getattr(entity, f)}
    _check_unique(db, entity_type, spec, changed_unique, exclude_id=entity.id)
    _check_references(db, entity_type, values)

    for field, value in values.items():
        setattr(entity, field, value)
    _flush(db, entity_type)

    audit_service.record(
        db,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity.id,
        action=AuditAction.UPDATE,
        before=before,
        after=audit_service.snapshot(entity),
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(entity)
    logger.info("%s updated: %s fields=%s", entity_type, entity.id, sorted(values))
    return entity


def soft_delete(
    db: Session,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    ip_address: str | None = None,
):
    spec = _spec(entity_type)
    # Already-deleted rows are filtered out here, so a repeat call is NotFound and audits nothing.
    entity = _load_live(db, entity_type, spec, entity_id)
    before = audit_service.snapshot(entity)

    entity.deleted_at = utcnow()
    _flush(db, entity_type)

    audit_service.record(
        db,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity.id,
        action=AuditAction.DELETE,
        before=before,
        after=None,
        ip_address=ip_address,
    )
    db.commit()
    db.refresh(entity)
    logger.info("%s deleted: %s", entity_type, entity.id)
    return entity


def bulk_create(
    db: Session,
    entity_type: str,
    items: Iterable[Any],
    actor_id: str | None = None,
    ip_address: str | None = None,
) -> dict:
    """Create many entities; items whose unique key is taken are skipped, not failed.

    Validation runs over the whole batch first, so a malformed item rejects the
    request before anything is written.
    """
    spec = _spec(entity_type)
    validated = []
    errors = {}
    for index, raw in enumerate(items):
        try:
            validated.append(_validate(entity_type, spec.create_schema, raw))
        except ValidationError as exc:
            errors[str(index)] = exc.details.get("errors", exc.message)
    if errors:
        raise ValidationError(f"Invalid {entity_type} items in bulk request", details={"items": errors})
    for values in validated:
        _check_references(db, entity_type, values)

    created = []
    seen: dict[str, set] = {field: set() for field in spec.unique_fields}
    for values in validated:
        if any(values[f] in seen[f] for f in spec.unique_fields) or _unique_clash(db, spec, values):
            logger.debug("Bulk %s: skipping existing %s", entity_type, {f: values[f] for f in spec.unique_fields})
            continue
        for field in spec.unique_fields:
            seen[field].add(values[field])

        entity = spec.model(**values)
        try:
            with db.begin_nested():
                db.add(entity)
        except IntegrityError:
            logger.info("Bulk %s: concurrent insert won for %s", entity_type, {f: values[f] for f in spec.unique_fields})
            continue

        audit_service.record(
            db,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity.id,
            action=AuditAction.CREATE,
            before=None,
            after=audit_service.snapshot(entity),
            ip_address=ip_address,
        )
        created.append(entity)

    db.commit()
    for entity in created:
        db.refresh(entity)
    logger.info("Bulk created %d %s records", len(created), entity_type)
    return {"created": len(created), "items": created}

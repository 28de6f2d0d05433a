from collections.abc import Mapping
from typing import Any

from sqlalchemy.orm import Session

from stockledger.exceptions import NotFoundError
from stockledger.models.location import Location
from stockledger.models.product import Category, Product
from stockledger.models.supplier import Supplier
from stockledger.services import query

_LISTINGS = {
    "Product": (Product, query.product_predicates),
    "Category": (Category, query.category_predicates),
    "Location": (Location, query.location_predicates),
    "Supplier": (Supplier, query.supplier_predicates),
}


def list_entities(
    db: Session,
    entity_type: str,
    page: Any = 1,
    limit: Any = None,
    filters: Mapping[str, Any] | None = None,
) -> dict:
    model, predicates = _LISTINGS[entity_type]
    page, limit = query.normalize_page(page, limit)
    q = db.query(model).filter(*predicates(filters or {}))
    return query.paginate(q, model, page, limit)


def list_products(db: Session, page: Any = 1, limit: Any = None, filters: Mapping[str, Any] | None = None) -> dict:
    return list_entities(db, "Product", page, limit, filters)


def list_categories(db: Session, page: Any = 1, limit: Any = None, filters: Mapping[str, Any] | None = None) -> dict:
    return list_entities(db, "Category", page, limit, filters)


def list_locations(db: Session, page: Any = 1, limit: Any = None, filters: Mapping[str, Any] | None = None) -> dict:
    return list_entities(db, "Location", page, limit, filters)


def list_suppliers(db: Session, page: Any = 1, limit: Any = None, filters: Mapping[str, Any] | None = None) -> dict:
    return list_entities(db, "Supplier", page, limit, filters)


def get_entity(db: Session, entity_type: str, entity_id: str, include_deleted: bool = False):
    model, _ = _LISTINGS[entity_type]
    q = db.query(model).filter(model.id == entity_id)
    if not include_deleted:
        q = q.filter(model.deleted_at.is_(None))
    entity = q.first()
    if not entity:
        raise NotFoundError(entity_type, entity_id)
    return entity


def get_product_by_sku(db: Session, sku: str, include_deleted: bool = False) -> Product:
    q = db.query(Product).filter(Product.sku == sku)
    if not include_deleted:
        q = q.filter(Product.deleted_at.is_(None))
    product = q.first()
    if not product:
        raise NotFoundError("Product", sku)
    return product

"""CRUD routers for the catalog entities that need nothing beyond the mutation service."""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stockledger.api.deps import WRITERS, client_ip, get_current_user, ok, paged, require_roles
from stockledger.database import get_db
from stockledger.models.user import User
from stockledger.schemas.location import LocationCreate, LocationOut, LocationUpdate
from stockledger.schemas.product import CategoryCreate, CategoryOut, CategoryUpdate
from stockledger.schemas.supplier import SupplierCreate, SupplierOut, SupplierUpdate
from stockledger.services import catalog_service, mutation_service


def build_router(
    entity_type: str,
    prefix: str,
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    out_schema: type[BaseModel],
    tag: str,
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("")
    def list_items(
        request: Request,
        page: int = 1,
        limit: int | None = None,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        # Remaining query parameters (search, is_active, include_deleted, ...) are filter keys.
        filters = {k: v for k, v in request.query_params.items() if k not in ("page", "limit")}
        result = catalog_service.list_entities(db, entity_type, page, limit, filters)
        return paged(result, out_schema)

    @router.post("", status_code=201)
    def create_item(
        data: create_schema,
        request: Request,
        user: User = Depends(require_roles(*WRITERS)),
        db: Session = Depends(get_db),
    ):
        entity = mutation_service.create(db, entity_type, data, user.id, client_ip(request))
        return ok(out_schema.model_validate(entity), db)

    @router.get("/{item_id}")
    def get_item(
        item_id: str,
        include_deleted: bool = False,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        entity = catalog_service.get_entity(db, entity_type, item_id, include_deleted=include_deleted)
        return ok(out_schema.model_validate(entity))

    @router.patch("/{item_id}")
    def update_item(
        item_id: str,
        data: update_schema,
        request: Request,
        user: User = Depends(require_roles(*WRITERS)),
        db: Session = Depends(get_db),
    ):
        entity = mutation_service.update(db, entity_type, item_id, data, user.id, client_ip(request))
        return ok(out_schema.model_validate(entity), db)

    @router.delete("/{item_id}")
    def delete_item(
        item_id: str,
        request: Request,
        user: User = Depends(require_roles(*WRITERS)),
        db: Session = Depends(get_db),
    ):
        entity = mutation_service.soft_delete(db, entity_type, item_id, user.id, client_ip(request))
        return ok({"id": entity.id, "deleted_at": entity.deleted_at}, db)

    return router


categories = build_router("Category", "/categories", CategoryCreate, CategoryUpdate, CategoryOut, "Categories")
locations = build_router("Location", "/locations", LocationCreate, LocationUpdate, LocationOut, "Locations")
suppliers = build_router("Supplier", "/suppliers", SupplierCreate, SupplierUpdate, SupplierOut, "Suppliers")

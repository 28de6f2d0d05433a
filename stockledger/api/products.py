import csv
import io

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from stockledger.api.deps import WRITERS, client_ip, get_current_user, ok, paged, require_roles
from stockledger.database import get_db
from stockledger.exceptions import ValidationError
from stockledger.models.user import User
from stockledger.schemas.product import ProductCreate, ProductOut, ProductUpdate, StockRowOut
from stockledger.services import catalog_service, mutation_service, stock_ledger

router = APIRouter(prefix="/products", tags=["Products"])

CSV_COLUMNS = [
    "sku", "name", "description", "category_id", "min_stock_level", "max_stock_level",
    "reorder_point", "unit_price", "is_active",
]


@router.get("")
def list_products(
    page: int = 1,
    limit: int | None = None,
    category_id: str | None = None,
    is_active: str | None = None,
    search: str | None = None,
    location_id: str | None = None,
    include_deleted: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    filters = {
        "category_id": category_id,
        "is_active": is_active,
        "search": search,
        "location_id": location_id,
        "include_deleted": include_deleted,
    }
    result = catalog_service.list_products(db, page, limit, filters)
    return paged(result, ProductOut)


@router.post("", status_code=201)
def create_product(
    data: ProductCreate,
    request: Request,
    user: User = Depends(require_roles(*WRITERS)),
    db: Session = Depends(get_db),
):
    product = mutation_service.create(db, "Product", data, user.id, client_ip(request))
    return ok(ProductOut.model_validate(product), db)


@router.post("/bulk", status_code=201)
def bulk_create_products(
    items: list[ProductCreate],
    request: Request,
    user: User = Depends(require_roles(*WRITERS)),
    db: Session = Depends(get_db),
):
    result = mutation_service.bulk_create(db, "Product", items, user.id, client_ip(request))
    return ok({"created": result["created"], "items": [ProductOut.model_validate(p) for p in result["items"]]}, db)


@router.get("/import-template")
def download_import_template(user: User = Depends(get_current_user)):
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    writer.writerow(["SR-100-MM", "Steel Rod 100mm", "High-quality steel rod", "", "50", "500", "100", "45.50", "true"])
    writer.writerow(["NUT-M10", "Hex Nut M10", "", "", "", "", "", "0.20", ""])
    buf.seek(0)
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=product_import_template.csv"},
    )


@router.post("/import")
def import_products(
    file: UploadFile,
    request: Request,
    user: User = Depends(require_roles(*WRITERS)),
    db: Session = Depends(get_db),
):
    """Bulk-create products from CSV; rows whose SKU already exists are skipped."""
    if not file.filename or not file.filename.endswith(".csv"):
        raise HTTPException(400, "Only CSV files are supported")

    try:
        content = file.file.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("CSV must be UTF-8 encoded", details={"filename": file.filename})
    reader = csv.DictReader(io.StringIO(content))

    rows = []
    errors = []
    for row_num, row in enumerate(reader, start=2):
        # Blank cells fall back to the create defaults
        item = {col: (row.get(col) or "").strip() for col in CSV_COLUMNS}
        item = {k: v for k, v in item.items() if v}
        if not item.get("sku"):
            errors.append({"row": row_num, "error": "SKU is required"})
            continue
        try:
            rows.append(ProductCreate.model_validate(item))
        except ValueError as e:
            errors.append({"row": row_num, "sku": item["sku"], "error": str(e)})

    result = mutation_service.bulk_create(db, "Product", rows, user.id, client_ip(request))
    return ok(
        {"created": result["created"], "skipped": len(rows) - result["created"], "errors": errors},
        db,
    )


@router.get("/{product_id}")
def get_product(
    product_id: str,
    include_deleted: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    product = catalog_service.get_entity(db, "Product", product_id, include_deleted=include_deleted)
    return ok(ProductOut.model_validate(product))


@router.patch("/{product_id}")
def update_product(
    product_id: str,
    data: ProductUpdate,
    request: Request,
    user: User = Depends(require_roles(*WRITERS)),
    db: Session = Depends(get_db),
):
    product = mutation_service.update(
        db, "Product", product_id, data.model_dump(exclude_unset=True), user.id, client_ip(request)
    )
    return ok(ProductOut.model_validate(product), db)


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    request: Request,
    user: User = Depends(require_roles(*WRITERS)),
    db: Session = Depends(get_db),
):
    product = mutation_service.soft_delete(db, "Product", product_id, user.id, client_ip(request))
    return ok({"id": product.id, "deleted_at": product.deleted_at}, db)


@router.get("/{product_id}/stock")
def product_stock(
    product_id: str,
    include_deleted: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = stock_ledger.get_by_product(db, product_id, include_deleted=include_deleted)
    return ok(
        {
            "product_id": product_id,
            "total_quantity": sum(r.quantity for r in rows),
            "rows": [StockRowOut.model_validate(r) for r in rows],
        }
    )

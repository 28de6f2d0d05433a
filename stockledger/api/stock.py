from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from stockledger.api.deps import STOCK_WRITERS, client_ip, get_current_user, ok, require_roles
from stockledger.database import get_db
from stockledger.models.user import User
from stockledger.schemas.location import StockAdjust, StockLevelOut, StockSet
from stockledger.schemas.product import StockRowOut
from stockledger.services import stock_ledger

router = APIRouter(prefix="/stock", tags=["Stock"])


@router.put("")
def set_quantity(
    data: StockSet,
    request: Request,
    user: User = Depends(require_roles(*STOCK_WRITERS)),
    db: Session = Depends(get_db),
):
    row = stock_ledger.set_quantity(
        db, data.product_id, data.location_id, data.quantity, actor_id=user.id, ip_address=client_ip(request)
    )
    return ok(StockRowOut.model_validate(row), db)


@router.post("/adjust")
def adjust_quantity(
    data: StockAdjust,
    request: Request,
    user: User = Depends(require_roles(*STOCK_WRITERS)),
    db: Session = Depends(get_db),
):
    row = stock_ledger.adjust_quantity(
        db, data.product_id, data.location_id, data.delta, actor_id=user.id, ip_address=client_ip(request)
    )
    return ok(StockRowOut.model_validate(row), db)


@router.get("/low")
def low_stock(threshold: int | None = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok([StockLevelOut(**item) for item in stock_ledger.low_stock(db, threshold)])


@router.get("/locations/{location_id}")
def location_stock(
    location_id: str,
    include_deleted: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = stock_ledger.get_by_location(db, location_id, include_deleted=include_deleted)
    return ok([StockRowOut.model_validate(r) for r in rows])

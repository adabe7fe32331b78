from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError
from ..crud.catalog import create_item, delete_item, find_by_barcode, list_items, require_item, update_item
from ..db.session import get_db
from ..deps.auth import ADMINS, ALL_ROLES, CATALOG_EDITORS, Principal, require_roles
from ..middlewares import tag_movement
from ..schemas.inventory import BulkImportRequest, BulkImportResult, ItemCreate, ItemOut, ItemPage, ItemUpdate
from ..services.bulk_import import import_items

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"])


@router.post("", response_model=ItemOut, status_code=201)
def api_create(
    payload: ItemCreate,
    principal: Principal = Depends(require_roles(*ALL_ROLES)),
    db: Session = Depends(get_db),
):
    data = payload.model_dump()
    data["added_by"] = data.get("added_by") or principal.actor
    return create_item(db, data)


@router.post("/bulk", response_model=BulkImportResult, status_code=201)
def api_bulk_create(
    payload: BulkImportRequest,
    request: Request,
    principal: Principal = Depends(require_roles(*ALL_ROLES)),
    db: Session = Depends(get_db),
):
    result = import_items(
        db,
        [row.model_dump() for row in payload.items],
        create_initial_delivery=payload.create_initial_delivery,
        delivery_number=payload.delivery_number,
        default_added_by=principal.actor,
    )
    tag_movement(request, "delivery", result["created_delivery_id"], imported=result["count"])
    return BulkImportResult(
        message=f"{result['count']} items imported successfully.",
        count=result["count"],
        total=result["total"],
        failed_rows=result["failed_rows"],
        created_delivery_id=result["created_delivery_id"],
    )


@router.get("", response_model=ItemPage, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_list(
    search: Optional[str] = None,
    item_type: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    all: bool = False,
    db: Session = Depends(get_db),
):
    return list_items(db, search=search, item_type=item_type, page=page, limit=limit, all_rows=all)


@router.get("/barcode/{barcode}", response_model=ItemOut, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_get_by_barcode(barcode: str, db: Session = Depends(get_db)):
    item = find_by_barcode(db, barcode)
    if item is None:
        raise NotFoundError("Item not found.", entity="inventory_item", key=barcode)
    return item


@router.get("/{item_id}", response_model=ItemOut, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_get(item_id: str, db: Session = Depends(get_db)):
    return require_item(db, item_id)


@router.patch("/{item_id}", response_model=ItemOut, dependencies=[Depends(require_roles(*CATALOG_EDITORS))])
def api_update(item_id: str, payload: ItemUpdate, db: Session = Depends(get_db)):
    item = require_item(db, item_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        return item
    return update_item(db, item, data)


@router.delete("/{item_id}", dependencies=[Depends(require_roles(*ADMINS))])
def api_delete(item_id: str, db: Session = Depends(get_db)):
    delete_item(db, require_item(db, item_id))
    return {"status": "deleted", "item_id": item_id}

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..crud.movements import get_delivery, list_deliveries
from ..db.session import get_db
from ..deps.auth import ALL_ROLES, Principal, require_roles
from ..middlewares import tag_movement
from ..schemas.movement import DeliveryCreate, DeliveryOut, DeliveryPage
from ..services.ledger import add_delivery

router = APIRouter(prefix="/api/v1/deliveries", tags=["deliveries"])


@router.post("", response_model=DeliveryOut, status_code=201)
def api_create(
    payload: DeliveryCreate,
    request: Request,
    principal: Principal = Depends(require_roles(*ALL_ROLES)),
    db: Session = Depends(get_db),
):
    delivery = add_delivery(
        db,
        received_by=payload.received_by or principal.actor,
        supplier=payload.supplier,
        delivery_number=payload.delivery_number,
        items=[line.model_dump() for line in payload.items],
    )
    tag_movement(request, "delivery", delivery.delivery_id)
    return delivery


@router.get("", response_model=DeliveryPage, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_list(page: int = 1, limit: Optional[int] = None, all: bool = False, db: Session = Depends(get_db)):
    return list_deliveries(db, page=page, limit=limit, all_rows=all)


@router.get("/{delivery_id}", response_model=DeliveryOut, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_get(delivery_id: str, db: Session = Depends(get_db)):
    return get_delivery(db, delivery_id)

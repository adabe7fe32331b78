from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..crud.movements import get_checkout, list_checkouts
from ..db.session import get_db
from ..deps.auth import ALL_ROLES, Principal, require_roles
from ..middlewares import tag_movement
from ..schemas.movement import CheckoutCreate, CheckoutOut, CheckoutPage, ReturnableLine
from ..services.ledger import add_checkout
from ..services.reconciliation import returnable_quantities

router = APIRouter(prefix="/api/v1/checkouts", tags=["checkouts"])


@router.post("", response_model=CheckoutOut, status_code=201)
def api_create(
    payload: CheckoutCreate,
    request: Request,
    principal: Principal = Depends(require_roles(*ALL_ROLES)),
    db: Session = Depends(get_db),
):
    checkout = add_checkout(
        db,
        receipt_no=payload.receipt_no,
        issued_by=payload.issued_by or principal.actor,
        items=[line.model_dump() for line in payload.items],
    )
    tag_movement(
        request, "checkout", checkout.checkout_id, transaction_no=checkout.transaction_no, receipt_no=checkout.receipt_no
    )
    return checkout


@router.get("", response_model=CheckoutPage, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_list(page: int = 1, limit: Optional[int] = None, all: bool = False, db: Session = Depends(get_db)):
    return list_checkouts(db, page=page, limit=limit, all_rows=all)


@router.get(
    "/{receipt_no}/returnable",
    response_model=list[ReturnableLine],
    dependencies=[Depends(require_roles(*ALL_ROLES))],
)
def api_returnable(receipt_no: str, db: Session = Depends(get_db)):
    return returnable_quantities(db, receipt_no)


@router.get("/{ref}", response_model=CheckoutOut, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_get(ref: str, db: Session = Depends(get_db)):
    return get_checkout(db, ref)

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..crud.movements import get_return, list_returns
from ..db.session import get_db
from ..deps.auth import ALL_ROLES, Principal, require_roles
from ..middlewares import tag_movement
from ..schemas.movement import ReturnCreate, ReturnOut, ReturnPage
from ..services.ledger import add_return

router = APIRouter(prefix="/api/v1/returns", tags=["returns"])


@router.post("", response_model=ReturnOut, status_code=201)
def api_create(
    payload: ReturnCreate,
    request: Request,
    principal: Principal = Depends(require_roles(*ALL_ROLES)),
    db: Session = Depends(get_db),
):
    record = add_return(
        db,
        receipt_ref=payload.receipt_ref,
        returned_by=payload.returned_by or principal.actor,
        reason=payload.reason,
        items=[line.model_dump() for line in payload.items],
    )
    tag_movement(
        request, "return", record.return_number, receipt_ref=record.receipt_ref, transaction_ref=record.transaction_ref
    )
    return record


@router.get("", response_model=ReturnPage, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_list(
    receipt_ref: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    all: bool = False,
    db: Session = Depends(get_db),
):
    return list_returns(db, receipt_ref=receipt_ref, page=page, limit=limit, all_rows=all)


@router.get("/{return_number}", response_model=ReturnOut, dependencies=[Depends(require_roles(*ALL_ROLES))])
def api_get(return_number: str, db: Session = Depends(get_db)):
    return get_return(db, return_number)

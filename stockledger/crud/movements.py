"""Read-side helpers for movement records. The ledger owns every write."""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError
from ..core.pagination import paginate_query
from ..models.movements import Checkout, Delivery, ReturnRecord
from ..services.reconciliation import lookup_checkout


def list_deliveries(
    db: Session, *, page: int | None = 1, limit: int | None = None, all_rows: bool = False
) -> dict[str, Any]:
    stmt = select(Delivery).order_by(desc(Delivery.date_received), desc(Delivery.id))
    return paginate_query(db, stmt, page=page, limit=limit, all_rows=all_rows)


def get_delivery(db: Session, delivery_id: str) -> Delivery:
    delivery = db.execute(select(Delivery).where(Delivery.delivery_id == delivery_id)).scalars().first()
    if delivery is None:
        raise NotFoundError(f"Delivery {delivery_id} not found.", entity="delivery", key=delivery_id)
    return delivery


def list_checkouts(
    db: Session, *, page: int | None = 1, limit: int | None = None, all_rows: bool = False
) -> dict[str, Any]:
    stmt = select(Checkout).order_by(desc(Checkout.created_at), desc(Checkout.id))
    return paginate_query(db, stmt, page=page, limit=limit, all_rows=all_rows)


def get_checkout(db: Session, ref: str) -> Checkout:
    """Resolve a checkout by receipt number, checkout id or transaction number."""

    checkout = lookup_checkout(db, ref)
    if checkout is None:
        raise NotFoundError(f"Checkout {ref} not found.", entity="checkout", key=ref)
    return checkout


def list_returns(
    db: Session,
    *,
    receipt_ref: str | None = None,
    page: int | None = 1,
    limit: int | None = None,
    all_rows: bool = False,
) -> dict[str, Any]:
    stmt = select(ReturnRecord).order_by(desc(ReturnRecord.date_returned), desc(ReturnRecord.id))
    if receipt_ref:
        stmt = stmt.where(ReturnRecord.receipt_ref == receipt_ref.strip())
    return paginate_query(db, stmt, page=page, limit=limit, all_rows=all_rows)


def get_return(db: Session, return_number: str) -> ReturnRecord:
    record = db.execute(select(ReturnRecord).where(ReturnRecord.return_number == return_number)).scalars().first()
    if record is None:
        raise NotFoundError(f"Return {return_number} not found.", entity="return", key=return_number)
    return record


__all__ = [
    "get_checkout",
    "get_delivery",
    "get_return",
    "list_checkouts",
    "list_deliveries",
    "list_returns",
]

"""Return reconciliation: how much of a checkout has already come back.

The bound "returned <= issued" spans two documents (a checkout and every return
filed against its receipt), so no table constraint can enforce it. These
helpers re-read the committed totals straight from the database each time
they are called; the ledger calls them inside its write transaction after
locking the checkout row.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError
from ..models.movements import Checkout, ReturnItem, ReturnRecord


def find_checkout_by_receipt(db: Session, receipt_no: str, *, for_update: bool = False) -> Checkout | None:
    stmt = select(Checkout).where(Checkout.receipt_no == receipt_no)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return db.execute(stmt).scalars().first()


def lookup_checkout(db: Session, ref: str) -> Checkout | None:
    """Find a checkout by receipt number, checkout id or transaction number."""

    ref = (ref or "").strip()
    if not ref:
        return None
    stmt = select(Checkout).where(
        or_(Checkout.receipt_no == ref, Checkout.checkout_id == ref, Checkout.transaction_no == ref)
    )
    return db.execute(stmt).scalars().first()


def returned_quantities(db: Session, receipt_ref: str) -> dict[str, int]:
    """Sum of every committed return quantity per item for one receipt."""

    stmt = (
        select(ReturnItem.item_id, func.coalesce(func.sum(ReturnItem.quantity), 0))
        .join(ReturnRecord, ReturnRecord.id == ReturnItem.return_pk)
        .where(ReturnRecord.receipt_ref == receipt_ref)
        .group_by(ReturnItem.item_id)
    )
    return {item_id: int(total) for item_id, total in db.execute(stmt).all()}


def returnable_quantities(db: Session, receipt_no: str) -> list[dict[str, Any]]:
    """Issued, already returned and still returnable quantity for each item on a checkout.

    Repeated lines for one item are merged into a single row, in first-line order.
    """

    checkout = find_checkout_by_receipt(db, receipt_no)
    if checkout is None:
        raise NotFoundError(f"Checkout with receipt {receipt_no} not found.", entity="checkout", key=receipt_no)
    returned = returned_quantities(db, receipt_no)
    issued_totals = checkout.issued_quantities()
    rows = []
    seen: set[str] = set()
    for line in checkout.items:
        if line.item_id in seen:
            continue
        seen.add(line.item_id)
        issued = issued_totals[line.item_id]
        already = returned.get(line.item_id, 0)
        rows.append(
            {
                "item_id": line.item_id,
                "item_name": line.item_name,
                "size_or_source": line.size_or_source,
                "grade_level": line.grade_level,
                "issued": issued,
                "returned": already,
                "returnable": max(issued - already, 0),
            }
        )
    return rows


__all__ = [
    "find_checkout_by_receipt",
    "lookup_checkout",
    "returnable_quantities",
    "returned_quantities",
]

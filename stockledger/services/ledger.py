"""The stock ledger: deliveries, checkouts and returns.

Each operation is one all-or-nothing unit of work (see
:func:`stockledger.db.transactions.atomic`): it writes an immutable movement
record and applies the matching quantity deltas to the catalog, or, if any
line item fails, leaves both untouched.

Identifiers are allocated at the start of the transaction. On SQLite that
takes the database write lock before any stock is read, which serialises
concurrent ledger writes; on PostgreSQL the catalog and checkout rows are
locked with ``SELECT ... FOR UPDATE`` and :func:`adjust_quantity` re-checks
the bound in its UPDATE.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.exceptions import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    OverReturnError,
    ValidationError,
)
from ..crud.catalog import adjust_quantity, find_by_id
from ..db.transactions import atomic
from ..models.catalog import InventoryItem
from ..models.movements import Checkout, CheckoutItem, Delivery, DeliveryItem, ReturnItem, ReturnRecord
from .reconciliation import find_checkout_by_receipt, returned_quantities
from .sequences import next_checkout_id, next_delivery_id, next_return_number, next_transaction_no
from .timecalc import iso_timestamp

logger = logging.getLogger("stockledger.ledger")

CONDITIONS = ("Good", "Damaged")
IMPORT_SUPPLIER = "Initial Inventory Import"
SNAPSHOT_FIELDS = ("item_name", "item_type", "size_or_source", "grade_level", "barcode")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _require_text(value: Any, field: str) -> str:
    text = _text(value)
    if not text:
        raise ValidationError(f"{field} is required.", field=field)
    return text


def _quantity(value: Any, position: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Line {position + 1}: quantity must be a whole number.", line=position)
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Line {position + 1}: quantity must be a whole number.", line=position) from None
    if quantity != value and not isinstance(value, str):
        raise ValidationError(f"Line {position + 1}: quantity must be a whole number.", line=position)
    if quantity < 1:
        raise ValidationError(f"Line {position + 1}: quantity must be at least 1.", line=position)
    return quantity


def _condition(value: Any, position: int) -> str:
    text = _text(value) or "Good"
    for condition in CONDITIONS:
        if text.casefold() == condition.casefold():
            return condition
    raise ValidationError(
        f"Line {position + 1}: condition must be one of {', '.join(CONDITIONS)}.", line=position, condition=text
    )


def _lines(items: Iterable[Mapping[str, Any]] | None) -> list[dict[str, Any]]:
    """Validate request line items before any database work happens."""

    lines = [dict(item) for item in (items or [])]
    if not lines:
        raise ValidationError("At least one line item is required.")
    for position, line in enumerate(lines):
        line["item_id"] = _text(line.get("item_id"))
        if not line["item_id"]:
            raise ValidationError(f"Line {position + 1}: item_id is required.", line=position)
        line["quantity"] = _quantity(line.get("quantity"), position)
    return lines


def _label(line: Mapping[str, Any]) -> str:
    return _text(line.get("item_name")) or line["item_id"]


def _missing_item(line: Mapping[str, Any]) -> NotFoundError:
    return NotFoundError(
        f"Item {_label(line)} (ID: {line['item_id']}) not found in inventory.",
        entity="inventory_item",
        key=line["item_id"],
        item_name=_text(line.get("item_name")) or None,
    )


def _delivery_snapshot(line: Mapping[str, Any], item: InventoryItem) -> dict[str, Any]:
    # Deliveries keep the attributes supplied with the line, falling back to the catalog.
    current = item.snapshot()
    snapshot = {"item_id": item.item_id}
    for field in SNAPSHOT_FIELDS:
        snapshot[field] = _text(line.get(field)) or current[field]
    return snapshot


def add_delivery(
    db: Session,
    *,
    received_by: str,
    items: Sequence[Mapping[str, Any]],
    supplier: str | None = None,
    delivery_number: str | None = None,
    now: datetime | None = None,
) -> Delivery:
    """Record stock received and increase catalog quantity for every line.

    Every line must reference an item that exists in the catalog; one unknown
    item aborts the whole delivery.
    """

    actor = _require_text(received_by, "received_by")
    lines = _lines(items)
    moment = iso_timestamp(now)

    with atomic(db, "ledger.delivery"):
        delivery = Delivery(
            delivery_id=next_delivery_id(db),
            delivery_number=_text(delivery_number) or None,
            supplier=_text(supplier) or None,
            received_by=actor,
            date_received=moment,
            created_at=moment,
        )
        for position, line in enumerate(lines):
            item = find_by_id(db, line["item_id"], for_update=True)
            if item is None:
                raise _missing_item(line)
            adjust_quantity(db, item.item_id, line["quantity"])
            delivery.items.append(
                DeliveryItem(position=position, quantity=line["quantity"], **_delivery_snapshot(line, item))
            )
        db.add(delivery)

    logger.info(
        "ledger.delivery.committed",
        extra={"extra_data": {"delivery_id": delivery.delivery_id, "lines": len(lines), "actor": actor}},
    )
    return delivery


def add_checkout(
    db: Session,
    *,
    receipt_no: str,
    issued_by: str,
    items: Sequence[Mapping[str, Any]],
    now: datetime | None = None,
) -> Checkout:
    """Issue stock against a receipt.

    Each line is checked against the live quantity and snapshots the item's
    current attributes. If any line is missing or short, every decrement made
    for earlier lines is rolled back with the rest of the transaction.
    """

    receipt = _require_text(receipt_no, "receipt_no")
    actor = _require_text(issued_by, "issued_by")
    lines = _lines(items)
    moment = iso_timestamp(now)

    with atomic(db, "ledger.checkout"):
        checkout = Checkout(
            checkout_id=next_checkout_id(db),
            transaction_no=next_transaction_no(db, now),
            receipt_no=receipt,
            issued_by=actor,
            created_at=moment,
        )
        if db.execute(select(Checkout.id).where(Checkout.receipt_no == receipt)).first():
            raise ConflictError(
                f"Receipt {receipt} is already used by another checkout; each receipt may be issued once.",
                receipt_no=receipt,
                rule="receipt_unique",
            )

        for position, line in enumerate(lines):
            item = find_by_id(db, line["item_id"], for_update=True)
            if item is None:
                raise _missing_item(line)
            available = item.quantity or 0
            if available < line["quantity"]:
                raise InsufficientStockError(
                    item_id=item.item_id,
                    item_name=item.item_name,
                    available=available,
                    requested=line["quantity"],
                )
            adjust_quantity(db, item.item_id, -line["quantity"])
            checkout.items.append(CheckoutItem(position=position, quantity=line["quantity"], **item.snapshot()))
        db.add(checkout)

    logger.info(
        "ledger.checkout.committed",
        extra={
            "extra_data": {
                "checkout_id": checkout.checkout_id,
                "transaction_no": checkout.transaction_no,
                "lines": len(lines),
                "actor": actor,
            }
        },
    )
    return checkout


def add_return(
    db: Session,
    *,
    receipt_ref: str,
    returned_by: str,
    items: Sequence[Mapping[str, Any]],
    reason: str | None = "",
    now: datetime | None = None,
) -> ReturnRecord:
    """Take back stock issued under ``receipt_ref``.

    Every line must belong to the original checkout, and the running total
    returned for an item (earlier returns, plus earlier lines of this request)
    may never exceed what was issued. Name, size and grade are copied from
    the checkout line, not the live catalog.
    """

    ref = _require_text(receipt_ref, "receipt_ref")
    actor = _require_text(returned_by, "returned_by")
    lines = _lines(items)
    for position, line in enumerate(lines):
        line["condition"] = _condition(line.get("condition"), position)
        line["remarks"] = _text(line.get("remarks"))
    moment = iso_timestamp(now)

    with atomic(db, "ledger.return"):
        return_number = next_return_number(db, now)
        checkout = find_checkout_by_receipt(db, ref, for_update=True)
        if checkout is None:
            raise NotFoundError(f"Checkout with receipt {ref} not found.", entity="checkout", key=ref)

        returned = returned_quantities(db, ref)
        issued_totals = checkout.issued_quantities()
        issued_lines = []
        for line in lines:
            issued = checkout.line_for(line["item_id"])
            if issued is None:
                raise NotFoundError(
                    f"Item {_label(line)} not found in checkout record.",
                    entity="checkout_item",
                    key=line["item_id"],
                    receipt_ref=ref,
                )
            new_total = returned.get(issued.item_id, 0) + line["quantity"]
            if new_total > issued_totals[issued.item_id]:
                raise OverReturnError(
                    item_id=issued.item_id,
                    item_name=issued.item_name,
                    requested_total=new_total,
                    issued=issued_totals[issued.item_id],
                )
            returned[issued.item_id] = new_total
            issued_lines.append(issued)

        record = ReturnRecord(
            return_number=return_number,
            receipt_ref=ref,
            transaction_ref=checkout.transaction_no,
            returned_by=actor,
            reason=_text(reason),
            date_returned=moment,
            created_at=moment,
        )
        for position, (line, issued) in enumerate(zip(lines, issued_lines)):
            adjust_quantity(db, issued.item_id, line["quantity"])
            record.items.append(
                ReturnItem(
                    position=position,
                    item_id=issued.item_id,
                    item_name=issued.item_name,
                    item_type=issued.item_type,
                    size_or_source=issued.size_or_source or "-",
                    grade_level=issued.grade_level or "-",
                    barcode=issued.barcode,
                    quantity=line["quantity"],
                    condition=line["condition"],
                    remarks=line["remarks"],
                )
            )
        db.add(record)

    logger.info(
        "ledger.return.committed",
        extra={
            "extra_data": {
                "return_number": record.return_number,
                "receipt_ref": ref,
                "lines": len(lines),
                "actor": actor,
            }
        },
    )
    return record


def record_import_delivery(
    db: Session,
    items: Sequence[InventoryItem],
    *,
    received_by: str,
    delivery_number: str | None = None,
    now: datetime | None = None,
) -> Delivery | None:
    """Write the synthetic delivery that documents a bulk import's opening stock.

    The imported quantities are already on the catalog rows, so this only
    appends the movement record; it never adjusts quantity. Items imported
    with zero stock are left out. Returns None when nothing was stocked.
    """

    stocked = [item for item in items if (item.quantity or 0) > 0]
    if not stocked:
        return None
    moment = iso_timestamp(now)
    with atomic(db, "ledger.import_delivery"):
        delivery = Delivery(
            delivery_id=next_delivery_id(db),
            delivery_number=_text(delivery_number) or "initial",
            supplier=IMPORT_SUPPLIER,
            received_by=_text(received_by) or "System (Bulk Import)",
            date_received=moment,
            created_at=moment,
        )
        for position, item in enumerate(stocked):
            delivery.items.append(DeliveryItem(position=position, quantity=item.quantity, **item.snapshot()))
        db.add(delivery)
    logger.info(
        "ledger.import_delivery.committed",
        extra={"extra_data": {"delivery_id": delivery.delivery_id, "lines": len(stocked)}},
    )
    return delivery


__all__ = [
    "CONDITIONS",
    "IMPORT_SUPPLIER",
    "add_checkout",
    "add_delivery",
    "add_return",
    "record_import_delivery",
]

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.pagination import paginate_rows
from ..models.catalog import InventoryItem
from ..models.movements import Checkout, CheckoutItem, Delivery, DeliveryItem, ReturnItem, ReturnRecord
from ..models.user import User
from .timecalc import range_bounds

DASH = "-"


def _in_range(column, lower: str | None, upper: str):
    if lower is None:
        return column <= upper
    return column.between(lower, upper)


def _row_filter(column, date_from: date | None, date_to: date | None):
    # Row reports list everything unless a bound was asked for.
    if date_from is None and date_to is None:
        return None
    lower, upper = range_bounds(date_from, date_to)
    return _in_range(column, lower, upper)


def _day(timestamp: str | None) -> str:
    return (timestamp or "")[:10] or DASH


def _totals_by_item(db: Session, line_model, parent_pk, parent_model, date_column, lower, upper) -> Dict[str, int]:
    stmt = (
        select(line_model.item_id, func.coalesce(func.sum(line_model.quantity), 0))
        .join(parent_model, parent_model.id == parent_pk)
        .where(_in_range(date_column, lower, upper))
        .group_by(line_model.item_id)
    )
    return {item_id: int(total) for item_id, total in db.execute(stmt).all()}


def summarize_stock(
    db: Session,
    date_from: date | None = None,
    date_to: date | None = None,
    *,
    page: int | None = 1,
    limit: int | None = None,
    all_rows: bool = False,
) -> Dict[str, Any]:
    """Per-item delivered / checked-out / returned totals over an inclusive day range.

    ``net_change`` covers only the range; ``current_stock`` is the live catalog
    quantity and is reported next to it without being reconciled.
    """

    lower, upper = range_bounds(date_from, date_to)
    delivered = _totals_by_item(
        db, DeliveryItem, DeliveryItem.delivery_pk, Delivery, Delivery.date_received, lower, upper
    )
    checked_out = _totals_by_item(
        db, CheckoutItem, CheckoutItem.checkout_pk, Checkout, Checkout.created_at, lower, upper
    )
    returned = _totals_by_item(
        db, ReturnItem, ReturnItem.return_pk, ReturnRecord, ReturnRecord.date_returned, lower, upper
    )

    items = db.execute(select(InventoryItem).order_by(InventoryItem.item_name, InventoryItem.id)).scalars().all()
    rows: List[Dict[str, Any]] = []
    totals = {"total_delivered": 0, "total_checked_out": 0, "total_returned": 0, "net_change": 0}
    for item in items:
        row = {
            "item_id": item.item_id,
            "item_name": item.item_name,
            "size_or_source": item.size_or_source or DASH,
            "grade_level": item.grade_level or DASH,
            "total_delivered": delivered.get(item.item_id, 0),
            "total_checked_out": checked_out.get(item.item_id, 0),
            "total_returned": returned.get(item.item_id, 0),
            "current_stock": item.quantity or 0,
        }
        row["net_change"] = row["total_delivered"] + row["total_returned"] - row["total_checked_out"]
        for key in totals:
            totals[key] += row[key]
        rows.append(row)

    paged = paginate_rows(rows, page=page, limit=limit, all_rows=all_rows)
    return {
        "date_range": {"from": lower or "Beginning", "to": upper},
        "summary": paged["items"],
        "totals": totals,
        "total": paged["total"],
        "page": paged["page"],
        "pages": paged["pages"],
    }


def delivery_rows(db: Session, date_from: date | None = None, date_to: date | None = None) -> List[Dict[str, Any]]:
    stmt = select(Delivery).order_by(desc(Delivery.date_received), desc(Delivery.id))
    condition = _row_filter(Delivery.date_received, date_from, date_to)
    if condition is not None:
        stmt = stmt.where(condition)
    rows = []
    for delivery in db.execute(stmt).scalars().all():
        for line in delivery.items:
            rows.append(
                {
                    "delivery_id": delivery.delivery_id,
                    "delivery_number": delivery.delivery_number or DASH,
                    "supplier": delivery.supplier or DASH,
                    "item_id": line.item_id,
                    "item_name": line.item_name,
                    "size_or_source": line.size_or_source or DASH,
                    "grade_level": line.grade_level or DASH,
                    "barcode": line.barcode or DASH,
                    "quantity": line.quantity,
                    "date": _day(delivery.date_received),
                    "received_by": delivery.received_by,
                }
            )
    return rows


def checkout_rows(db: Session, date_from: date | None = None, date_to: date | None = None) -> List[Dict[str, Any]]:
    stmt = select(Checkout).order_by(desc(Checkout.created_at), desc(Checkout.id))
    condition = _row_filter(Checkout.created_at, date_from, date_to)
    if condition is not None:
        stmt = stmt.where(condition)
    rows = []
    for checkout in db.execute(stmt).scalars().all():
        for line in checkout.items:
            rows.append(
                {
                    "checkout_id": checkout.checkout_id,
                    "transaction_no": checkout.transaction_no,
                    "receipt_no": checkout.receipt_no,
                    "item_id": line.item_id,
                    "item_name": line.item_name or DASH,
                    "size_or_source": line.size_or_source or DASH,
                    "grade_level": line.grade_level or DASH,
                    "barcode": line.barcode or DASH,
                    "quantity": line.quantity or 0,
                    "date": _day(checkout.created_at),
                    "issued_by": checkout.issued_by or DASH,
                }
            )
    return rows


def return_rows(db: Session, date_from: date | None = None, date_to: date | None = None) -> List[Dict[str, Any]]:
    stmt = select(ReturnRecord).order_by(desc(ReturnRecord.date_returned), desc(ReturnRecord.id))
    condition = _row_filter(ReturnRecord.date_returned, date_from, date_to)
    if condition is not None:
        stmt = stmt.where(condition)
    rows = []
    for record in db.execute(stmt).scalars().all():
        for line in record.items:
            rows.append(
                {
                    "return_number": record.return_number,
                    "receipt_ref": record.receipt_ref,
                    "transaction_ref": record.transaction_ref or DASH,
                    "item_id": line.item_id,
                    "item_name": line.item_name,
                    "size_or_source": line.size_or_source or DASH,
                    "grade_level": line.grade_level or DASH,
                    "quantity": line.quantity,
                    "condition": line.condition or "Good",
                    "remarks": line.remarks or "",
                    "date": _day(record.date_returned),
                    "returned_by": record.returned_by,
                }
            )
    return rows


def inventory_rows(db: Session) -> List[InventoryItem]:
    stmt = select(InventoryItem).order_by(InventoryItem.item_name, InventoryItem.id)
    return list(db.execute(stmt).scalars().all())


def dashboard_summary(db: Session) -> Dict[str, Any]:
    """Headline counts, low-stock items and the item-type distribution."""

    def count(model) -> int:
        return int(db.execute(select(func.count()).select_from(model)).scalar_one())

    low_stock = db.execute(
        select(InventoryItem.item_id, InventoryItem.item_name, InventoryItem.quantity)
        .where(InventoryItem.quantity < settings.LOW_STOCK_THRESHOLD)
        .order_by(InventoryItem.quantity, InventoryItem.item_name)
        .limit(10)
    ).all()
    categories = db.execute(
        select(InventoryItem.item_type, func.count().label("count"))
        .group_by(InventoryItem.item_type)
        .order_by(desc("count"), InventoryItem.item_type)
    ).all()
    return {
        "total_items": count(InventoryItem),
        "total_deliveries": count(Delivery),
        "total_checkouts": count(Checkout),
        "total_returns": count(ReturnRecord),
        "total_users": count(User),
        "low_stock_items": [
            {"item_id": row.item_id, "item_name": row.item_name, "quantity": row.quantity} for row in low_stock
        ],
        "category_distribution": [{"item_type": row.item_type, "count": int(row.count)} for row in categories],
    }


def top_checked_out(db: Session, limit: int = 5) -> List[Dict[str, Any]]:
    total = func.sum(CheckoutItem.quantity).label("total_checked_out")
    stmt = (
        select(CheckoutItem.item_name, total)
        .group_by(CheckoutItem.item_name)
        .order_by(desc(total), CheckoutItem.item_name)
        .limit(limit)
    )
    return [{"item_name": row.item_name, "total_checked_out": int(row.total_checked_out)} for row in db.execute(stmt)]


def recent_activity(db: Session, limit: int = 6) -> List[Dict[str, Any]]:
    """Latest deliveries and checkouts merged newest first."""

    deliveries = (
        db.execute(select(Delivery).order_by(desc(Delivery.created_at), desc(Delivery.id)).limit(3)).scalars().all()
    )
    checkouts = (
        db.execute(select(Checkout).order_by(desc(Checkout.created_at), desc(Checkout.id)).limit(3)).scalars().all()
    )
    entries = [
        {
            "user": delivery.received_by,
            "action": "delivered",
            "item_name": delivery.items[0].item_name if delivery.items else "Unknown",
            "date": delivery.created_at,
        }
        for delivery in deliveries
    ]
    entries.extend(
        {
            "user": checkout.issued_by,
            "action": "checked out",
            "item_name": checkout.items[0].item_name if checkout.items else "Unknown",
            "date": checkout.created_at,
        }
        for checkout in checkouts
    )
    entries.sort(key=lambda entry: entry["date"], reverse=True)
    return entries[:limit]


__all__ = [
    "checkout_rows",
    "dashboard_summary",
    "delivery_rows",
    "inventory_rows",
    "recent_activity",
    "return_rows",
    "summarize_stock",
    "top_checked_out",
]

"""Inventory catalog: item identity, lookups and the single quantity mutation path."""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import desc, or_, select, update
from sqlalchemy.orm import Session

from ..core.barcodes import normalize_barcode
from ..core.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from ..core.pagination import paginate_query
from ..db.transactions import atomic
from ..models.catalog import InventoryItem
from ..services.sequences import next_item_id
from ..services.timecalc import iso_timestamp

REQUIRED_FIELDS = ("item_type", "item_name", "barcode", "added_by")
EDITABLE_FIELDS = ("item_type", "item_name", "size_or_source", "grade_level", "barcode")
# Written only by the ledger (quantity) or the sequence generator (item_id).
PROTECTED_FIELDS = ("quantity", "item_id")


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def find_by_id(db: Session, item_id: str, *, for_update: bool = False) -> InventoryItem | None:
    """Fetch an item by its catalog id, optionally row-locked for the caller's transaction."""

    stmt = select(InventoryItem).where(InventoryItem.item_id == item_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return db.execute(stmt).scalars().first()


def find_by_barcode(db: Session, barcode: str) -> InventoryItem | None:
    normalized = normalize_barcode(barcode)
    if not normalized:
        return None
    stmt = select(InventoryItem).where(InventoryItem.barcode == normalized)
    return db.execute(stmt).scalars().first()


def bulk_find_by_ids(db: Session, item_ids: Iterable[str]) -> dict[str, InventoryItem]:
    ids = {item_id for item_id in item_ids if item_id}
    if not ids:
        return {}
    stmt = select(InventoryItem).where(InventoryItem.item_id.in_(ids))
    return {item.item_id: item for item in db.execute(stmt).scalars().all()}


def existing_barcodes(db: Session, barcodes: Iterable[str]) -> set[str]:
    values = {code for code in barcodes if code}
    if not values:
        return set()
    stmt = select(InventoryItem.barcode).where(InventoryItem.barcode.in_(values))
    return set(db.execute(stmt).scalars().all())


def require_item(db: Session, item_id: str) -> InventoryItem:
    item = find_by_id(db, item_id)
    if not item:
        raise NotFoundError(f"Item {item_id} not found in inventory.", entity="inventory_item", key=item_id)
    return item


def list_items(
    db: Session,
    *,
    search: str | None = None,
    item_type: str | None = None,
    page: int | None = 1,
    limit: int | None = None,
    all_rows: bool = False,
) -> dict[str, Any]:
    """Newest-first catalog listing with optional type filter and free-text search."""

    stmt = select(InventoryItem).order_by(desc(InventoryItem.created_at), desc(InventoryItem.id))
    kind = _clean(item_type)
    if kind and kind != "All":
        stmt = stmt.where(InventoryItem.item_type == kind)
    term = _clean(search)
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(
            or_(
                InventoryItem.item_name.ilike(pattern),
                InventoryItem.item_type.ilike(pattern),
                InventoryItem.size_or_source.ilike(pattern),
                InventoryItem.grade_level.ilike(pattern),
                InventoryItem.barcode.ilike(pattern),
            )
        )
    return paginate_query(db, stmt, page=page, limit=limit, all_rows=all_rows)


def build_item(db: Session, data: dict[str, Any], *, quantity: int = 0) -> InventoryItem:
    """Assign an id and construct an item; the caller adds it inside its transaction."""

    now = iso_timestamp()
    return InventoryItem(
        item_id=next_item_id(db),
        item_type=data["item_type"],
        item_name=data["item_name"],
        size_or_source=data.get("size_or_source") or None,
        grade_level=data.get("grade_level") or None,
        barcode=data["barcode"],
        quantity=quantity,
        added_by=data["added_by"],
        created_at=now,
        updated_at=now,
    )


def create_item(db: Session, payload: dict) -> InventoryItem:
    """
    Add a single catalog item with zero stock.
    Raises ValidationError for missing fields and ConflictError for a taken barcode.
    """
    data = {key: _clean(payload.get(key)) for key in (*REQUIRED_FIELDS, "size_or_source", "grade_level")}
    data["barcode"] = normalize_barcode(payload.get("barcode")) or ""
    missing = [key for key in REQUIRED_FIELDS if not data[key]]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}.", missing=missing)

    with atomic(db, "catalog.create"):
        if find_by_barcode(db, data["barcode"]):
            raise ConflictError("Item with this barcode already exists.", barcode=data["barcode"])
        item = build_item(db, data)
        db.add(item)
    db.refresh(item)
    return item


def update_item(db: Session, item: InventoryItem, payload: dict) -> InventoryItem:
    """
    Administrative edit of descriptive attributes.
    Unknown keys are ignored; quantity and item_id cannot be written here.
    """
    blocked = [key for key in PROTECTED_FIELDS if key in payload]
    if blocked:
        raise ValidationError(
            "quantity and item_id cannot be edited; stock changes go through deliveries, checkouts and returns.",
            fields=blocked,
        )
    with atomic(db, "catalog.update"):
        for key in EDITABLE_FIELDS:
            if key not in payload:
                continue
            value = payload[key]
            if key == "barcode":
                value = normalize_barcode(value)
                if not value:
                    raise ValidationError("barcode is required for inventory items")
                other = find_by_barcode(db, value)
                if other is not None and other.id != item.id:
                    raise ConflictError("Item with this barcode already exists.", barcode=value)
            elif key in ("item_type", "item_name"):
                value = _clean(value)
                if not value:
                    raise ValidationError(f"{key} cannot be blank")
            else:
                value = _clean(value) or None
            setattr(item, key, value)
        item.updated_at = iso_timestamp()
    db.refresh(item)
    return item


def delete_item(db: Session, item: InventoryItem) -> None:
    """Remove an item from the catalog. Movement history keeps its own snapshots."""

    with atomic(db, "catalog.delete"):
        db.delete(item)


def adjust_quantity(db: Session, item_id: str, delta: int) -> int:
    """Apply ``delta`` to an item's stock inside the caller's transaction.

    A single conditional UPDATE performs the read-check-write, so concurrent
    callers cannot both pass the check against the same stale quantity.
    Returns the new quantity. Does not commit.
    """

    table = InventoryItem.__table__
    stmt = (
        update(table)
        .where(table.c.item_id == item_id, table.c.quantity + delta >= 0)
        .values(quantity=table.c.quantity + delta, updated_at=iso_timestamp())
        .returning(table.c.quantity)
    )
    new_quantity = db.execute(stmt).scalar_one_or_none()
    if new_quantity is not None:
        return int(new_quantity)

    current = db.execute(
        select(table.c.quantity, table.c.item_name).where(table.c.item_id == item_id)
    ).first()
    if current is None:
        raise NotFoundError(f"Item {item_id} not found in inventory.", entity="inventory_item", key=item_id)
    raise InsufficientStockError(
        item_id=item_id,
        item_name=current.item_name,
        available=int(current.quantity or 0),
        requested=-delta,
    )


__all__ = [
    "adjust_quantity",
    "build_item",
    "bulk_find_by_ids",
    "create_item",
    "delete_item",
    "existing_barcodes",
    "find_by_barcode",
    "find_by_id",
    "list_items",
    "require_item",
    "update_item",
]

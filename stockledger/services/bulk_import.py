"""Bulk catalog import with per-row failure reporting."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from sqlalchemy.orm import Session

from ..core.barcodes import normalize_barcode
from ..core.exceptions import ValidationError
from ..crud.catalog import build_item, existing_barcodes
from ..db.transactions import atomic
from .ledger import record_import_delivery

logger = logging.getLogger("stockledger.import")

IMPORT_REQUIRED = ("item_type", "item_name", "barcode")


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _row_quantity(value: Any) -> int | None:
    if value in (None, ""):
        return 0
    if isinstance(value, bool):
        return None
    try:
        quantity = int(float(value))
    except (TypeError, ValueError):
        return None
    if quantity < 0 or quantity != float(value):
        return None
    return quantity


def import_items(
    db: Session,
    rows: Sequence[Mapping[str, Any]],
    *,
    create_initial_delivery: bool = False,
    delivery_number: str | None = "initial",
    default_added_by: str = "Unknown User",
) -> dict[str, Any]:
    """Create many catalog items at once with their opening quantities.

    Invalid rows (missing fields, bad quantity, a barcode repeated in the batch
    or already in the catalog) are reported in ``failed_rows`` while the
    remaining rows are inserted together in one transaction. With
    ``create_initial_delivery`` a synthetic delivery documenting the opening
    stock is written afterwards; if that step fails the imported items stay
    and ``created_delivery_id`` is None.
    """

    if not rows:
        raise ValidationError("No items provided for bulk insert.")

    failed_rows: list[dict[str, Any]] = []
    candidates: list[tuple[int, dict[str, Any]]] = []
    seen: set[str] = set()
    for index, raw in enumerate(rows):
        row = {key: _clean(raw.get(key)) for key in ("item_type", "item_name", "size_or_source", "grade_level")}
        row["barcode"] = normalize_barcode(raw.get("barcode")) or ""
        row["added_by"] = _clean(raw.get("added_by")) or default_added_by
        missing = [key for key in IMPORT_REQUIRED if not row[key]]
        if missing:
            failed_rows.append({"index": index, "reason": f"Missing required fields: {', '.join(missing)}"})
            continue
        quantity = _row_quantity(raw.get("quantity"))
        if quantity is None:
            failed_rows.append({"index": index, "reason": "Quantity must be a non-negative whole number"})
            continue
        if row["barcode"] in seen:
            failed_rows.append({"index": index, "reason": f"Duplicate barcode in import: {row['barcode']}"})
            continue
        seen.add(row["barcode"])
        row["quantity"] = quantity
        candidates.append((index, row))

    if not candidates:
        raise ValidationError("No valid items to import after validation.", failed_rows=failed_rows)

    taken = existing_barcodes(db, [row["barcode"] for _, row in candidates])
    accepted = []
    for index, row in candidates:
        if row["barcode"] in taken:
            failed_rows.append({"index": index, "reason": f"Barcode already exists: {row['barcode']}"})
        else:
            accepted.append(row)
    failed_rows.sort(key=lambda entry: entry["index"])

    if not accepted:
        raise ValidationError("Every row failed validation or duplicate checks.", failed_rows=failed_rows)

    with atomic(db, "catalog.bulk_import"):
        inserted = []
        for row in accepted:
            item = build_item(db, row, quantity=row["quantity"])
            db.add(item)
            inserted.append(item)

    logger.info(
        "catalog.bulk_import.committed",
        extra={"extra_data": {"inserted": len(inserted), "failed": len(failed_rows), "total": len(rows)}},
    )

    created_delivery_id = None
    if create_initial_delivery:
        try:
            delivery = record_import_delivery(
                db,
                inserted,
                received_by=inserted[0].added_by or "System (Bulk Import)",
                delivery_number=delivery_number,
            )
        except Exception:
            logger.exception("catalog.bulk_import.initial_delivery_failed")
        else:
            created_delivery_id = delivery.delivery_id if delivery is not None else None

    return {
        "count": len(inserted),
        "failed_rows": failed_rows,
        "total": len(rows),
        "created_delivery_id": created_delivery_id,
        "items": inserted,
    }


__all__ = ["import_items"]

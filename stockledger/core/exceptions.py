"""Typed errors raised by the stock ledger.

Every error carries a machine readable ``code``, the HTTP status the API layer
maps it to, a human readable message and a ``details`` mapping with the
structured context (item name, requested vs. available quantity, ...).

    LedgerError
    +-- ValidationError          400  malformed or missing input
    +-- NotFoundError            404  referenced item/checkout/record absent
    +-- ConflictError            409  duplicate barcode or reference
    +-- InsufficientStockError   400  checkout would drive quantity negative
    +-- OverReturnError          400  cumulative return exceeds issued quantity
    +-- ImmutableRecordError     400  attempt to modify a committed movement
    +-- StorageUnavailableError  503  database failure (the only retriable one)
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    code = "ledger_error"
    status_code = 500
    retriable = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = {key: value for key, value in details.items() if value is not None}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LedgerError):
    code = "validation_error"
    status_code = 400


class NotFoundError(LedgerError):
    code = "not_found"
    status_code = 404

    def __init__(self, message: str, *, entity: str, key: str | None = None, **details: Any) -> None:
        super().__init__(message, entity=entity, key=key, **details)
        self.entity = entity
        self.key = key


class ConflictError(LedgerError):
    code = "conflict"
    status_code = 409


class InsufficientStockError(LedgerError):
    code = "insufficient_stock"
    status_code = 400

    def __init__(self, *, item_id: str, item_name: str | None, available: int, requested: int) -> None:
        label = item_name or item_id
        super().__init__(
            f"Not enough stock for {label}. Available: {available}, requested: {requested}.",
            item_id=item_id,
            item_name=item_name,
            available=available,
            requested=requested,
        )
        self.item_id = item_id
        self.available = available
        self.requested = requested


class OverReturnError(LedgerError):
    code = "over_return"
    status_code = 400

    def __init__(self, *, item_id: str, item_name: str | None, requested_total: int, issued: int) -> None:
        label = item_name or item_id
        super().__init__(
            f"{label}: trying to return {requested_total} but only {issued} were issued.",
            item_id=item_id,
            item_name=item_name,
            requested_total=requested_total,
            issued=issued,
        )
        self.item_id = item_id
        self.requested_total = requested_total
        self.issued = issued


class ImmutableRecordError(LedgerError):
    code = "immutable_record"
    status_code = 400


class StorageUnavailableError(LedgerError):
    code = "storage_unavailable"
    status_code = 503
    retriable = True


__all__ = [
    "ConflictError",
    "ImmutableRecordError",
    "InsufficientStockError",
    "LedgerError",
    "NotFoundError",
    "OverReturnError",
    "StorageUnavailableError",
    "ValidationError",
]

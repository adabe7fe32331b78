"""Idempotent schema touches run after ``create_all``."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

logger = logging.getLogger("stockledger.migrate")

# Composite indexes for the per-item report aggregates: table, name, columns.
LOOKUP_INDEXES = (
    ("delivery_items", "ix_delivery_items_item_date", ("item_id", "delivery_pk")),
    ("checkout_items", "ix_checkout_items_item_checkout", ("item_id", "checkout_pk")),
    ("return_items", "ix_return_items_item_return", ("item_id", "return_pk")),
    ("returns", "ix_returns_receipt_date", ("receipt_ref", "date_returned")),
)


def _index_names(engine: Engine, table: str) -> set[str] | None:
    inspector = inspect(engine)
    if not inspector.has_table(table):
        return None
    return {index["name"] for index in inspector.get_indexes(table)}


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str]) -> None:
    cols_sql = ", ".join(cols)
    with engine.begin() as conn:
        conn.execute(text(f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def run_migrations(engine: Engine) -> None:
    """Add the report lookup indexes to every table that exists and lacks them."""

    for table, name, cols in LOOKUP_INDEXES:
        existing = _index_names(engine, table)
        if existing is None or name in existing:
            continue
        _create_index_if_not_exists(engine, table, name, cols)
        logger.info("migrate.index_created", extra={"extra_data": {"table": table, "index": name}})

"""Sequence generator: race-safe, monotonically increasing ids per counter name.

``next_value`` performs the increment and the read in one statement against
the ``counters`` table (``INSERT ... ON CONFLICT DO UPDATE ... RETURNING``),
so two concurrent callers can never observe the same number. The increment
joins the caller's transaction: if the surrounding ledger operation rolls
back, the number is handed out again to the next caller.

Counter names and the identifiers built from them::

    item         ITEM-000001
    delivery     DEL-000001
    checkout     CH-000001
    transaction  TXN-20240501-000001   (suffix is a running total, never reset daily)
    return       R-20240501-000001     (same)
    user         USR-0001
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ..core.exceptions import StorageUnavailableError, ValidationError
from ..models.counter import Counter
from .timecalc import compact_date

logger = logging.getLogger("stockledger.sequences")

ITEM = "item"
DELIVERY = "delivery"
CHECKOUT = "checkout"
TRANSACTION = "transaction"
RETURN = "return"
USER = "user"

_UPSERT_DIALECTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}


def _upsert_increment(db: Session, counter_name: str) -> int:
    insert = _UPSERT_DIALECTS[db.get_bind().dialect.name]
    table = Counter.__table__
    stmt = insert(table).values(name=counter_name, seq=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.name],
        set_={"seq": table.c.seq + 1},
    ).returning(table.c.seq)
    return int(db.execute(stmt).scalar_one())


def _locked_increment(db: Session, counter_name: str) -> int:
    # Fallback for dialects without an upsert: lock the counter row, then bump it.
    counter = db.execute(
        select(Counter).where(Counter.name == counter_name).with_for_update()
    ).scalar_one_or_none()
    if counter is None:
        counter = Counter(name=counter_name, seq=0)
        db.add(counter)
        db.flush()
    counter.seq += 1
    db.flush()
    return int(counter.seq)


def next_value(db: Session, counter_name: str) -> int:
    """Return the next number for ``counter_name`` (1 for a brand new counter)."""

    name = (counter_name or "").strip()
    if not name:
        raise ValidationError("counter name is required")
    try:
        if db.get_bind().dialect.name in _UPSERT_DIALECTS:
            value = _upsert_increment(db, name)
        else:
            value = _locked_increment(db, name)
    except DBAPIError as exc:
        raise StorageUnavailableError(
            f"Could not allocate the next '{name}' number", counter=name
        ) from exc
    logger.debug("sequence.allocated", extra={"extra_data": {"counter": name, "value": value}})
    return value


def current_value(db: Session, counter_name: str) -> int:
    """Last number handed out for ``counter_name`` (0 if never used)."""

    seq = db.execute(select(Counter.seq).where(Counter.name == counter_name)).scalar_one_or_none()
    return int(seq or 0)


def next_item_id(db: Session) -> str:
    return f"ITEM-{next_value(db, ITEM):06d}"


def next_delivery_id(db: Session) -> str:
    return f"DEL-{next_value(db, DELIVERY):06d}"


def next_checkout_id(db: Session) -> str:
    return f"CH-{next_value(db, CHECKOUT):06d}"


def next_user_id(db: Session) -> str:
    return f"USR-{next_value(db, USER):04d}"


def next_transaction_no(db: Session, now: datetime | None = None) -> str:
    return f"TXN-{compact_date(now)}-{next_value(db, TRANSACTION):06d}"


def next_return_number(db: Session, now: datetime | None = None) -> str:
    return f"R-{compact_date(now)}-{next_value(db, RETURN):06d}"


__all__ = [
    "current_value",
    "next_checkout_id",
    "next_delivery_id",
    "next_item_id",
    "next_return_number",
    "next_transaction_no",
    "next_user_id",
    "next_value",
]

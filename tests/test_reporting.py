import os
import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.core.pagination import paginate_rows
from stockledger.crud.catalog import create_item
from stockledger.db.session import Base
from stockledger.services.ledger import add_checkout, add_delivery, add_return
from stockledger.services.reporting import (
    checkout_rows,
    dashboard_summary,
    delivery_rows,
    recent_activity,
    return_rows,
    summarize_stock,
    top_checked_out,
)

# Ensure models are registered so metadata tables are created
from stockledger.models import catalog as catalog_model  # noqa: F401
from stockledger.models import counter as counter_model  # noqa: F401
from stockledger.models import movements as movements_model  # noqa: F401
from stockledger.models import user as user_model  # noqa: F401

MAY_1 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
MAY_3 = datetime(2024, 5, 3, 23, 59, 30, tzinfo=timezone.utc)
MAY_10 = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def ledger(db_session):
    polo = create_item(
        db_session,
        {"item_type": "Uniform", "item_name": "Polo", "size_or_source": "M", "barcode": "P-1", "added_by": "Jamie"},
    )
    pen = create_item(
        db_session, {"item_type": "Supplies", "item_name": "Pen", "barcode": "S-1", "added_by": "Jamie"}
    )
    add_delivery(db_session, received_by="Jamie", items=[{"item_id": polo.item_id, "quantity": 10}], now=MAY_1)
    add_delivery(db_session, received_by="Jamie", items=[{"item_id": pen.item_id, "quantity": 3}], now=MAY_10)
    add_checkout(
        db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": polo.item_id, "quantity": 6}], now=MAY_3
    )
    add_return(
        db_session, receipt_ref="RCPT-1", returned_by="Lee", items=[{"item_id": polo.item_id, "quantity": 2}], now=MAY_10
    )
    return polo, pen


def test_summary_over_range(db_session, ledger):
    polo, pen = ledger

    report = summarize_stock(db_session, date(2024, 5, 1), date(2024, 5, 3), all_rows=True)

    rows = {row["item_id"]: row for row in report["summary"]}
    assert rows[polo.item_id]["total_delivered"] == 10
    assert rows[polo.item_id]["total_checked_out"] == 6
    assert rows[polo.item_id]["total_returned"] == 0
    assert rows[polo.item_id]["net_change"] == 4
    assert rows[polo.item_id]["current_stock"] == 6
    assert rows[pen.item_id]["net_change"] == 0
    assert rows[pen.item_id]["current_stock"] == 3
    assert rows[pen.item_id]["size_or_source"] == "-"
    assert report["totals"] == {"total_delivered": 10, "total_checked_out": 6, "total_returned": 0, "net_change": 4}
    assert report["date_range"] == {"from": "2024-05-01T00:00:00Z", "to": "2024-05-03T23:59:59Z"}


def test_summary_from_beginning_defaults_to_today(db_session, ledger):
    report = summarize_stock(db_session)
    assert report["date_range"]["from"] == "Beginning"
    assert report["totals"]["total_returned"] == 2
    assert report["totals"]["net_change"] == 9


def test_summary_is_idempotent(db_session, ledger):
    first = summarize_stock(db_session, date(2024, 5, 1), date(2024, 5, 31))
    second = summarize_stock(db_session, date(2024, 5, 1), date(2024, 5, 31))
    assert first == second


def test_flattened_row_reports(db_session, ledger):
    deliveries = delivery_rows(db_session)
    assert [row["date"] for row in deliveries] == ["2024-05-10", "2024-05-01"]
    assert delivery_rows(db_session, date(2024, 5, 2), date(2024, 5, 31))[0]["item_name"] == "Pen"

    checkouts = checkout_rows(db_session)
    assert checkouts[0]["receipt_no"] == "RCPT-1"
    assert checkouts[0]["issued_by"] == "Sam"

    returns = return_rows(db_session, date(2024, 5, 10), date(2024, 5, 10))
    assert returns[0]["condition"] == "Good"
    assert returns[0]["transaction_ref"].startswith("TXN-20240503-")
    assert return_rows(db_session, None, date(2024, 5, 9)) == []


def test_paginate_rows_shapes():
    rows = list(range(45))
    assert paginate_rows(rows, page=3, limit=20) == {"items": rows[40:], "total": 45, "page": 3, "pages": 3}
    assert paginate_rows(rows, page=1, limit=0)["pages"] == 1
    assert len(paginate_rows(rows, all_rows=True)["items"]) == 45
    assert paginate_rows([], page=1, limit=10) == {"items": [], "total": 0, "page": 1, "pages": 1}


def test_dashboard_summary(db_session, ledger):
    summary = dashboard_summary(db_session)

    assert summary["total_items"] == 2
    assert summary["total_deliveries"] == 2
    assert summary["total_checkouts"] == 1
    assert summary["total_returns"] == 1
    assert summary["total_users"] == 0
    assert summary["low_stock_items"] == [{"item_id": "ITEM-000002", "item_name": "Pen", "quantity": 3}]
    assert {entry["item_type"]: entry["count"] for entry in summary["category_distribution"]} == {
        "Uniform": 1,
        "Supplies": 1,
    }


def test_top_checked_out_and_recent_activity(db_session, ledger):
    assert top_checked_out(db_session) == [{"item_name": "Polo", "total_checked_out": 6}]
    activity = recent_activity(db_session)
    assert [entry["action"] for entry in activity] == ["delivered", "checked out", "delivered"]

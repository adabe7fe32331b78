import os
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.core.exceptions import (
    ConflictError,
    ImmutableRecordError,
    InsufficientStockError,
    NotFoundError,
    OverReturnError,
    ValidationError,
)
from stockledger.crud.catalog import create_item, find_by_id, update_item
from stockledger.db.session import Base, build_engine
from stockledger.models.movements import Checkout, Delivery, ReturnRecord
from stockledger.services.ledger import add_checkout, add_delivery, add_return
from stockledger.services.reconciliation import returnable_quantities, returned_quantities

# Ensure models are registered so metadata tables are created
from stockledger.models import catalog as catalog_model  # noqa: F401
from stockledger.models import counter as counter_model  # noqa: F401


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


def _item(db, barcode, name="Polo Shirt", size="M"):
    return create_item(
        db,
        {
            "item_type": "Uniform",
            "item_name": name,
            "size_or_source": size,
            "grade_level": "Grade 7",
            "barcode": barcode,
            "added_by": "Jamie",
        },
    )


def _quantity(db, item_id):
    db.expire_all()
    return find_by_id(db, item_id).quantity


def _count(db, model):
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def _stocked(db, barcode, quantity, **kwargs):
    item = _item(db, barcode, **kwargs)
    add_delivery(db, received_by="Jamie", items=[{"item_id": item.item_id, "quantity": quantity}])
    return item


def test_delivery_increases_stock(db_session):
    item = _item(db_session, "BC-1")
    assert item.item_id == "ITEM-000001"

    delivery = add_delivery(
        db_session,
        received_by="Jamie",
        supplier="Acme Textiles",
        delivery_number="DR-77",
        items=[{"item_id": "ITEM-000001", "quantity": 10}],
    )

    assert delivery.delivery_id == "DEL-000001"
    assert _quantity(db_session, "ITEM-000001") == 10
    line = delivery.items[0]
    assert (line.item_name, line.size_or_source, line.quantity) == ("Polo Shirt", "M", 10)


def test_delivery_with_unknown_item_changes_nothing(db_session):
    item = _item(db_session, "BC-1")
    with pytest.raises(NotFoundError):
        add_delivery(
            db_session,
            received_by="Jamie",
            items=[
                {"item_id": item.item_id, "quantity": 5},
                {"item_id": "ITEM-999999", "item_name": "Ghost", "quantity": 1},
            ],
        )
    assert _quantity(db_session, item.item_id) == 0
    assert _count(db_session, Delivery) == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"received_by": "", "items": [{"item_id": "ITEM-000001", "quantity": 1}]},
        {"received_by": "Jamie", "items": []},
        {"received_by": "Jamie", "items": [{"item_id": "ITEM-000001", "quantity": 0}]},
        {"received_by": "Jamie", "items": [{"item_id": "", "quantity": 2}]},
        {"received_by": "Jamie", "items": [{"item_id": "ITEM-000001", "quantity": 1.5}]},
    ],
)
def test_delivery_input_validation(db_session, kwargs):
    _item(db_session, "BC-1")
    with pytest.raises(ValidationError):
        add_delivery(db_session, **kwargs)
    assert _quantity(db_session, "ITEM-000001") == 0


def test_checkout_more_than_available_is_rejected(db_session):
    item = _stocked(db_session, "BC-1", 10)

    with pytest.raises(InsufficientStockError) as excinfo:
        add_checkout(
            db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 12}]
        )

    error = excinfo.value
    assert error.status_code == 400
    assert error.details == {"item_id": item.item_id, "item_name": "Polo Shirt", "available": 10, "requested": 12}
    assert "Available: 10, requested: 12" in error.message
    assert _quantity(db_session, item.item_id) == 10
    assert _count(db_session, Checkout) == 0


def test_checkout_is_all_or_nothing_across_lines(db_session):
    plenty = _stocked(db_session, "BC-1", 10)
    scarce = _stocked(db_session, "BC-2", 1, name="Necktie")

    with pytest.raises(InsufficientStockError):
        add_checkout(
            db_session,
            receipt_no="RCPT-9",
            issued_by="Sam",
            items=[
                {"item_id": plenty.item_id, "quantity": 4},
                {"item_id": scarce.item_id, "quantity": 2},
            ],
        )

    assert _quantity(db_session, plenty.item_id) == 10
    assert _quantity(db_session, scarce.item_id) == 1
    assert _count(db_session, Checkout) == 0


def test_checkout_same_item_on_two_lines_sees_first_decrement(db_session):
    item = _stocked(db_session, "BC-1", 5)
    with pytest.raises(InsufficientStockError):
        add_checkout(
            db_session,
            receipt_no="RCPT-2",
            issued_by="Sam",
            items=[{"item_id": item.item_id, "quantity": 3}, {"item_id": item.item_id, "quantity": 3}],
        )
    assert _quantity(db_session, item.item_id) == 5


def test_checkout_assigns_ids_and_snapshots_item(db_session):
    item = _stocked(db_session, "BC-1", 10)
    now = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

    checkout = add_checkout(
        db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 4}], now=now
    )

    assert checkout.checkout_id == "CH-000001"
    assert checkout.transaction_no == "TXN-20240501-000001"
    assert checkout.created_at == "2024-05-01T08:00:00Z"
    assert checkout.items[0].barcode == "BC-1"
    assert _quantity(db_session, item.item_id) == 6

    update_item(db_session, find_by_id(db_session, item.item_id), {"item_name": "Renamed"})
    db_session.expire_all()
    assert checkout.items[0].item_name == "Polo Shirt"


def test_checkout_duplicate_receipt_conflicts(db_session):
    item = _stocked(db_session, "BC-1", 10)
    add_checkout(db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 1}])
    with pytest.raises(ConflictError) as excinfo:
        add_checkout(
            db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 1}]
        )
    assert "each receipt may be issued once" in excinfo.value.message
    assert excinfo.value.details == {"receipt_no": "RCPT-1", "rule": "receipt_unique"}
    assert _quantity(db_session, item.item_id) == 9


def test_delivery_then_checkout_round_trip_is_net_zero(db_session):
    item = _stocked(db_session, "BC-1", 3)
    before = _quantity(db_session, item.item_id)

    add_delivery(db_session, received_by="Jamie", items=[{"item_id": item.item_id, "quantity": 7}])
    add_checkout(db_session, receipt_no="RCPT-RT", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 7}])

    assert _quantity(db_session, item.item_id) == before


def test_partial_return_then_over_return(db_session):
    item = _stocked(db_session, "BC-1", 10)
    add_checkout(db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 5}])
    assert _quantity(db_session, item.item_id) == 5

    record = add_return(
        db_session,
        receipt_ref="RCPT-1",
        returned_by="Lee",
        reason="Wrong size",
        items=[{"item_id": item.item_id, "quantity": 3, "condition": "damaged", "remarks": "torn"}],
    )
    assert record.return_number.startswith("R-")
    assert record.return_number.endswith("-000001")
    assert record.transaction_ref.startswith("TXN-")
    assert record.items[0].condition == "Damaged"
    assert _quantity(db_session, item.item_id) == 8

    with pytest.raises(OverReturnError) as excinfo:
        add_return(
            db_session, receipt_ref="RCPT-1", returned_by="Lee", items=[{"item_id": item.item_id, "quantity": 3}]
        )
    assert excinfo.value.details["requested_total"] == 6
    assert excinfo.value.details["issued"] == 5
    assert _quantity(db_session, item.item_id) == 8
    assert returned_quantities(db_session, "RCPT-1") == {item.item_id: 3}


def test_repeated_lines_in_one_return_count_toward_bound(db_session):
    item = _stocked(db_session, "BC-1", 10)
    add_checkout(db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 4}])

    with pytest.raises(OverReturnError):
        add_return(
            db_session,
            receipt_ref="RCPT-1",
            returned_by="Lee",
            items=[{"item_id": item.item_id, "quantity": 3}, {"item_id": item.item_id, "quantity": 2}],
        )
    assert _quantity(db_session, item.item_id) == 6
    assert _count(db_session, ReturnRecord) == 0


def test_return_requires_known_receipt_and_line(db_session):
    issued = _stocked(db_session, "BC-1", 10)
    other = _stocked(db_session, "BC-2", 10, name="Necktie")
    add_checkout(db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": issued.item_id, "quantity": 2}])

    with pytest.raises(NotFoundError):
        add_return(db_session, receipt_ref="NOPE", returned_by="Lee", items=[{"item_id": issued.item_id, "quantity": 1}])
    with pytest.raises(NotFoundError) as excinfo:
        add_return(
            db_session,
            receipt_ref="RCPT-1",
            returned_by="Lee",
            items=[{"item_id": issued.item_id, "quantity": 1}, {"item_id": other.item_id, "quantity": 1}],
        )
    assert "not found in checkout record" in excinfo.value.message
    assert _quantity(db_session, issued.item_id) == 8
    assert _quantity(db_session, other.item_id) == 10


def test_return_rejects_unknown_condition(db_session):
    item = _stocked(db_session, "BC-1", 3)
    add_checkout(db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 2}])
    with pytest.raises(ValidationError):
        add_return(
            db_session,
            receipt_ref="RCPT-1",
            returned_by="Lee",
            items=[{"item_id": item.item_id, "quantity": 1, "condition": "Lost"}],
        )


def test_return_copies_attributes_from_checkout_line(db_session):
    item = _stocked(db_session, "BC-1", 3, size="L")
    add_checkout(db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 2}])
    update_item(db_session, find_by_id(db_session, item.item_id), {"size_or_source": "XL", "item_name": "New"})

    record = add_return(
        db_session, receipt_ref="RCPT-1", returned_by="Lee", items=[{"item_id": item.item_id, "quantity": 2}]
    )
    line = record.items[0]
    assert (line.item_name, line.size_or_source, line.condition) == ("Polo Shirt", "L", "Good")


def test_returnable_quantities(db_session):
    item = _stocked(db_session, "BC-1", 10)
    add_checkout(db_session, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item.item_id, "quantity": 5}])
    add_return(db_session, receipt_ref="RCPT-1", returned_by="Lee", items=[{"item_id": item.item_id, "quantity": 2}])

    rows = returnable_quantities(db_session, "RCPT-1")
    assert rows == [
        {
            "item_id": item.item_id,
            "item_name": "Polo Shirt",
            "size_or_source": "M",
            "grade_level": "Grade 7",
            "issued": 5,
            "returned": 2,
            "returnable": 3,
        }
    ]
    with pytest.raises(NotFoundError):
        returnable_quantities(db_session, "RCPT-404")


def test_movement_records_are_immutable(db_session):
    item = _stocked(db_session, "BC-1", 5)
    delivery = db_session.execute(select(Delivery)).scalars().one()

    delivery.supplier = "Someone else"
    with pytest.raises(ImmutableRecordError):
        db_session.commit()
    db_session.rollback()

    delivery.items[0].quantity = 500
    with pytest.raises(ImmutableRecordError):
        db_session.commit()
    db_session.rollback()

    db_session.delete(delivery)
    with pytest.raises(ImmutableRecordError):
        db_session.commit()
    db_session.rollback()

    assert _count(db_session, Delivery) == 1
    assert _quantity(db_session, item.item_id) == 5


def test_concurrent_checkouts_never_oversell(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=engine)
    SessionFactory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    setup = SessionFactory()
    item = _stocked(setup, "BC-1", 5)
    item_id = item.item_id
    setup.close()

    def attempt(index):
        session = SessionFactory()
        try:
            add_checkout(
                session, receipt_no=f"RCPT-{index}", issued_by="Sam", items=[{"item_id": item_id, "quantity": 1}]
            )
            return "ok"
        except InsufficientStockError:
            return "short"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(attempt, range(12)))

    assert outcomes.count("ok") == 5
    assert outcomes.count("short") == 7
    check = SessionFactory()
    assert find_by_id(check, item_id).quantity == 0
    assert _count(check, Checkout) == 5
    check.close()
    engine.dispose()


def test_return_bound_sums_repeated_checkout_lines(db_session):
    item = _stocked(db_session, "BC-1", 10, name="Shirt")
    add_checkout(
        db_session,
        receipt_no="RCPT-1",
        issued_by="Sam",
        items=[{"item_id": item.item_id, "quantity": 2}, {"item_id": item.item_id, "quantity": 3}],
    )

    add_return(db_session, receipt_ref="RCPT-1", returned_by="Lee", items=[{"item_id": item.item_id, "quantity": 4}])
    assert _quantity(db_session, item.item_id) == 9

    rows = returnable_quantities(db_session, "RCPT-1")
    assert [(row["issued"], row["returned"], row["returnable"]) for row in rows] == [(5, 4, 1)]

    with pytest.raises(OverReturnError) as excinfo:
        add_return(
            db_session, receipt_ref="RCPT-1", returned_by="Lee", items=[{"item_id": item.item_id, "quantity": 2}]
        )
    assert excinfo.value.details["issued"] == 5
    assert excinfo.value.details["requested_total"] == 6
    assert _quantity(db_session, item.item_id) == 9


def test_concurrent_returns_never_exceed_issued(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'returns.db'}")
    Base.metadata.create_all(bind=engine)
    SessionFactory = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    setup = SessionFactory()
    item = _stocked(setup, "BC-1", 5)
    item_id = item.item_id
    add_checkout(setup, receipt_no="RCPT-1", issued_by="Sam", items=[{"item_id": item_id, "quantity": 5}])
    setup.close()

    def attempt(_):
        session = SessionFactory()
        try:
            add_return(session, receipt_ref="RCPT-1", returned_by="Lee", items=[{"item_id": item_id, "quantity": 1}])
            return "ok"
        except OverReturnError:
            return "over"
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(16)))

    assert outcomes.count("ok") == 5
    assert outcomes.count("over") == 11
    check = SessionFactory()
    assert find_by_id(check, item_id).quantity == 5
    assert _count(check, ReturnRecord) == 5
    assert returned_quantities(check, "RCPT-1") == {item_id: 5}
    check.close()
    engine.dispose()

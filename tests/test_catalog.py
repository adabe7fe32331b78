import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from stockledger.core.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from stockledger.crud.catalog import (
    adjust_quantity,
    bulk_find_by_ids,
    create_item,
    delete_item,
    find_by_barcode,
    find_by_id,
    list_items,
    update_item,
)
from stockledger.db.session import Base
from stockledger.services.ledger import add_delivery

# Ensure models are registered so metadata tables are created
from stockledger.models import catalog as catalog_model  # noqa: F401
from stockledger.models import counter as counter_model  # noqa: F401
from stockledger.models import movements as movements_model  # noqa: F401


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


def _item(db, barcode="BC-1", **overrides):
    payload = {
        "item_type": "Uniform",
        "item_name": "Polo Shirt",
        "size_or_source": "M",
        "grade_level": "Grade 7",
        "barcode": barcode,
        "added_by": "Jamie",
    }
    payload.update(overrides)
    return create_item(db, payload)


def test_create_item_assigns_id_and_zero_stock(db_session):
    item = _item(db_session, barcode="  4800  123 ")

    assert item.item_id == "ITEM-000001"
    assert item.quantity == 0
    assert item.barcode == "4800 123"
    assert find_by_barcode(db_session, "4800 123 ").item_id == "ITEM-000001"


def test_create_item_rejects_duplicate_barcode(db_session):
    _item(db_session, barcode="DUP")
    with pytest.raises(ConflictError):
        _item(db_session, barcode=" DUP ", item_name="Other")
    assert list_items(db_session)["total"] == 1


def test_create_item_requires_fields(db_session):
    with pytest.raises(ValidationError) as excinfo:
        create_item(db_session, {"item_type": "Book", "item_name": " ", "barcode": "X"})
    assert "item_name" in excinfo.value.details["missing"]
    assert "added_by" in excinfo.value.details["missing"]


def test_update_item_cannot_touch_quantity_or_id(db_session):
    item = _item(db_session)
    with pytest.raises(ValidationError):
        update_item(db_session, item, {"quantity": 99})
    with pytest.raises(ValidationError):
        update_item(db_session, item, {"item_id": "ITEM-999999"})
    assert find_by_id(db_session, item.item_id).quantity == 0


def test_update_item_edits_attributes_and_checks_barcode(db_session):
    first = _item(db_session, barcode="A1")
    _item(db_session, barcode="B2")

    updated = update_item(db_session, first, {"item_name": "Blouse", "grade_level": ""})
    assert updated.item_name == "Blouse"
    assert updated.grade_level is None

    with pytest.raises(ConflictError):
        update_item(db_session, first, {"barcode": "B2"})
    assert find_by_id(db_session, first.item_id).barcode == "A1"


def test_adjust_quantity_enforces_non_negative_stock(db_session):
    item = _item(db_session)

    assert adjust_quantity(db_session, item.item_id, 4) == 4
    assert adjust_quantity(db_session, item.item_id, -3) == 1
    db_session.commit()

    with pytest.raises(InsufficientStockError) as excinfo:
        adjust_quantity(db_session, item.item_id, -2)
    assert excinfo.value.details["available"] == 1
    assert excinfo.value.details["requested"] == 2
    db_session.rollback()
    assert find_by_id(db_session, item.item_id).quantity == 1


def test_adjust_quantity_unknown_item(db_session):
    with pytest.raises(NotFoundError):
        adjust_quantity(db_session, "ITEM-404404", 1)


def test_list_items_search_filter_and_pages(db_session):
    for index in range(5):
        _item(db_session, barcode=f"P-{index}", item_name=f"Pencil {index}", item_type="Supplies")
    _item(db_session, barcode="U-1", item_name="Necktie", item_type="Uniform")

    page = list_items(db_session, search="pencil", limit=2, page=2)
    assert page["total"] == 5
    assert page["pages"] == 3
    assert page["page"] == 2
    assert len(page["items"]) == 2

    assert list_items(db_session, item_type="Uniform")["total"] == 1
    assert list_items(db_session, item_type="All")["total"] == 6
    everything = list_items(db_session, all_rows=True)
    assert everything["pages"] == 1
    assert len(everything["items"]) == 6


def test_bulk_find_by_ids(db_session):
    first = _item(db_session, barcode="A")
    second = _item(db_session, barcode="B")
    found = bulk_find_by_ids(db_session, [first.item_id, second.item_id, "ITEM-999999"])
    assert set(found) == {first.item_id, second.item_id}


def test_delete_item_keeps_movement_history(db_session):
    item = _item(db_session)
    delivery = add_delivery(
        db_session, received_by="Jamie", items=[{"item_id": item.item_id, "quantity": 3}]
    )
    delete_item(db_session, item)

    assert find_by_id(db_session, item.item_id) is None
    db_session.expire_all()
    assert delivery.items[0].item_id == item.item_id
    assert delivery.items[0].item_name == "Polo Shirt"

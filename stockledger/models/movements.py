"""Movement records: the append-only ledger of deliveries, checkouts and returns.

Each record owns its line items. A line item stores a snapshot of the item's
attributes at movement time; ``item_id`` is plain text rather than a foreign
key so deleting a catalog item never rewrites history.
"""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from ..db.immutability import guard_immutable
from ..db.session import Base


class LineItemSnapshot:
    item_id = Column(Text, nullable=False, index=True)
    item_name = Column(Text, nullable=False)
    item_type = Column(Text, nullable=True)
    size_or_source = Column(Text, nullable=True)
    grade_level = Column(Text, nullable=True)
    barcode = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)


class Delivery(Base):
    __tablename__ = "deliveries"

    id = Column(Integer, primary_key=True, index=True)
    delivery_id = Column(Text, nullable=False, unique=True, index=True)
    delivery_number = Column(Text, nullable=True)
    supplier = Column(Text, nullable=True)
    received_by = Column(Text, nullable=False)
    date_received = Column(Text, nullable=False, index=True)
    created_at = Column(Text, nullable=False)

    items = relationship(
        "DeliveryItem",
        back_populates="delivery",
        order_by="DeliveryItem.position",
        lazy="selectin",
    )


class DeliveryItem(LineItemSnapshot, Base):
    __tablename__ = "delivery_items"

    id = Column(Integer, primary_key=True)
    delivery_pk = Column(Integer, ForeignKey("deliveries.id"), nullable=False, index=True)

    delivery = relationship("Delivery", back_populates="items")


class Checkout(Base):
    __tablename__ = "checkouts"

    id = Column(Integer, primary_key=True, index=True)
    checkout_id = Column(Text, nullable=False, unique=True, index=True)
    transaction_no = Column(Text, nullable=False, unique=True, index=True)
    receipt_no = Column(Text, nullable=False, unique=True, index=True)
    issued_by = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False, index=True)

    items = relationship(
        "CheckoutItem",
        back_populates="checkout",
        order_by="CheckoutItem.position",
        lazy="selectin",
    )

    def line_for(self, item_id: str) -> "CheckoutItem | None":
        return next((line for line in self.items if line.item_id == item_id), None)

    def issued_quantities(self) -> dict[str, int]:
        """Total issued per item id; an item may appear on several lines."""
        totals: dict[str, int] = {}
        for line in self.items:
            totals[line.item_id] = totals.get(line.item_id, 0) + (line.quantity or 0)
        return totals


class CheckoutItem(LineItemSnapshot, Base):
    __tablename__ = "checkout_items"

    id = Column(Integer, primary_key=True)
    checkout_pk = Column(Integer, ForeignKey("checkouts.id"), nullable=False, index=True)

    checkout = relationship("Checkout", back_populates="items")


class ReturnRecord(Base):
    __tablename__ = "returns"

    id = Column(Integer, primary_key=True, index=True)
    return_number = Column(Text, nullable=False, unique=True, index=True)
    receipt_ref = Column(Text, nullable=False, index=True)
    transaction_ref = Column(Text, nullable=True)
    returned_by = Column(Text, nullable=False)
    reason = Column(Text, nullable=False, default="")
    date_returned = Column(Text, nullable=False, index=True)
    created_at = Column(Text, nullable=False)

    items = relationship(
        "ReturnItem",
        back_populates="return_record",
        order_by="ReturnItem.position",
        lazy="selectin",
    )


class ReturnItem(LineItemSnapshot, Base):
    __tablename__ = "return_items"

    id = Column(Integer, primary_key=True)
    return_pk = Column(Integer, ForeignKey("returns.id"), nullable=False, index=True)
    condition = Column(Text, nullable=False, default="Good")
    remarks = Column(Text, nullable=False, default="")

    return_record = relationship("ReturnRecord", back_populates="items")


MOVEMENT_MODELS = (Delivery, DeliveryItem, Checkout, CheckoutItem, ReturnRecord, ReturnItem)
guard_immutable(*MOVEMENT_MODELS)

__all__ = [
    "Checkout",
    "CheckoutItem",
    "Delivery",
    "DeliveryItem",
    "LineItemSnapshot",
    "MOVEMENT_MODELS",
    "ReturnItem",
    "ReturnRecord",
]

"""The inventory catalog: one row per stocked item with its live quantity."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, Integer, Text

from ..db.session import Base


class InventoryItem(Base):
    """Current stock for a single item.

    ``quantity`` is a cached projection of the movement ledger; only
    :func:`stockledger.crud.catalog.adjust_quantity` (and the initial value of a
    bulk import) ever write it.
    """

    __tablename__ = "inventory_items"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity_nonnegative"),)

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Text, nullable=False, unique=True, index=True)
    barcode = Column(Text, nullable=False, unique=True, index=True)
    item_type = Column(Text, nullable=False)
    item_name = Column(Text, nullable=False)
    size_or_source = Column(Text, nullable=True)
    grade_level = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    added_by = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    def snapshot(self) -> dict[str, object]:
        """Attributes copied into a movement line item at movement time."""

        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "item_type": self.item_type or "-",
            "size_or_source": self.size_or_source or "-",
            "grade_level": self.grade_level or "-",
            "barcode": self.barcode or "-",
        }


__all__ = ["InventoryItem"]

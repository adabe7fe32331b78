from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from .inventory import ItemOut


class DateRange(BaseModel):
    from_: str = Field(alias="from")
    to: str

    model_config = {"populate_by_name": True}


class SummaryRow(BaseModel):
    item_id: str
    item_name: str
    size_or_source: str
    grade_level: str
    total_delivered: int
    total_checked_out: int
    total_returned: int
    net_change: int
    current_stock: int


class SummaryTotals(BaseModel):
    total_delivered: int
    total_checked_out: int
    total_returned: int
    net_change: int


class SummaryReport(BaseModel):
    date_range: DateRange
    summary: list[SummaryRow]
    totals: SummaryTotals
    total: int
    page: int
    pages: int


class RowPage(BaseModel):
    items: list[dict[str, Any]]
    total: int
    page: int
    pages: int


class InventoryReport(BaseModel):
    items: list[ItemOut]
    total: int
    page: int
    pages: int


class LowStockItem(BaseModel):
    item_id: str
    item_name: str
    quantity: int


class CategoryCount(BaseModel):
    item_type: Optional[str] = None
    count: int


class DashboardSummary(BaseModel):
    total_items: int
    total_deliveries: int
    total_checkouts: int
    total_returns: int
    total_users: int
    low_stock_items: list[LowStockItem]
    category_distribution: list[CategoryCount]


class TopItem(BaseModel):
    item_name: str
    total_checked_out: int


class ActivityEntry(BaseModel):
    user: str
    action: str
    item_name: str
    date: str

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field


class ItemBase(BaseModel):
    item_type: str
    item_name: str
    size_or_source: Optional[str] = None
    grade_level: Optional[str] = None
    barcode: str


class ItemCreate(ItemBase):
    added_by: Optional[str] = None


class ItemUpdate(BaseModel):
    item_type: Optional[str] = None
    item_name: Optional[str] = None
    size_or_source: Optional[str] = None
    grade_level: Optional[str] = None
    barcode: Optional[str] = None
    # Accepted only so the catalog can reject them with a clear message.
    quantity: Optional[int] = None
    item_id: Optional[str] = None


class ItemOut(ItemBase):
    item_id: str
    quantity: int
    added_by: str
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True


class ItemPage(BaseModel):
    items: list[ItemOut]
    total: int
    page: int
    pages: int


class BulkRow(BaseModel):
    item_type: Optional[str] = None
    item_name: Optional[str] = None
    size_or_source: Optional[str] = None
    grade_level: Optional[str] = None
    barcode: Optional[Union[str, int]] = None
    quantity: Optional[Union[int, float, str]] = 0
    added_by: Optional[str] = None


class BulkImportRequest(BaseModel):
    items: list[BulkRow] = Field(default_factory=list)
    create_initial_delivery: bool = False
    delivery_number: Optional[str] = "initial"

    model_config = {
        "json_schema_extra": {
            "example": {
                "items": [
                    {"item_type": "Uniform", "item_name": "Polo", "size_or_source": "M", "barcode": "4800001", "quantity": 12}
                ],
                "create_initial_delivery": True,
            }
        }
    }


class FailedRow(BaseModel):
    index: int
    reason: str


class BulkImportResult(BaseModel):
    message: str
    count: int
    total: int
    failed_rows: list[FailedRow]
    created_delivery_id: Optional[str] = None

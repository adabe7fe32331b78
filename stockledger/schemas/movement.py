from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class LineItemIn(BaseModel):
    item_id: str
    quantity: int
    item_name: Optional[str] = None
    item_type: Optional[str] = None
    size_or_source: Optional[str] = None
    grade_level: Optional[str] = None
    barcode: Optional[str] = None


class LineItemOut(BaseModel):
    item_id: str
    item_name: str
    item_type: Optional[str] = None
    size_or_source: Optional[str] = None
    grade_level: Optional[str] = None
    barcode: Optional[str] = None
    quantity: int

    class Config:
        from_attributes = True


class DeliveryCreate(BaseModel):
    delivery_number: Optional[str] = None
    supplier: Optional[str] = None
    received_by: Optional[str] = None
    items: list[LineItemIn] = Field(default_factory=list)


class DeliveryOut(BaseModel):
    delivery_id: str
    delivery_number: Optional[str] = None
    supplier: Optional[str] = None
    received_by: str
    date_received: str
    items: list[LineItemOut]

    class Config:
        from_attributes = True


class DeliveryPage(BaseModel):
    items: list[DeliveryOut]
    total: int
    page: int
    pages: int


class CheckoutCreate(BaseModel):
    receipt_no: str
    issued_by: Optional[str] = None
    items: list[LineItemIn] = Field(default_factory=list)


class CheckoutOut(BaseModel):
    checkout_id: str
    transaction_no: str
    receipt_no: str
    issued_by: str
    created_at: str
    items: list[LineItemOut]

    class Config:
        from_attributes = True


class CheckoutPage(BaseModel):
    items: list[CheckoutOut]
    total: int
    page: int
    pages: int


class ReturnableLine(BaseModel):
    item_id: str
    item_name: str
    size_or_source: Optional[str] = None
    grade_level: Optional[str] = None
    issued: int
    returned: int
    returnable: int


class ReturnLineIn(BaseModel):
    item_id: str
    quantity: int
    item_name: Optional[str] = None
    condition: Optional[str] = "Good"
    remarks: Optional[str] = ""


class ReturnLineOut(LineItemOut):
    condition: str
    remarks: str = ""


class ReturnCreate(BaseModel):
    receipt_ref: str
    returned_by: Optional[str] = None
    reason: Optional[str] = ""
    items: list[ReturnLineIn] = Field(default_factory=list)


class ReturnOut(BaseModel):
    return_number: str
    receipt_ref: str
    transaction_ref: Optional[str] = None
    returned_by: str
    reason: str = ""
    date_returned: str
    items: list[ReturnLineOut]

    class Config:
        from_attributes = True


class ReturnPage(BaseModel):
    items: list[ReturnOut]
    total: int
    page: int
    pages: int

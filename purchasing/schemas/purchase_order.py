import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from purchasing.models.purchase_order import Currency, PurchaseOrderStatus, RequestType


class PoItemInput(BaseModel):
    """One order line: a catalog item by id, or an inline code/name pair."""

    model_config = ConfigDict(extra="forbid")

    item_id: Optional[uuid.UUID] = None
    item_code: Optional[str] = Field(None, max_length=50)
    item_name: Optional[str] = Field(None, max_length=200)
    quantity: Decimal = Field(..., gt=0)
    unit: Optional[str] = Field(None, max_length=30)
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[Currency] = None

    @model_validator(mode="after")
    def _item_reference(self):
        if self.item_id is None:
            if not (self.item_code and self.item_name):
                raise ValueError("item_id or both item_code and item_name are required")
            if not self.unit:
                raise ValueError("unit is required for items outside the catalog")
        return self


class PurchaseOrderCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    department: str = Field(..., min_length=1, max_length=200)
    request_date: date
    request_type: RequestType
    requester_name: str = Field(..., min_length=1, max_length=200)
    execution_date: Optional[date] = None
    notes: Optional[str] = None
    supplier_id: Optional[uuid.UUID] = None
    attachment_url: Optional[str] = None
    currency: Currency = Currency.SYP
    items: List[PoItemInput] = Field(default_factory=list)


class PurchaseOrderUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    department: Optional[str] = Field(None, min_length=1, max_length=200)
    request_date: Optional[date] = None
    request_type: Optional[RequestType] = None
    requester_name: Optional[str] = Field(None, min_length=1, max_length=200)
    execution_date: Optional[date] = None
    notes: Optional[str] = None
    supplier_id: Optional[uuid.UUID] = None
    attachment_url: Optional[str] = None
    currency: Optional[Currency] = None
    items: Optional[List[PoItemInput]] = None
    expected_version: Optional[int] = None


class TransitionRequest(BaseModel):
    expected_version: Optional[int] = None


class RejectRequest(TransitionRequest):
    reason: Optional[str] = None


class ReceiptLine(BaseModel):
    item_id: uuid.UUID
    received_quantity: Decimal = Field(..., ge=0)


class CompleteRequest(TransitionRequest):
    received: List[ReceiptLine] = Field(default_factory=list)


class ReceiptRequest(TransitionRequest):
    lines: List[ReceiptLine] = Field(..., min_length=1)


class PoItemResponse(BaseModel):
    id: str
    line_number: int
    item_id: Optional[str] = None
    item_code: Optional[str] = None
    item_name: Optional[str] = None
    quantity: float
    unit: str
    received_quantity: Optional[float] = None
    price: Optional[float] = None
    line_total: float
    currency: str

    model_config = {"from_attributes": True}


class PurchaseOrderResponse(BaseModel):
    id: str
    number: str
    department: str
    request_date: str
    request_type: str
    requester_name: str
    execution_date: Optional[str] = None
    status: PurchaseOrderStatus
    notes: Optional[str] = None
    supplier_id: Optional[str] = None
    attachment_url: Optional[str] = None
    total_amount: float
    currency: str
    created_by: str
    version: int
    items: List[PoItemResponse] = []
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from purchasing.models.vendor import CatalogStatus


class VendorCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    contact_person: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=3, max_length=30)
    email: Optional[EmailStr] = None
    address: str = Field(..., min_length=1)
    notes: Optional[str] = None
    rating: Optional[Decimal] = Field(None, ge=0, le=5)
    status: CatalogStatus = CatalogStatus.ACTIVE


class VendorUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    contact_person: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, min_length=3, max_length=30)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None
    rating: Optional[Decimal] = Field(None, ge=0, le=5)
    status: Optional[CatalogStatus] = None


class VendorResponse(BaseModel):
    id: str
    name: str
    contact_person: str
    phone: str
    email: Optional[str] = None
    address: str
    notes: Optional[str] = None
    rating: Optional[float] = None
    status: str
    version: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}

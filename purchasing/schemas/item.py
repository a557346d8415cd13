from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from purchasing.models.vendor import CatalogStatus


class ItemCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    unit: str = Field(..., min_length=1, max_length=30)
    description: Optional[str] = None
    status: CatalogStatus = CatalogStatus.ACTIVE


class ItemUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    unit: Optional[str] = Field(None, min_length=1, max_length=30)
    description: Optional[str] = None
    status: Optional[CatalogStatus] = None


class ItemResponse(BaseModel):
    id: str
    name: str
    code: str
    unit: str
    description: Optional[str] = None
    status: str
    version: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}

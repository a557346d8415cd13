"""
Change request payloads as tagged variants.

One model per (entity_type, operation_type) pair; the union is discriminated
on the ``"<entity_type>:<operation_type>"`` tag, so an update can never
carry a create-shaped payload and ``entity_id`` is present exactly when the
operation needs a target.
"""

import enum
import uuid
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter

from purchasing.models.change_request import CatalogEntityType, OperationType
from purchasing.schemas.item import ItemCreate, ItemUpdate
from purchasing.schemas.vendor import VendorCreate, VendorUpdate


class EmptyData(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _Change(BaseModel):
    model_config = ConfigDict(extra="forbid")


class VendorCreateChange(_Change):
    entity_type: Literal["vendor"] = "vendor"
    operation_type: Literal["create"] = "create"
    entity_id: None = None
    data: VendorCreate


class VendorUpdateChange(_Change):
    entity_type: Literal["vendor"] = "vendor"
    operation_type: Literal["update"] = "update"
    entity_id: uuid.UUID
    data: VendorUpdate


class VendorDeleteChange(_Change):
    entity_type: Literal["vendor"] = "vendor"
    operation_type: Literal["delete"] = "delete"
    entity_id: uuid.UUID
    data: EmptyData = Field(default_factory=EmptyData)


class ItemCreateChange(_Change):
    entity_type: Literal["item"] = "item"
    operation_type: Literal["create"] = "create"
    entity_id: None = None
    data: ItemCreate


class ItemUpdateChange(_Change):
    entity_type: Literal["item"] = "item"
    operation_type: Literal["update"] = "update"
    entity_id: uuid.UUID
    data: ItemUpdate


class ItemDeleteChange(_Change):
    entity_type: Literal["item"] = "item"
    operation_type: Literal["delete"] = "delete"
    entity_id: uuid.UUID
    data: EmptyData = Field(default_factory=EmptyData)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


def change_tag(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        entity_type, operation_type = value.get("entity_type"), value.get("operation_type")
    else:
        entity_type = getattr(value, "entity_type", None)
        operation_type = getattr(value, "operation_type", None)
    if entity_type is None or operation_type is None:
        return None
    return f"{_plain(entity_type)}:{_plain(operation_type)}"


ChangePayload = Annotated[
    Union[
        Annotated[VendorCreateChange, Tag("vendor:create")],
        Annotated[VendorUpdateChange, Tag("vendor:update")],
        Annotated[VendorDeleteChange, Tag("vendor:delete")],
        Annotated[ItemCreateChange, Tag("item:create")],
        Annotated[ItemUpdateChange, Tag("item:update")],
        Annotated[ItemDeleteChange, Tag("item:delete")],
    ],
    Discriminator(change_tag),
]

change_payload_adapter: TypeAdapter = TypeAdapter(ChangePayload)


def stored_data(change) -> dict:
    """JSON form persisted on the change request; patches keep only set fields."""
    return change.data.model_dump(mode="json", exclude_unset=change.operation_type == "update")


class ChangeRequestCreate(BaseModel):
    entity_type: CatalogEntityType
    operation_type: OperationType
    entity_id: Optional[uuid.UUID] = None
    data: dict = Field(default_factory=dict)


class ResolveRequest(BaseModel):
    reason: Optional[str] = None
    expected_version: Optional[int] = None


class ChangeRequestResponse(BaseModel):
    id: str
    entity_type: str
    operation_type: str
    entity_id: Optional[str] = None
    data: dict
    status: str
    requested_by: str
    approved_by: Optional[str] = None
    reason: Optional[str] = None
    resolved_at: Optional[str] = None
    version: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}

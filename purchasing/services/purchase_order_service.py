"""
Purchase order records outside the status machine: creation with number
assignment, editing while draft or rejected, receipt recording and
role-scoped reads. Status changes go through PurchaseOrderWorkflow.
"""

import enum
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog

from purchasing.config import settings
from purchasing.database import utcnow
from purchasing.errors import InvalidState, NotFound, ValidationError
from purchasing.models.purchase_order import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderStatus,
)
from purchasing.models.vendor import CatalogStatus
from purchasing.schemas.purchase_order import PoItemInput, PurchaseOrderCreate, PurchaseOrderUpdate
from purchasing.services.audit_service import AuditEmitter, AuditEntry, emit_audit, snapshot
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.entity_store import EntityStore
from purchasing.services.guards import (
    Actor,
    apply_receipts,
    recompute_totals,
    require_owner,
    require_permission,
    require_version,
)
from purchasing.services.locks import EntityLocks
from purchasing.services.workflow_engine import EDITABLE_STATES

logger = structlog.get_logger()

RESOURCE = "purchase_order"
REQUIRED_FIELDS = frozenset({"department", "request_date", "request_type", "requester_name", "currency"})


def number_prefix(today: date, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.PO_NUMBER_PREFIX}-{today:%y}-{today:%m}-"


def _plain(value):
    return value.value if isinstance(value, enum.Enum) else value


class PurchaseOrderService:
    def __init__(
        self,
        store: EntityStore,
        oracle: RoleAuthorizationOracle,
        audit: AuditEmitter,
        locks: EntityLocks,
    ):
        self.store = store
        self.oracle = oracle
        self.audit = audit
        self.locks = locks

    async def _active(self, entity_type: str, entity_id: uuid.UUID, field: str):
        entity = await self.store.find(entity_type, entity_id)
        if entity is None or entity.status != CatalogStatus.ACTIVE.value:
            raise ValidationError(
                f"{field} must reference an active {entity_type}",
                details={"field": field, "value": str(entity_id)},
            )
        return entity

    async def _next_number(self, today: date) -> str:
        prefix = number_prefix(today)
        count = await self.store.count(
            RESOURCE, where=[PurchaseOrder.number.startswith(prefix, autoescape=True)]
        )
        return f"{prefix}{count + 1:04d}"

    async def _build_items(
        self, order_id: uuid.UUID, currency: str, lines: list[PoItemInput]
    ) -> list[PurchaseOrderItem]:
        items = []
        for line_number, line in enumerate(lines, start=1):
            code, name, unit = line.item_code, line.item_name, line.unit
            if line.item_id is not None:
                catalog_item = await self._active("item", line.item_id, f"items[{line_number - 1}].item_id")
                code = code or catalog_item.code
                name = name or catalog_item.name
                unit = unit or catalog_item.unit
            items.append(
                PurchaseOrderItem(
                    id=uuid.uuid4(),
                    purchase_order_id=order_id,
                    line_number=line_number,
                    item_id=line.item_id,
                    item_code=code,
                    item_name=name,
                    quantity=line.quantity,
                    unit=unit,
                    price=line.price,
                    currency=_plain(line.currency) or currency,
                )
            )
        return items

    async def _insert_items(self, items: list[PurchaseOrderItem]) -> None:
        for item in items:
            await self.store.insert("purchase_order_item", item)

    async def create(self, actor: Actor, payload: PurchaseOrderCreate) -> PurchaseOrder:
        require_permission(self.oracle, actor, "create", RESOURCE)

        async with self.store.transaction():
            if payload.supplier_id is not None:
                await self._active("vendor", payload.supplier_id, "supplier_id")

            now = utcnow()
            order = PurchaseOrder(
                id=uuid.uuid4(),
                number=await self._next_number(now.date()),
                department=payload.department,
                request_date=payload.request_date,
                request_type=_plain(payload.request_type),
                requester_name=payload.requester_name,
                execution_date=payload.execution_date,
                status=PurchaseOrderStatus.DRAFT.value,
                notes=payload.notes,
                supplier_id=payload.supplier_id,
                attachment_url=payload.attachment_url,
                currency=_plain(payload.currency),
                created_by=actor.id,
                created_at=now,
                updated_at=now,
            )
            items = await self._build_items(order.id, order.currency, payload.items)
            recompute_totals(order, items)
            await self.store.insert(RESOURCE, order)
            await self._insert_items(items)

            await emit_audit(
                self.audit,
                AuditEntry(
                    actor_id=actor.id,
                    actor_email=actor.email,
                    action="create_purchase_order",
                    entity_type=RESOURCE,
                    entity_id=order.id,
                    after_state={"status": order.status},
                    details={
                        "number": order.number,
                        "total_amount": order.total_amount,
                        "items_count": len(items),
                    },
                ),
            )

        logger.info(
            "po_created",
            po_id=str(order.id),
            number=order.number,
            items_count=len(items),
            created_by=str(actor.id),
        )
        return order

    async def update(
        self,
        actor: Actor,
        order_id: uuid.UUID,
        patch: PurchaseOrderUpdate,
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        """Edit a draft or rejected order; ``items``, when given, replaces every line."""
        require_permission(self.oracle, actor, "update", RESOURCE)
        if expected_version is None:
            expected_version = patch.expected_version

        async with self.locks.hold(RESOURCE, order_id):
            async with self.store.transaction():
                order = await self.store.get(RESOURCE, order_id, for_update=True)
                loaded_version = order.version
                require_version(order, expected_version)
                if PurchaseOrderStatus(order.status) not in EDITABLE_STATES:
                    raise InvalidState(
                        f"Cannot edit a purchase order in '{order.status}' status",
                        details={"status": order.status, "editable": sorted(s.value for s in EDITABLE_STATES)},
                    )
                require_owner(actor, order.created_by)

                values = {
                    k: _plain(v)
                    for k, v in patch.model_dump(exclude_unset=True, exclude={"items", "expected_version"}).items()
                }
                nulled = sorted(k for k, v in values.items() if v is None and k in REQUIRED_FIELDS)
                if nulled:
                    raise ValidationError("Required fields cannot be cleared", details={"fields": nulled})
                if values.get("supplier_id") is not None:
                    await self._active("vendor", values["supplier_id"], "supplier_id")

                before = snapshot(order)
                # lines first: their queries autoflush any pending order changes
                if patch.items is not None:
                    await self.store.delete_where("purchase_order_item", {"purchase_order_id": order.id})
                    items = await self._build_items(
                        order.id, values.get("currency", order.currency), patch.items
                    )
                    await self._insert_items(items)
                else:
                    items = await self.store.items_for(order.id)

                for key, value in values.items():
                    setattr(order, key, value)
                recompute_totals(order, items)
                order.updated_at = utcnow()
                await self.store.put(RESOURCE, order.id, order, loaded_version)

                await emit_audit(
                    self.audit,
                    AuditEntry(
                        actor_id=actor.id,
                        actor_email=actor.email,
                        action="update_purchase_order",
                        entity_type=RESOURCE,
                        entity_id=order.id,
                        before_state=before,
                        after_state=snapshot(order),
                        details={
                            "number": order.number,
                            "items_count": len(items),
                            "items_replaced": patch.items is not None,
                        },
                    ),
                )

        logger.info("po_updated", po_id=str(order.id), number=order.number, actor_id=str(actor.id))
        return order

    async def record_receipt(
        self,
        actor: Actor,
        order_id: uuid.UUID,
        received: dict[uuid.UUID, Decimal],
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        require_permission(self.oracle, actor, "record_receipt", RESOURCE)
        if not received:
            raise ValidationError("At least one receipt line is required")

        async with self.locks.hold(RESOURCE, order_id):
            async with self.store.transaction():
                order = await self.store.get(RESOURCE, order_id, for_update=True)
                loaded_version = order.version
                require_version(order, expected_version)
                if order.status != PurchaseOrderStatus.IN_PROGRESS.value:
                    raise InvalidState(
                        f"Receipts can only be recorded while in progress, not '{order.status}'",
                        details={"status": order.status},
                    )

                items = await self.store.items_for(order.id)
                apply_receipts(items, received)
                order.updated_at = utcnow()
                await self.store.put(RESOURCE, order.id, order, loaded_version)

                await emit_audit(
                    self.audit,
                    AuditEntry(
                        actor_id=actor.id,
                        actor_email=actor.email,
                        action="record_receipt",
                        entity_type=RESOURCE,
                        entity_id=order.id,
                        details={
                            "number": order.number,
                            "lines": [
                                {"item_id": line_id, "received_quantity": qty}
                                for line_id, qty in received.items()
                            ],
                        },
                    ),
                )

        logger.info("po_receipt_recorded", po_id=str(order.id), lines=len(received), actor_id=str(actor.id))
        return order

    async def get(self, actor: Actor, order_id: uuid.UUID) -> PurchaseOrder:
        """Employees see their own orders only; others read as NotFound."""
        require_permission(self.oracle, actor, "read", RESOURCE)
        order = await self.store.get(RESOURCE, order_id)
        if actor.is_employee and order.created_by != actor.id:
            raise NotFound(
                "Purchase order not found",
                details={"entity_type": RESOURCE, "entity_id": str(order_id)},
            )
        return order

    async def items(self, order: PurchaseOrder) -> list[PurchaseOrderItem]:
        return await self.store.items_for(order.id)

    async def list(
        self,
        actor: Actor,
        status: Optional[str] = None,
        supplier_id: Optional[uuid.UUID] = None,
        department: Optional[str] = None,
        created_by: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[PurchaseOrder], int]:
        require_permission(self.oracle, actor, "read", RESOURCE)
        if actor.is_employee:
            created_by = actor.id

        filters = {
            "status": status,
            "supplier_id": supplier_id,
            "department": department,
            "created_by": created_by,
        }
        where = []
        if from_date:
            where.append(PurchaseOrder.request_date >= from_date)
        if to_date:
            where.append(PurchaseOrder.request_date <= to_date)

        total = await self.store.count(RESOURCE, filters, where=where)
        rows = await self.store.list(
            RESOURCE,
            filters,
            where=where,
            order_by=(PurchaseOrder.created_at.desc(), PurchaseOrder.number.desc()),
            limit=limit,
            offset=offset,
        )
        return rows, total

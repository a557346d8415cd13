"""
Change request approval workflow.

    pending ─approve─▶ approved   (catalog change applied in the same transaction)
            └reject──▶ rejected   (nothing applied; reason required)

Resolved requests are immutable. Approving a delete archives the target.
"""

import uuid
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
import structlog

from purchasing.database import utcnow
from purchasing.errors import InvalidState, NotFound, ValidationError
from purchasing.models.change_request import ChangeRequest, ChangeRequestStatus
from purchasing.schemas.change_request import change_payload_adapter, stored_data
from purchasing.services.audit_service import AuditEmitter, AuditEntry, emit_audit, snapshot
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.catalog_service import CatalogService
from purchasing.services.entity_store import EntityStore
from purchasing.services.guards import (
    Actor,
    require_permission,
    require_reason,
    require_version,
)
from purchasing.services.locks import EntityLocks

logger = structlog.get_logger()

RESOURCE = "change_request"
DECISIONS = ("approve", "reject")


def parse_change_request(payload: dict):
    """Validate a raw payload into its (entity_type, operation_type) variant."""
    try:
        return change_payload_adapter.validate_python(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid change request",
            details=[
                {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                for err in exc.errors()
            ],
        ) from exc


class ChangeRequestService:
    def __init__(
        self,
        store: EntityStore,
        oracle: RoleAuthorizationOracle,
        audit: AuditEmitter,
        locks: EntityLocks,
        catalog: Optional[CatalogService] = None,
    ):
        self.store = store
        self.oracle = oracle
        self.audit = audit
        self.locks = locks
        self.catalog = catalog or CatalogService(store, oracle, audit, locks)

    async def create(
        self,
        actor: Actor,
        entity_type: str,
        operation_type: str,
        entity_id: Optional[uuid.UUID] = None,
        data: Optional[dict] = None,
    ) -> ChangeRequest:
        require_permission(self.oracle, actor, "create", RESOURCE)
        change = parse_change_request(
            {
                "entity_type": entity_type,
                "operation_type": operation_type,
                "entity_id": entity_id,
                "data": data or {},
            }
        )

        async with self.store.transaction():
            request = ChangeRequest(
                entity_type=change.entity_type,
                operation_type=change.operation_type,
                entity_id=change.entity_id,
                data=stored_data(change),
                status=ChangeRequestStatus.PENDING.value,
                requested_by=actor.id,
            )
            await self.store.insert(RESOURCE, request)
            await emit_audit(
                self.audit,
                AuditEntry(
                    actor_id=actor.id,
                    actor_email=actor.email,
                    action="create_change_request",
                    entity_type=RESOURCE,
                    entity_id=request.id,
                    after_state={"status": request.status},
                    details={
                        "entity_type": request.entity_type,
                        "operation_type": request.operation_type,
                        "target_id": request.entity_id,
                    },
                ),
            )

        logger.info(
            "change_request_created",
            change_request_id=str(request.id),
            entity_type=request.entity_type,
            operation_type=request.operation_type,
            requested_by=str(actor.id),
        )
        return request

    async def approve(self, change_request_id: uuid.UUID, actor: Actor, expected_version: Optional[int] = None):
        return await self.resolve(change_request_id, actor, "approve", expected_version=expected_version)

    async def reject(
        self,
        change_request_id: uuid.UUID,
        actor: Actor,
        reason: Optional[str],
        expected_version: Optional[int] = None,
    ):
        return await self.resolve(
            change_request_id, actor, "reject", reason=reason, expected_version=expected_version
        )

    async def resolve(
        self,
        change_request_id: uuid.UUID,
        actor: Actor,
        decision: str,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ChangeRequest:
        require_permission(self.oracle, actor, "resolve", RESOURCE)
        if decision not in DECISIONS:
            raise ValidationError(
                f"Unknown decision '{decision}'", details={"allowed": list(DECISIONS)}
            )
        if decision == "reject":
            reason = require_reason(reason)

        async with self.locks.hold(RESOURCE, change_request_id):
            async with self.store.transaction():
                request = await self.store.get(RESOURCE, change_request_id, for_update=True)
                loaded_version = request.version
                require_version(request, expected_version)
                if request.status != ChangeRequestStatus.PENDING.value:
                    raise InvalidState(
                        f"Change request is already {request.status}",
                        details={"status": request.status},
                    )

                before = after = None
                target_id = request.entity_id
                if decision == "approve":
                    before, entity = await self._apply(request)
                    after = snapshot(entity)
                    target_id = entity.id
                    request.status = ChangeRequestStatus.APPROVED.value
                else:
                    request.status = ChangeRequestStatus.REJECTED.value
                    request.reason = reason
                request.approved_by = actor.id
                request.resolved_at = utcnow()
                await self.store.put(RESOURCE, request.id, request, loaded_version)

                details = {
                    "entity_type": request.entity_type,
                    "operation_type": request.operation_type,
                    "target_id": target_id,
                    "entity_before": before,
                    "entity_after": after,
                }
                if reason:
                    details["reason"] = reason
                await emit_audit(
                    self.audit,
                    AuditEntry(
                        actor_id=actor.id,
                        actor_email=actor.email,
                        action=f"{decision}_change_request",
                        entity_type=RESOURCE,
                        entity_id=request.id,
                        before_state={"status": ChangeRequestStatus.PENDING.value},
                        after_state={"status": request.status},
                        details=details,
                    ),
                )

        logger.info(
            "change_request_resolved",
            change_request_id=str(request.id),
            decision=decision,
            entity_type=request.entity_type,
            operation_type=request.operation_type,
            target_id=str(target_id) if target_id else None,
            actor_id=str(actor.id),
        )
        return request

    async def _apply(self, request: ChangeRequest):
        """Run the approved change; returns (before snapshot, entity)."""
        change = parse_change_request(
            {
                "entity_type": request.entity_type,
                "operation_type": request.operation_type,
                "entity_id": request.entity_id,
                "data": request.data or {},
            }
        )
        if change.operation_type == "create":
            entity = await self.catalog.apply_create(change.entity_type, change.data)
            return None, entity

        target = await self.store.find(change.entity_type, change.entity_id, for_update=True)
        if target is None:
            raise NotFound(
                f"{change.entity_type.capitalize()} targeted by this change request no longer exists",
                details={"entity_type": change.entity_type, "entity_id": str(change.entity_id)},
            )
        before = snapshot(target)
        if change.operation_type == "update":
            await self.catalog.apply_update(change.entity_type, target, change.data)
        else:
            await self.catalog.apply_archive(change.entity_type, target)
        return before, target

    async def get(self, actor: Actor, change_request_id: uuid.UUID) -> ChangeRequest:
        require_permission(self.oracle, actor, "read", RESOURCE)
        request = await self.store.get(RESOURCE, change_request_id)
        if actor.is_employee and request.requested_by != actor.id:
            raise NotFound(
                "Change request not found",
                details={"entity_type": RESOURCE, "entity_id": str(change_request_id)},
            )
        return request

    async def list(
        self,
        actor: Actor,
        status: Optional[str] = None,
        entity_type: Optional[str] = None,
        requested_by: Optional[uuid.UUID] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list, int]:
        require_permission(self.oracle, actor, "read", RESOURCE)
        if actor.is_employee:
            requested_by = actor.id
        filters = {"status": status, "entity_type": entity_type, "requested_by": requested_by}
        total = await self.store.count(RESOURCE, filters)
        rows = await self.store.list(
            RESOURCE,
            filters,
            order_by=(ChangeRequest.created_at.desc(),),
            limit=limit,
            offset=offset,
        )
        return rows, total

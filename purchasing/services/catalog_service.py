"""
Vendor and item catalog: direct mutations by reviewers, plus the apply_*
helpers that approved change requests run inside their own transaction.
Catalog entities are never hard deleted; delete means archive.
"""

import enum
import uuid
from typing import Optional

from pydantic import BaseModel
import structlog

from purchasing.errors import ValidationError
from purchasing.models.item import Item
from purchasing.models.vendor import CatalogStatus, Vendor
from purchasing.services.audit_service import AuditEmitter, AuditEntry, emit_audit, snapshot
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.entity_store import EntityStore
from purchasing.services.guards import Actor, require_permission, require_version
from purchasing.services.locks import EntityLocks

logger = structlog.get_logger()

CATALOG_MODELS: dict[str, type] = {"vendor": Vendor, "item": Item}

REQUIRED_FIELDS = {
    "vendor": frozenset({"name", "contact_person", "phone", "address", "status"}),
    "item": frozenset({"name", "code", "unit", "status"}),
}


def _column_values(data: BaseModel, exclude_unset: bool = False) -> dict:
    values = data.model_dump(exclude_unset=exclude_unset)
    return {k: (v.value if isinstance(v, enum.Enum) else v) for k, v in values.items()}


def _check_entity_type(entity_type: str) -> None:
    if entity_type not in CATALOG_MODELS:
        raise ValidationError(
            f"Unknown catalog entity type '{entity_type}'",
            details={"allowed": sorted(CATALOG_MODELS)},
        )


class CatalogService:
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

    # ---- apply helpers (caller owns the transaction) ----

    async def _ensure_unique_code(self, code: str, exclude_id: Optional[uuid.UUID] = None) -> None:
        where = [Item.id != exclude_id] if exclude_id is not None else []
        if await self.store.count("item", {"code": code}, where=where):
            raise ValidationError(
                f"Item code '{code}' already exists",
                details={"field": "code", "value": code},
            )

    async def apply_create(self, entity_type: str, data: BaseModel):
        _check_entity_type(entity_type)
        values = _column_values(data)
        if entity_type == "item":
            await self._ensure_unique_code(values["code"])
        entity = CATALOG_MODELS[entity_type](**values)
        return await self.store.insert(entity_type, entity)

    async def apply_update(self, entity_type: str, entity, patch: BaseModel):
        values = _column_values(patch, exclude_unset=True)
        nulled = sorted(k for k, v in values.items() if v is None and k in REQUIRED_FIELDS[entity_type])
        if nulled:
            raise ValidationError("Required fields cannot be cleared", details={"fields": nulled})
        if entity_type == "item" and values.get("code") not in (None, entity.code):
            await self._ensure_unique_code(values["code"], exclude_id=entity.id)

        loaded_version = entity.version
        for key, value in values.items():
            setattr(entity, key, value)
        return await self.store.put(entity_type, entity.id, entity, loaded_version)

    async def apply_archive(self, entity_type: str, entity):
        loaded_version = entity.version
        entity.status = CatalogStatus.ARCHIVED.value
        return await self.store.put(entity_type, entity.id, entity, loaded_version)

    # ---- direct mutations ----

    async def create(self, actor: Actor, entity_type: str, data: BaseModel):
        _check_entity_type(entity_type)
        require_permission(self.oracle, actor, "write", entity_type)

        async with self.store.transaction():
            entity = await self.apply_create(entity_type, data)
            await emit_audit(
                self.audit,
                AuditEntry(
                    actor_id=actor.id,
                    actor_email=actor.email,
                    action="create",
                    entity_type=entity_type,
                    entity_id=entity.id,
                    after_state=snapshot(entity),
                ),
            )

        logger.info("catalog_entity_created", entity_type=entity_type, entity_id=str(entity.id))
        return entity

    async def update(
        self,
        actor: Actor,
        entity_type: str,
        entity_id: uuid.UUID,
        patch: BaseModel,
        expected_version: Optional[int] = None,
    ):
        _check_entity_type(entity_type)
        require_permission(self.oracle, actor, "write", entity_type)

        async with self.locks.hold(entity_type, entity_id):
            async with self.store.transaction():
                entity = await self.store.get(entity_type, entity_id, for_update=True)
                require_version(entity, expected_version)
                before = snapshot(entity)
                await self.apply_update(entity_type, entity, patch)
                await emit_audit(
                    self.audit,
                    AuditEntry(
                        actor_id=actor.id,
                        actor_email=actor.email,
                        action="update",
                        entity_type=entity_type,
                        entity_id=entity.id,
                        before_state=before,
                        after_state=snapshot(entity),
                    ),
                )

        logger.info("catalog_entity_updated", entity_type=entity_type, entity_id=str(entity_id))
        return entity

    async def archive(
        self,
        actor: Actor,
        entity_type: str,
        entity_id: uuid.UUID,
        expected_version: Optional[int] = None,
    ):
        _check_entity_type(entity_type)
        require_permission(self.oracle, actor, "write", entity_type)

        async with self.locks.hold(entity_type, entity_id):
            async with self.store.transaction():
                entity = await self.store.get(entity_type, entity_id, for_update=True)
                require_version(entity, expected_version)
                before = snapshot(entity)
                await self.apply_archive(entity_type, entity)
                await emit_audit(
                    self.audit,
                    AuditEntry(
                        actor_id=actor.id,
                        actor_email=actor.email,
                        action="delete",
                        entity_type=entity_type,
                        entity_id=entity.id,
                        before_state=before,
                        after_state=snapshot(entity),
                    ),
                )

        logger.info("catalog_entity_archived", entity_type=entity_type, entity_id=str(entity_id))
        return entity

    # ---- reads ----

    async def get(self, actor: Actor, entity_type: str, entity_id: uuid.UUID):
        _check_entity_type(entity_type)
        require_permission(self.oracle, actor, "read", entity_type)
        return await self.store.get(entity_type, entity_id)

    async def list(
        self,
        actor: Actor,
        entity_type: str,
        status: Optional[str] = None,
        name: Optional[str] = None,
        code: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list, int]:
        """Page of vendors or items plus the unpaged total."""
        _check_entity_type(entity_type)
        require_permission(self.oracle, actor, "read", entity_type)
        model = CATALOG_MODELS[entity_type]

        filters = {"status": status}
        if entity_type == "item":
            filters["code"] = code
        where = [model.name.icontains(name, autoescape=True)] if name else []

        total = await self.store.count(entity_type, filters, where=where)
        rows = await self.store.list(
            entity_type,
            filters,
            where=where,
            order_by=(model.name.asc(), model.created_at.asc()),
            limit=limit,
            offset=offset,
        )
        return rows, total

"""
Entity store: async SQLAlchemy persistence behind the workflow core.

The caller owns the unit of work through ``transaction()``: every write made
inside it commits together or not at all. Versioned models map their
``version`` column as ``version_id_col``, so a write against a stale row
raises StaleDataError at flush time, surfaced here as Conflict.

On PostgreSQL each transaction sets ``lock_timeout`` so ``SELECT ... FOR
UPDATE`` waits at most ``LOCK_TIMEOUT_SECONDS`` for a row held by another
worker; the timeout surfaces as a retryable Conflict.
"""

from contextlib import asynccontextmanager
from typing import Any, Iterable, Optional

from sqlalchemy import func, select, text
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
import structlog

from purchasing.config import settings
from purchasing.errors import Conflict, Internal, NotFound, ValidationError, WorkflowError
from purchasing.models import (
    AuditLog,
    ChangeRequest,
    Item,
    PurchaseOrder,
    PurchaseOrderItem,
    User,
    Vendor,
)

logger = structlog.get_logger()

ENTITY_MODELS: dict[str, type] = {
    "user": User,
    "vendor": Vendor,
    "item": Item,
    "purchase_order": PurchaseOrder,
    "purchase_order_item": PurchaseOrderItem,
    "change_request": ChangeRequest,
    "audit_log": AuditLog,
}

# PostgreSQL SQLSTATE codes
PG_UNIQUE_VIOLATION = "23505"
PG_INVALID_REFERENCE = {"23502", "23503", "23514"}  # not null, foreign key, check
PG_LOCK_TIMEOUT = {"55P03", "57014"}  # lock_not_available, query_canceled

# SQLite reports constraint failures by message only
SQLITE_INVALID_REFERENCE = ("foreign key constraint", "check constraint", "not null constraint")


def _label(entity_type: str) -> str:
    return entity_type.replace("_", " ").capitalize()


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_db_error(exc: SQLAlchemyError) -> WorkflowError:
    """Map a failed unit of work onto the workflow error taxonomy."""
    if isinstance(exc, StaleDataError):
        return Conflict("Entity was modified concurrently; reload and retry")

    code = _sqlstate(exc) if isinstance(exc, DBAPIError) else None
    if code in PG_LOCK_TIMEOUT:
        return Conflict(
            "Timed out waiting for a locked row; retry later",
            details={"sqlstate": code},
        )

    if isinstance(exc, IntegrityError):
        message = str(exc.orig).lower()
        if code == PG_UNIQUE_VIOLATION or (code is None and "unique constraint" in message):
            return Conflict("Write collided with a concurrent change; reload and retry")
        if code in PG_INVALID_REFERENCE or (
            code is None and any(m in message for m in SQLITE_INVALID_REFERENCE)
        ):
            return ValidationError(
                "Write references missing data or breaks a constraint",
                details={"sqlstate": code, "error": str(exc.orig)},
            )
    return Internal("Entity store unavailable")


class EntityStore:
    def __init__(self, session: AsyncSession, lock_timeout: Optional[float] = None):
        self.session = session
        self.lock_timeout = settings.LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout

    @staticmethod
    def model_for(entity_type: str) -> type:
        try:
            return ENTITY_MODELS[entity_type]
        except KeyError:
            raise ValidationError(f"Unknown entity type '{entity_type}'")

    async def _bound_lock_wait(self) -> None:
        if self.lock_timeout and self.session.get_bind().dialect.name == "postgresql":
            ms = int(self.lock_timeout * 1000)
            await self.session.execute(text(f"SET LOCAL lock_timeout = {ms}"))

    @asynccontextmanager
    async def transaction(self):
        try:
            await self._bound_lock_wait()
            yield self
            await self.session.commit()
        except WorkflowError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            error = translate_db_error(exc)
            log = logger.error if isinstance(error, Internal) else logger.warning
            log("store_failure", code=error.code, error=str(exc))
            raise error from exc
        except BaseException:
            # includes CancelledError: an abandoned request commits nothing
            await self.session.rollback()
            raise

    async def items_for(self, order_id) -> list[PurchaseOrderItem]:
        return await self.list(
            "purchase_order_item",
            {"purchase_order_id": order_id},
            order_by=(PurchaseOrderItem.line_number,),
        )

    async def find(self, entity_type: str, entity_id: Any, for_update: bool = False):
        model = self.model_for(entity_type)
        q = (
            select(model)
            .where(model.id == entity_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            q = q.with_for_update()
        result = await self.session.execute(q)
        return result.scalar_one_or_none()

    async def get(self, entity_type: str, entity_id: Any, for_update: bool = False):
        """Fresh read of one entity; raises NotFound when absent."""
        entity = await self.find(entity_type, entity_id, for_update=for_update)
        if entity is None:
            raise NotFound(
                f"{_label(entity_type)} not found",
                details={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
        return entity

    async def insert(self, entity_type: str, entity):
        self.model_for(entity_type)
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def put(self, entity_type: str, entity_id: Any, entity, expected_version: int):
        """Write back a loaded entity, checking it still carries expected_version."""
        if entity.id != entity_id:
            raise ValidationError(f"{_label(entity_type)} id mismatch")
        if entity.version != expected_version:
            raise Conflict(
                f"{_label(entity_type)} version mismatch",
                details={"expected_version": expected_version, "current_version": entity.version},
            )
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise Conflict(
                f"{_label(entity_type)} was modified concurrently; reload and retry",
                details={"entity_id": str(entity_id), "expected_version": expected_version},
            ) from exc
        return entity

    async def list(
        self,
        entity_type: str,
        filters: Optional[dict] = None,
        where: Iterable = (),
        order_by: Optional[Iterable] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list:
        """Equality filters skip None values; ``where`` takes raw criteria."""
        model = self.model_for(entity_type)
        q = select(model)
        for field, value in (filters or {}).items():
            if value is not None:
                q = q.where(getattr(model, field) == value)
        for criterion in where:
            q = q.where(criterion)
        if order_by is not None:
            q = q.order_by(*order_by)
        if offset:
            q = q.offset(offset)
        if limit is not None:
            q = q.limit(limit)
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def count(self, entity_type: str, filters: Optional[dict] = None, where: Iterable = ()) -> int:
        model = self.model_for(entity_type)
        q = select(func.count(model.id))
        for field, value in (filters or {}).items():
            if value is not None:
                q = q.where(getattr(model, field) == value)
        for criterion in where:
            q = q.where(criterion)
        return (await self.session.execute(q)).scalar() or 0

    async def delete_where(self, entity_type: str, filters: dict) -> int:
        """Physically remove owned rows (purchase order lines only)."""
        rows = await self.list(entity_type, filters)
        for row in rows:
            await self.session.delete(row)
        await self.session.flush()
        return len(rows)

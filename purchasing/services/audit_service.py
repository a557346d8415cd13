"""Audit logging service: records entity state changes."""

from dataclasses import dataclass, field
from typing import Any, Optional
import uuid

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from purchasing.database import utcnow
from purchasing.models.audit_log import AuditLog

logger = structlog.get_logger()


@dataclass
class AuditEntry:
    actor_id: Optional[uuid.UUID]
    action: str
    entity_type: str
    entity_id: Optional[uuid.UUID]
    before_state: Optional[dict] = None
    after_state: Optional[dict] = None
    details: dict = field(default_factory=dict)
    actor_email: Optional[str] = None


def snapshot(entity) -> Optional[dict]:
    """JSON-safe dict of an ORM entity's column values."""
    if entity is None:
        return None
    mapper = inspect(entity).mapper
    return jsonable_encoder(
        {attr.key: getattr(entity, attr.key) for attr in mapper.column_attrs}
    )


def _compute_changed_fields(
    before: Optional[dict], after: Optional[dict]
) -> Optional[list[str]]:
    """Diff two state dicts and return list of changed field names."""
    if not before or not after:
        return None
    changed = []
    all_keys = set(before.keys()) | set(after.keys())
    for key in sorted(all_keys):
        if before.get(key) != after.get(key):
            changed.append(key)
    return changed or None


class AuditEmitter:
    """
    Writes audit rows into the caller's transaction under a SAVEPOINT.

    A failing insert rolls back only the savepoint and re-raises; callers
    log it and keep the business change.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, entry: AuditEntry) -> AuditLog:
        before_state = jsonable_encoder(entry.before_state)
        after_state = jsonable_encoder(entry.after_state)

        audit = AuditLog(
            actor_id=entry.actor_id,
            actor_email=entry.actor_email,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            before_state=before_state,
            after_state=after_state,
            changed_fields=_compute_changed_fields(before_state, after_state),
            details=jsonable_encoder(entry.details),
            created_at=utcnow(),
        )
        async with self.session.begin_nested():
            self.session.add(audit)

        logger.info(
            "audit_log_created",
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=str(entry.entity_id),
            actor_id=str(entry.actor_id),
        )
        return audit


async def emit_audit(audit: AuditEmitter, entry: AuditEntry) -> Optional[AuditLog]:
    """Best-effort emission: failures are logged as warnings, never raised."""
    try:
        return await audit.record(entry)
    except Exception as exc:
        logger.warning(
            "audit_emit_failed",
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=str(entry.entity_id),
            error=str(exc),
        )
        return None

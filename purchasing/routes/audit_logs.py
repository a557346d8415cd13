import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from purchasing.dependencies import get_store
from purchasing.middleware.auth import get_current_user
from purchasing.middleware.authorization import require_roles
from purchasing.models.audit_log import AuditLog
from purchasing.schemas.audit_log import AuditLogResponse
from purchasing.schemas.common import PageParams, PaginatedResponse
from purchasing.services.entity_store import EntityStore
from purchasing.services.guards import Actor

router = APIRouter()


def _to_response(log: AuditLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=str(log.id),
        actor_id=str(log.actor_id) if log.actor_id else None,
        actor_email=log.actor_email,
        action=log.action,
        entity_type=log.entity_type,
        entity_id=str(log.entity_id) if log.entity_id else None,
        before_state=log.before_state,
        after_state=log.after_state,
        changed_fields=log.changed_fields,
        details=log.details,
        created_at=log.created_at.isoformat() if log.created_at else "",
    )


@router.get("", response_model=PaginatedResponse[AuditLogResponse])
async def list_audit_logs(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[uuid.UUID] = Query(None),
    actor_id: Optional[uuid.UUID] = Query(None),
    action: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=50),
    current_user: Actor = Depends(get_current_user),
    _auth: None = Depends(require_roles("read", "audit_log")),
    store: EntityStore = Depends(get_store),
):
    paging = PageParams(page=page, limit=limit)
    filters = {
        "entity_type": entity_type,
        "entity_id": entity_id,
        "actor_id": actor_id,
        "action": action,
    }
    where = []
    if from_date:
        where.append(AuditLog.created_at >= datetime.combine(from_date, time.min, tzinfo=timezone.utc))
    if to_date:
        where.append(AuditLog.created_at <= datetime.combine(to_date, time.max, tzinfo=timezone.utc))

    total = await store.count("audit_log", filters, where=where)
    logs = await store.list(
        "audit_log",
        filters,
        where=where,
        order_by=(AuditLog.created_at.desc(),),
        limit=paging.limit,
        offset=paging.offset,
    )
    return paging.wrap([_to_response(log) for log in logs], total)

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from purchasing.dependencies import get_change_request_service
from purchasing.middleware.auth import get_current_user
from purchasing.models.change_request import CatalogEntityType, ChangeRequest, ChangeRequestStatus
from purchasing.schemas.change_request import (
    ChangeRequestCreate,
    ChangeRequestResponse,
    ResolveRequest,
)
from purchasing.schemas.common import PageParams, PaginatedResponse, page_params
from purchasing.schemas.purchase_order import TransitionRequest
from purchasing.services.change_request_service import ChangeRequestService
from purchasing.services.guards import Actor

router = APIRouter()


def cr_to_response(cr: ChangeRequest) -> ChangeRequestResponse:
    return ChangeRequestResponse(
        id=str(cr.id),
        entity_type=cr.entity_type,
        operation_type=cr.operation_type,
        entity_id=str(cr.entity_id) if cr.entity_id else None,
        data=cr.data or {},
        status=cr.status,
        requested_by=str(cr.requested_by),
        approved_by=str(cr.approved_by) if cr.approved_by else None,
        reason=cr.reason,
        resolved_at=cr.resolved_at.isoformat() if cr.resolved_at else None,
        version=cr.version,
        created_at=cr.created_at.isoformat() if cr.created_at else "",
        updated_at=cr.updated_at.isoformat() if cr.updated_at else "",
    )


@router.get("", response_model=PaginatedResponse[ChangeRequestResponse])
async def list_change_requests(
    paging: PageParams = Depends(page_params),
    cr_status: Optional[ChangeRequestStatus] = Query(None, alias="status"),
    entity_type: Optional[CatalogEntityType] = Query(None),
    requested_by: Optional[uuid.UUID] = Query(None),
    current_user: Actor = Depends(get_current_user),
    service: ChangeRequestService = Depends(get_change_request_service),
):
    rows, total = await service.list(
        current_user,
        status=cr_status.value if cr_status else None,
        entity_type=entity_type.value if entity_type else None,
        requested_by=requested_by,
        limit=paging.limit,
        offset=paging.offset,
    )
    return paging.wrap([cr_to_response(cr) for cr in rows], total)


@router.get("/{cr_id}", response_model=ChangeRequestResponse)
async def get_change_request(
    cr_id: uuid.UUID,
    current_user: Actor = Depends(get_current_user),
    service: ChangeRequestService = Depends(get_change_request_service),
):
    return cr_to_response(await service.get(current_user, cr_id))


@router.post("", response_model=ChangeRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_change_request(
    body: ChangeRequestCreate,
    current_user: Actor = Depends(get_current_user),
    service: ChangeRequestService = Depends(get_change_request_service),
):
    cr = await service.create(
        current_user,
        body.entity_type.value,
        body.operation_type.value,
        entity_id=body.entity_id,
        data=body.data,
    )
    return cr_to_response(cr)


@router.post("/{cr_id}/approve", response_model=ChangeRequestResponse)
async def approve_change_request(
    cr_id: uuid.UUID,
    body: Optional[TransitionRequest] = None,
    current_user: Actor = Depends(get_current_user),
    service: ChangeRequestService = Depends(get_change_request_service),
):
    cr = await service.approve(cr_id, current_user, expected_version=body.expected_version if body else None)
    return cr_to_response(cr)


@router.post("/{cr_id}/reject", response_model=ChangeRequestResponse)
async def reject_change_request(
    cr_id: uuid.UUID,
    body: ResolveRequest,
    current_user: Actor = Depends(get_current_user),
    service: ChangeRequestService = Depends(get_change_request_service),
):
    cr = await service.reject(cr_id, current_user, body.reason, expected_version=body.expected_version)
    return cr_to_response(cr)

import uuid
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, Response, status

from purchasing.dependencies import get_catalog_service, get_change_request_service, get_oracle
from purchasing.middleware.auth import get_current_user
from purchasing.models.vendor import CatalogStatus, Vendor
from purchasing.routes.change_requests import cr_to_response
from purchasing.schemas.change_request import ChangeRequestResponse
from purchasing.schemas.common import PageParams, PaginatedResponse, page_params
from purchasing.schemas.vendor import VendorCreate, VendorResponse, VendorUpdate
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.catalog_service import CatalogService
from purchasing.services.change_request_service import ChangeRequestService
from purchasing.services.guards import Actor

router = APIRouter()

ENTITY = "vendor"


def _to_response(v: Vendor) -> VendorResponse:
    return VendorResponse(
        id=str(v.id),
        name=v.name,
        contact_person=v.contact_person,
        phone=v.phone,
        email=v.email,
        address=v.address,
        notes=v.notes,
        rating=float(v.rating) if v.rating is not None else None,
        status=v.status,
        version=v.version,
        created_at=v.created_at.isoformat() if v.created_at else "",
        updated_at=v.updated_at.isoformat() if v.updated_at else "",
    )


def _proposes(current_user: Actor, oracle: RoleAuthorizationOracle) -> bool:
    """Roles without direct write access file a change request instead."""
    return not oracle.can(current_user.role, "write", ENTITY) and oracle.can(
        current_user.role, "create", "change_request"
    )


@router.get("", response_model=PaginatedResponse[VendorResponse])
async def list_vendors(
    paging: PageParams = Depends(page_params),
    vendor_status: Optional[CatalogStatus] = Query(None, alias="status"),
    name: Optional[str] = Query(None, max_length=200),
    current_user: Actor = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    rows, total = await catalog.list(
        current_user,
        ENTITY,
        status=vendor_status.value if vendor_status else None,
        name=name,
        limit=paging.limit,
        offset=paging.offset,
    )
    return paging.wrap([_to_response(v) for v in rows], total)


@router.get("/{vendor_id}", response_model=VendorResponse)
async def get_vendor(
    vendor_id: uuid.UUID,
    current_user: Actor = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return _to_response(await catalog.get(current_user, ENTITY, vendor_id))


@router.post(
    "",
    response_model=Union[VendorResponse, ChangeRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_vendor(
    body: VendorCreate,
    response: Response,
    current_user: Actor = Depends(get_current_user),
    oracle: RoleAuthorizationOracle = Depends(get_oracle),
    catalog: CatalogService = Depends(get_catalog_service),
    change_requests: ChangeRequestService = Depends(get_change_request_service),
):
    if _proposes(current_user, oracle):
        cr = await change_requests.create(
            current_user, ENTITY, "create", data=body.model_dump(mode="json")
        )
        response.status_code = status.HTTP_202_ACCEPTED
        return cr_to_response(cr)
    return _to_response(await catalog.create(current_user, ENTITY, body))


@router.patch("/{vendor_id}", response_model=Union[VendorResponse, ChangeRequestResponse])
async def update_vendor(
    vendor_id: uuid.UUID,
    body: VendorUpdate,
    response: Response,
    current_user: Actor = Depends(get_current_user),
    oracle: RoleAuthorizationOracle = Depends(get_oracle),
    catalog: CatalogService = Depends(get_catalog_service),
    change_requests: ChangeRequestService = Depends(get_change_request_service),
):
    if _proposes(current_user, oracle):
        cr = await change_requests.create(
            current_user,
            ENTITY,
            "update",
            entity_id=vendor_id,
            data=body.model_dump(mode="json", exclude_unset=True),
        )
        response.status_code = status.HTTP_202_ACCEPTED
        return cr_to_response(cr)
    return _to_response(await catalog.update(current_user, ENTITY, vendor_id, body))


@router.delete("/{vendor_id}", response_model=Union[VendorResponse, ChangeRequestResponse])
async def delete_vendor(
    vendor_id: uuid.UUID,
    response: Response,
    current_user: Actor = Depends(get_current_user),
    oracle: RoleAuthorizationOracle = Depends(get_oracle),
    catalog: CatalogService = Depends(get_catalog_service),
    change_requests: ChangeRequestService = Depends(get_change_request_service),
):
    """Archives the vendor; rows are never removed."""
    if _proposes(current_user, oracle):
        cr = await change_requests.create(current_user, ENTITY, "delete", entity_id=vendor_id)
        response.status_code = status.HTTP_202_ACCEPTED
        return cr_to_response(cr)
    return _to_response(await catalog.archive(current_user, ENTITY, vendor_id))

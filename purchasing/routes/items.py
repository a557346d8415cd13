import uuid
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, Response, status

from purchasing.dependencies import get_catalog_service, get_change_request_service, get_oracle
from purchasing.middleware.auth import get_current_user
from purchasing.models.item import Item
from purchasing.models.vendor import CatalogStatus
from purchasing.routes.change_requests import cr_to_response
from purchasing.schemas.change_request import ChangeRequestResponse
from purchasing.schemas.common import PageParams, PaginatedResponse, page_params
from purchasing.schemas.item import ItemCreate, ItemResponse, ItemUpdate
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.catalog_service import CatalogService
from purchasing.services.change_request_service import ChangeRequestService
from purchasing.services.guards import Actor

router = APIRouter()

ENTITY = "item"


def _to_response(item: Item) -> ItemResponse:
    return ItemResponse(
        id=str(item.id),
        name=item.name,
        code=item.code,
        unit=item.unit,
        description=item.description,
        status=item.status,
        version=item.version,
        created_at=item.created_at.isoformat() if item.created_at else "",
        updated_at=item.updated_at.isoformat() if item.updated_at else "",
    )


def _proposes(current_user: Actor, oracle: RoleAuthorizationOracle) -> bool:
    return not oracle.can(current_user.role, "write", ENTITY) and oracle.can(
        current_user.role, "create", "change_request"
    )


@router.get("", response_model=PaginatedResponse[ItemResponse])
async def list_items(
    paging: PageParams = Depends(page_params),
    item_status: Optional[CatalogStatus] = Query(None, alias="status"),
    name: Optional[str] = Query(None, max_length=200),
    code: Optional[str] = Query(None, max_length=50),
    current_user: Actor = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    rows, total = await catalog.list(
        current_user,
        ENTITY,
        status=item_status.value if item_status else None,
        name=name,
        code=code,
        limit=paging.limit,
        offset=paging.offset,
    )
    return paging.wrap([_to_response(item) for item in rows], total)


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(
    item_id: uuid.UUID,
    current_user: Actor = Depends(get_current_user),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return _to_response(await catalog.get(current_user, ENTITY, item_id))


@router.post(
    "",
    response_model=Union[ItemResponse, ChangeRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_item(
    body: ItemCreate,
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


@router.patch("/{item_id}", response_model=Union[ItemResponse, ChangeRequestResponse])
async def update_item(
    item_id: uuid.UUID,
    body: ItemUpdate,
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
            entity_id=item_id,
            data=body.model_dump(mode="json", exclude_unset=True),
        )
        response.status_code = status.HTTP_202_ACCEPTED
        return cr_to_response(cr)
    return _to_response(await catalog.update(current_user, ENTITY, item_id, body))


@router.delete("/{item_id}", response_model=Union[ItemResponse, ChangeRequestResponse])
async def delete_item(
    item_id: uuid.UUID,
    response: Response,
    current_user: Actor = Depends(get_current_user),
    oracle: RoleAuthorizationOracle = Depends(get_oracle),
    catalog: CatalogService = Depends(get_catalog_service),
    change_requests: ChangeRequestService = Depends(get_change_request_service),
):
    if _proposes(current_user, oracle):
        cr = await change_requests.create(current_user, ENTITY, "delete", entity_id=item_id)
        response.status_code = status.HTTP_202_ACCEPTED
        return cr_to_response(cr)
    return _to_response(await catalog.archive(current_user, ENTITY, item_id))

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from purchasing.dependencies import get_po_service, get_workflow
from purchasing.middleware.auth import get_current_user
from purchasing.models.purchase_order import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus
from purchasing.schemas.common import PageParams, PaginatedResponse, page_params
from purchasing.schemas.purchase_order import (
    CompleteRequest,
    PoItemResponse,
    PurchaseOrderCreate,
    PurchaseOrderResponse,
    PurchaseOrderUpdate,
    ReceiptRequest,
    RejectRequest,
    TransitionRequest,
)
from purchasing.services.guards import Actor, receipts_by_line
from purchasing.services.purchase_order_service import PurchaseOrderService
from purchasing.services.workflow_engine import PurchaseOrderWorkflow

router = APIRouter()


def _decimal(value) -> Optional[float]:
    return float(value) if value is not None else None


def _item_to_response(item: PurchaseOrderItem) -> PoItemResponse:
    return PoItemResponse(
        id=str(item.id),
        line_number=item.line_number,
        item_id=str(item.item_id) if item.item_id else None,
        item_code=item.item_code,
        item_name=item.item_name,
        quantity=float(item.quantity),
        unit=item.unit,
        received_quantity=_decimal(item.received_quantity),
        price=_decimal(item.price),
        line_total=float(item.line_total or 0),
        currency=item.currency,
    )


def _to_response(po: PurchaseOrder, items: list[PurchaseOrderItem]) -> PurchaseOrderResponse:
    return PurchaseOrderResponse(
        id=str(po.id),
        number=po.number,
        department=po.department,
        request_date=po.request_date.isoformat(),
        request_type=po.request_type,
        requester_name=po.requester_name,
        execution_date=po.execution_date.isoformat() if po.execution_date else None,
        status=po.status,
        notes=po.notes,
        supplier_id=str(po.supplier_id) if po.supplier_id else None,
        attachment_url=po.attachment_url,
        total_amount=float(po.total_amount or 0),
        currency=po.currency,
        created_by=str(po.created_by),
        version=po.version,
        items=[_item_to_response(item) for item in items],
        created_at=po.created_at.isoformat() if po.created_at else "",
        updated_at=po.updated_at.isoformat() if po.updated_at else "",
    )


async def _respond(service: PurchaseOrderService, po: PurchaseOrder) -> PurchaseOrderResponse:
    return _to_response(po, await service.items(po))


@router.get("", response_model=PaginatedResponse[PurchaseOrderResponse])
async def list_purchase_orders(
    paging: PageParams = Depends(page_params),
    po_status: Optional[PurchaseOrderStatus] = Query(None, alias="status"),
    supplier_id: Optional[uuid.UUID] = Query(None),
    department: Optional[str] = Query(None),
    created_by: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    current_user: Actor = Depends(get_current_user),
    service: PurchaseOrderService = Depends(get_po_service),
):
    orders, total = await service.list(
        current_user,
        status=po_status.value if po_status else None,
        supplier_id=supplier_id,
        department=department,
        created_by=created_by,
        from_date=from_date,
        to_date=to_date,
        limit=paging.limit,
        offset=paging.offset,
    )
    data = [await _respond(service, po) for po in orders]
    return paging.wrap(data, total)


@router.get("/{po_id}", response_model=PurchaseOrderResponse)
async def get_purchase_order(
    po_id: uuid.UUID,
    current_user: Actor = Depends(get_current_user),
    service: PurchaseOrderService = Depends(get_po_service),
):
    po = await service.get(current_user, po_id)
    return await _respond(service, po)


@router.post("", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    body: PurchaseOrderCreate,
    current_user: Actor = Depends(get_current_user),
    service: PurchaseOrderService = Depends(get_po_service),
):
    po = await service.create(current_user, body)
    return await _respond(service, po)


@router.patch("/{po_id}", response_model=PurchaseOrderResponse)
async def update_purchase_order(
    po_id: uuid.UUID,
    body: PurchaseOrderUpdate,
    current_user: Actor = Depends(get_current_user),
    service: PurchaseOrderService = Depends(get_po_service),
):
    po = await service.update(current_user, po_id, body)
    return await _respond(service, po)


@router.post("/{po_id}/submit", response_model=PurchaseOrderResponse)
async def submit_purchase_order(
    po_id: uuid.UUID,
    body: Optional[TransitionRequest] = None,
    current_user: Actor = Depends(get_current_user),
    workflow: PurchaseOrderWorkflow = Depends(get_workflow),
    service: PurchaseOrderService = Depends(get_po_service),
):
    po = await workflow.submit(po_id, current_user, expected_version=body.expected_version if body else None)
    return await _respond(service, po)


@router.post("/{po_id}/resubmit", response_model=PurchaseOrderResponse)
async def resubmit_purchase_order(
    po_id: uuid.UUID,
    body: Optional[TransitionRequest] = None,
    current_user: Actor = Depends(get_current_user),
    workflow: PurchaseOrderWorkflow = Depends(get_workflow),
    service: PurchaseOrderService = Depends(get_po_service),
):
    po = await workflow.resubmit(po_id, current_user, expected_version=body.expected_version if body else None)
    return await _respond(service, po)


@router.post("/{po_id}/approve", response_model=PurchaseOrderResponse)
async def approve_purchase_order(
    po_id: uuid.UUID,
    body: Optional[TransitionRequest] = None,
    current_user: Actor = Depends(get_current_user),
    workflow: PurchaseOrderWorkflow = Depends(get_workflow),
    service: PurchaseOrderService = Depends(get_po_service),
):
    po = await workflow.approve(po_id, current_user, expected_version=body.expected_version if body else None)
    return await _respond(service, po)


@router.post("/{po_id}/reject", response_model=PurchaseOrderResponse)
async def reject_purchase_order(
    po_id: uuid.UUID,
    body: RejectRequest,
    current_user: Actor = Depends(get_current_user),
    workflow: PurchaseOrderWorkflow = Depends(get_workflow),
    service: PurchaseOrderService = Depends(get_po_service),
):
    po = await workflow.reject(po_id, current_user, body.reason, expected_version=body.expected_version)
    return await _respond(service, po)


@router.post("/{po_id}/complete", response_model=PurchaseOrderResponse)
async def complete_purchase_order(
    po_id: uuid.UUID,
    body: Optional[CompleteRequest] = None,
    current_user: Actor = Depends(get_current_user),
    workflow: PurchaseOrderWorkflow = Depends(get_workflow),
    service: PurchaseOrderService = Depends(get_po_service),
):
    body = body or CompleteRequest()
    received = receipts_by_line(body.received)
    po = await workflow.complete(po_id, current_user, received=received, expected_version=body.expected_version)
    return await _respond(service, po)


@router.post("/{po_id}/receipts", response_model=PurchaseOrderResponse)
async def record_receipt(
    po_id: uuid.UUID,
    body: ReceiptRequest,
    current_user: Actor = Depends(get_current_user),
    service: PurchaseOrderService = Depends(get_po_service),
):
    received = receipts_by_line(body.lines)
    po = await service.record_receipt(current_user, po_id, received, expected_version=body.expected_version)
    return await _respond(service, po)

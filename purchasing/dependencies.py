"""Per-request wiring of the workflow collaborators."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from purchasing.database import get_db
from purchasing.services.audit_service import AuditEmitter
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.catalog_service import CatalogService
from purchasing.services.change_request_service import ChangeRequestService
from purchasing.services.entity_store import EntityStore
from purchasing.services.locks import EntityLocks
from purchasing.services.purchase_order_service import PurchaseOrderService
from purchasing.services.workflow_engine import PurchaseOrderWorkflow

_oracle = RoleAuthorizationOracle()


def get_oracle() -> RoleAuthorizationOracle:
    return _oracle


def get_locks(request: Request) -> EntityLocks:
    return request.app.state.entity_locks


def get_store(db: AsyncSession = Depends(get_db)) -> EntityStore:
    return EntityStore(db)


def get_audit(db: AsyncSession = Depends(get_db)) -> AuditEmitter:
    return AuditEmitter(db)


def get_workflow(
    store: EntityStore = Depends(get_store),
    oracle: RoleAuthorizationOracle = Depends(get_oracle),
    audit: AuditEmitter = Depends(get_audit),
    locks: EntityLocks = Depends(get_locks),
) -> PurchaseOrderWorkflow:
    return PurchaseOrderWorkflow(store, oracle, audit, locks)


def get_po_service(
    store: EntityStore = Depends(get_store),
    oracle: RoleAuthorizationOracle = Depends(get_oracle),
    audit: AuditEmitter = Depends(get_audit),
    locks: EntityLocks = Depends(get_locks),
) -> PurchaseOrderService:
    return PurchaseOrderService(store, oracle, audit, locks)


def get_catalog_service(
    store: EntityStore = Depends(get_store),
    oracle: RoleAuthorizationOracle = Depends(get_oracle),
    audit: AuditEmitter = Depends(get_audit),
    locks: EntityLocks = Depends(get_locks),
) -> CatalogService:
    return CatalogService(store, oracle, audit, locks)


def get_change_request_service(
    store: EntityStore = Depends(get_store),
    oracle: RoleAuthorizationOracle = Depends(get_oracle),
    audit: AuditEmitter = Depends(get_audit),
    locks: EntityLocks = Depends(get_locks),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ChangeRequestService:
    return ChangeRequestService(store, oracle, audit, locks, catalog=catalog)

"""
Shared fixtures: a per-test SQLite database (aiosqlite, NullPool), seeded
users for every role, service builders and an HTTP client wired to the app
with the database dependency overridden.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import purchasing.models  # noqa: F401
from purchasing.database import Base, get_db
from purchasing.models.purchase_order import PurchaseOrderStatus
from purchasing.models.user import User, UserRole
from purchasing.schemas.purchase_order import PoItemInput, PurchaseOrderCreate
from purchasing.services.audit_service import AuditEmitter
from purchasing.services.auth_service import create_access_token
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.catalog_service import CatalogService
from purchasing.services.change_request_service import ChangeRequestService
from purchasing.services.entity_store import EntityStore
from purchasing.services.guards import Actor
from purchasing.services.locks import EntityLocks
from purchasing.services.purchase_order_service import PurchaseOrderService
from purchasing.services.workflow_engine import PurchaseOrderWorkflow


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'purchasing.db'}",
        poolclass=NullPool,
    )

    # let SQLAlchemy own BEGIN so SAVEPOINTs nest inside the outer transaction
    @event.listens_for(eng.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(eng.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as sess:
        yield sess


# ---------------------------------------------------------------------------
# Users / actors
# ---------------------------------------------------------------------------

SEED_USERS = {
    "manager": ("Mona Manager", "manager@example.com", UserRole.MANAGER),
    "assistant": ("Adam Assistant", "assistant@example.com", UserRole.ASSISTANT_MANAGER),
    "employee": ("Eli Employee", "employee@example.com", UserRole.EMPLOYEE),
    "other_employee": ("Omar Other", "other@example.com", UserRole.EMPLOYEE),
    "guest": ("Gia Guest", "guest@example.com", UserRole.GUEST),
}


@pytest_asyncio.fixture
async def users(session_maker) -> dict[str, User]:
    seeded = {}
    async with session_maker() as sess:
        for key, (name, email, role) in SEED_USERS.items():
            user = User(name=name, email=email, role=role.value, department="Operations")
            sess.add(user)
            seeded[key] = user
        await sess.commit()
    return seeded


@pytest.fixture
def actors(users) -> dict[str, Actor]:
    return {key: Actor(id=u.id, role=u.role, email=u.email) for key, u in users.items()}


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@dataclass
class Services:
    session: AsyncSession
    store: EntityStore
    audit: AuditEmitter
    workflow: PurchaseOrderWorkflow
    orders: PurchaseOrderService
    catalog: CatalogService
    change_requests: ChangeRequestService


@pytest.fixture
def locks() -> EntityLocks:
    return EntityLocks(timeout=2.0)


@pytest.fixture
def build_services(locks):
    oracle = RoleAuthorizationOracle()

    def _build(sess: AsyncSession, audit: Optional[AuditEmitter] = None) -> Services:
        store = EntityStore(sess)
        audit = audit or AuditEmitter(sess)
        catalog = CatalogService(store, oracle, audit, locks)
        return Services(
            session=sess,
            store=store,
            audit=audit,
            workflow=PurchaseOrderWorkflow(store, oracle, audit, locks),
            orders=PurchaseOrderService(store, oracle, audit, locks),
            catalog=catalog,
            change_requests=ChangeRequestService(store, oracle, audit, locks, catalog=catalog),
        )

    return _build


@pytest.fixture
def services(session, build_services) -> Services:
    return build_services(session)


def order_payload(**overrides) -> PurchaseOrderCreate:
    fields = dict(
        department="Operations",
        request_date=date(2026, 10, 1),
        request_type="purchase",
        requester_name="Eli Employee",
        currency="USD",
        items=[
            PoItemInput(item_code="PAP-A4", item_name="A4 paper", unit="box", quantity=Decimal("10"), price=Decimal("25.00")),
        ],
    )
    fields.update(overrides)
    return PurchaseOrderCreate(**fields)


@pytest.fixture
def new_order(services, actors):
    """Factory: create a draft order owned by the employee (or ``owner``)."""

    async def _create(owner: str = "employee", **overrides):
        return await services.orders.create(actors[owner], order_payload(**overrides))

    return _create


REVIEW_PATH = (
    ("submit", "employee", PurchaseOrderStatus.UNDER_ASSISTANT_REVIEW),
    ("approve", "assistant", PurchaseOrderStatus.UNDER_MANAGER_REVIEW),
    ("approve", "manager", PurchaseOrderStatus.IN_PROGRESS),
)


@pytest.fixture
def advance_order(services, actors):
    """Factory: walk an employee-owned draft along the review path to ``target``."""

    async def _advance(order, target: PurchaseOrderStatus):
        for action, who, reached in REVIEW_PATH:
            if order.status == target.value:
                break
            order = await services.workflow.transition(order.id, action, actors[who])
            if reached == target:
                break
        return order

    return _advance


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_headers(users):
    def _headers(key: str) -> dict:
        user = users[key]
        token = create_access_token(user_id=user.id, role=user.role, email=user.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(session_maker, locks) -> AsyncGenerator[AsyncClient, None]:
    from purchasing.main import app

    async def _get_db():
        async with session_maker() as sess:
            try:
                yield sess
                await sess.commit()
            except Exception:
                await sess.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.state.entity_locks = locks
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()

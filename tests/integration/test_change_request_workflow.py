"""
Integration tests for the change request approval workflow.

Tests: approve create/update/delete for vendors and items, immutability of
resolved requests, reject reason, manager-only resolution, atomic rollback
when the catalog change fails, missing targets, requester scoping.
"""

import uuid

import pytest

from purchasing.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError
from purchasing.models.change_request import ChangeRequestStatus
from purchasing.models.vendor import CatalogStatus
from purchasing.schemas.item import ItemCreate
from purchasing.schemas.vendor import VendorCreate

VENDOR = {
    "name": "Acme Supplies",
    "contact_person": "Rana Haddad",
    "phone": "+963 11 222 3344",
    "email": "sales@acme.com",
    "address": "Industrial Zone, Damascus",
}

PEN = {"name": "Ballpoint pen", "code": "PEN-1", "unit": "pcs"}


@pytest.fixture
def vendor(services, actors):
    async def _create(**overrides):
        return await services.catalog.create(
            actors["manager"], "vendor", VendorCreate(**{**VENDOR, **overrides})
        )

    return _create


@pytest.fixture
def item(services, actors):
    async def _create(**overrides):
        return await services.catalog.create(actors["manager"], "item", ItemCreate(**{**PEN, **overrides}))

    return _create


# ---------------------------------------------------------------------------
# Approve
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_approved_vendor_create_materializes_vendor(services, actors):
    cr = await services.change_requests.create(actors["employee"], "vendor", "create", data=VENDOR)
    assert cr.status == ChangeRequestStatus.PENDING.value
    assert cr.entity_id is None
    assert await services.store.count("vendor") == 0

    cr = await services.change_requests.approve(cr.id, actors["manager"])
    assert cr.status == ChangeRequestStatus.APPROVED.value
    assert cr.approved_by == actors["manager"].id
    assert cr.resolved_at is not None
    # create requests never carry a target id; the new id lives in the audit record
    assert cr.entity_id is None

    (audit,) = await services.store.list("audit_log", {"entity_id": cr.id, "action": "approve_change_request"})
    (created,) = await services.store.list("vendor")
    assert audit.details["target_id"] == str(created.id)
    assert created.name == "Acme Supplies"
    assert created.email == "sales@acme.com"
    assert created.status == CatalogStatus.ACTIVE.value


@pytest.mark.asyncio
@pytest.mark.parametrize("decision,reason", [("approve", None), ("reject", "too late")])
async def test_resolved_request_is_immutable(services, actors, decision, reason):
    cr = await services.change_requests.create(actors["employee"], "vendor", "create", data=VENDOR)
    await services.change_requests.approve(cr.id, actors["manager"])

    with pytest.raises(InvalidState):
        await services.change_requests.resolve(cr.id, actors["manager"], decision, reason=reason)
    assert await services.store.count("vendor") == 1


@pytest.mark.asyncio
async def test_approved_update_patches_only_given_fields(services, actors, item):
    pen = await item()
    cr = await services.change_requests.create(
        actors["assistant"], "item", "update", entity_id=pen.id, data={"unit": "box"}
    )
    await services.change_requests.approve(cr.id, actors["manager"])

    patched = await services.store.get("item", pen.id)
    assert patched.unit == "box"
    assert patched.name == "Ballpoint pen"
    assert patched.version == 2

    (audit,) = await services.store.list(
        "audit_log", {"entity_id": cr.id, "action": "approve_change_request"}
    )
    assert audit.details["entity_before"]["unit"] == "pcs"
    assert audit.details["entity_after"]["unit"] == "box"
    assert audit.details["target_id"] == str(pen.id)
    assert audit.after_state == {"status": "approved"}


@pytest.mark.asyncio
async def test_approved_delete_archives_instead_of_removing(services, actors, vendor):
    acme = await vendor()
    cr = await services.change_requests.create(actors["employee"], "vendor", "delete", entity_id=acme.id)
    await services.change_requests.approve(cr.id, actors["manager"])

    archived = await services.store.get("vendor", acme.id)
    assert archived.status == CatalogStatus.ARCHIVED.value
    assert await services.store.count("vendor") == 1


@pytest.mark.asyncio
async def test_missing_target_is_not_found_and_request_stays_pending(services, actors):
    cr = await services.change_requests.create(
        actors["employee"], "item", "update", entity_id=uuid.uuid4(), data={"unit": "box"}
    )
    cr_id = cr.id
    with pytest.raises(NotFound):
        await services.change_requests.approve(cr_id, actors["manager"])

    reloaded = await services.store.get("change_request", cr_id)
    assert reloaded.status == ChangeRequestStatus.PENDING.value
    assert reloaded.approved_by is None


@pytest.mark.asyncio
async def test_failed_catalog_change_rolls_back_resolution(services, actors, item):
    await item()
    cr = await services.change_requests.create(actors["employee"], "item", "create", data=PEN)
    cr_id = cr.id

    with pytest.raises(ValidationError):
        await services.change_requests.approve(cr_id, actors["manager"])

    reloaded = await services.store.get("change_request", cr_id)
    assert reloaded.status == ChangeRequestStatus.PENDING.value
    assert await services.store.count("item", {"code": "PEN-1"}) == 1
    assert await services.store.count("audit_log", {"entity_id": cr_id, "action": "approve_change_request"}) == 0


@pytest.mark.asyncio
async def test_stale_expected_version_is_conflict(services, actors):
    cr = await services.change_requests.create(actors["employee"], "vendor", "create", data=VENDOR)
    with pytest.raises(Conflict):
        await services.change_requests.approve(cr.id, actors["manager"], expected_version=cr.version + 1)
    assert await services.store.count("vendor") == 0


# ---------------------------------------------------------------------------
# Reject
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("reason", [None, "", "  "])
async def test_reject_requires_reason(services, actors, reason):
    cr = await services.change_requests.create(actors["employee"], "vendor", "create", data=VENDOR)
    with pytest.raises(ValidationError):
        await services.change_requests.reject(cr.id, actors["manager"], reason)


@pytest.mark.asyncio
async def test_reject_records_reason_without_touching_catalog(services, actors, vendor):
    acme = await vendor()
    cr = await services.change_requests.create(actors["employee"], "vendor", "delete", entity_id=acme.id)

    cr = await services.change_requests.reject(cr.id, actors["manager"], "still in use")
    assert cr.status == ChangeRequestStatus.REJECTED.value
    assert cr.reason == "still in use"
    assert (await services.store.get("vendor", acme.id)).status == CatalogStatus.ACTIVE.value

    (audit,) = await services.store.list("audit_log", {"entity_id": cr.id, "action": "reject_change_request"})
    assert audit.details["reason"] == "still in use"
    assert audit.details["entity_after"] is None


# ---------------------------------------------------------------------------
# Roles and scoping
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("role", ["assistant", "employee", "guest"])
async def test_only_manager_resolves(services, actors, role):
    cr = await services.change_requests.create(actors["employee"], "vendor", "create", data=VENDOR)
    with pytest.raises(Forbidden):
        await services.change_requests.approve(cr.id, actors[role])


@pytest.mark.asyncio
@pytest.mark.parametrize("role", ["manager", "guest"])
async def test_roles_that_cannot_propose(services, actors, role):
    with pytest.raises(Forbidden):
        await services.change_requests.create(actors[role], "vendor", "create", data=VENDOR)


@pytest.mark.asyncio
async def test_invalid_payload_is_rejected_at_creation(services, actors):
    with pytest.raises(ValidationError):
        await services.change_requests.create(actors["employee"], "vendor", "update", data={"name": "X"})
    assert await services.store.count("change_request") == 0


@pytest.mark.asyncio
async def test_employees_see_only_their_requests(services, actors):
    mine = await services.change_requests.create(actors["employee"], "vendor", "create", data=VENDOR)
    theirs = await services.change_requests.create(
        actors["other_employee"], "item", "create", data=PEN
    )

    rows, total = await services.change_requests.list(actors["employee"])
    assert total == 1
    assert [r.id for r in rows] == [mine.id]

    with pytest.raises(NotFound):
        await services.change_requests.get(actors["employee"], theirs.id)

    rows, total = await services.change_requests.list(actors["manager"], status="pending")
    assert total == 2
    assert {r.id for r in rows} == {mine.id, theirs.id}

    rows, total = await services.change_requests.list(actors["manager"], entity_type="item")
    assert [r.id for r in rows] == [theirs.id]

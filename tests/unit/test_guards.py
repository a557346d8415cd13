"""
Unit tests for purchasing/services/guards.py

Tests: line/order total math (rounding, null prices, idempotence), submit
checks (empty order, currency mismatch), received quantity bounds, reason,
ownership and version guards.
"""

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from purchasing.errors import Conflict, Forbidden, ValidationError
from purchasing.services.guards import (
    Actor,
    apply_receipts,
    check_received_quantity,
    compute_line_total,
    ensure_submittable_items,
    receipts_by_line,
    recompute_totals,
    require_owner,
    require_reason,
    require_version,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_item(line_number=1, quantity="1", price="0", currency="USD", received=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        line_number=line_number,
        quantity=Decimal(quantity),
        price=Decimal(price) if price is not None else None,
        line_total=Decimal("0"),
        currency=currency,
        received_quantity=received,
    )


def _make_order(currency="USD", version=1):
    return SimpleNamespace(currency=currency, total_amount=Decimal("0"), version=version)


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def test_line_total_rounds_half_up_to_cents():
    assert compute_line_total(Decimal("3"), Decimal("1.005")) == Decimal("3.02")
    assert compute_line_total(Decimal("2.5"), Decimal("0.333")) == Decimal("0.83")


def test_line_total_without_price_is_zero():
    assert compute_line_total(Decimal("7"), None) == Decimal("0.00")


def test_recompute_sums_lines_and_is_idempotent():
    order = _make_order()
    items = [
        _make_item(1, quantity="10", price="25.00"),
        _make_item(2, quantity="3", price="1.10"),
        _make_item(3, quantity="4", price=None),
    ]

    first = recompute_totals(order, items)
    second = recompute_totals(order, items)

    assert first == second == Decimal("253.30")
    assert [i.line_total for i in items] == [Decimal("250.00"), Decimal("3.30"), Decimal("0.00")]
    assert order.total_amount == sum(i.line_total for i in items)


def test_recompute_empty_order_is_zero():
    order = _make_order()
    assert recompute_totals(order, []) == Decimal("0.00")


# ---------------------------------------------------------------------------
# Submit checks
# ---------------------------------------------------------------------------

def test_submit_requires_items():
    with pytest.raises(ValidationError):
        ensure_submittable_items(_make_order(), [])


def test_submit_rejects_mixed_currency():
    items = [_make_item(1, currency="USD"), _make_item(2, currency="SYP")]
    with pytest.raises(ValidationError) as exc_info:
        ensure_submittable_items(_make_order("USD"), items)
    assert exc_info.value.details["line_numbers"] == [2]


def test_submit_accepts_consistent_currency():
    ensure_submittable_items(_make_order("SYP"), [_make_item(1, currency="SYP")])


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("received", ["0", "5", "10"])
def test_received_quantity_within_bounds(received):
    item = _make_item(quantity="10")
    assert check_received_quantity(item, Decimal(received)) == Decimal(received)


@pytest.mark.parametrize("received", ["-1", "10.001"])
def test_received_quantity_out_of_bounds(received):
    with pytest.raises(ValidationError):
        check_received_quantity(_make_item(quantity="10"), Decimal(received))


def test_apply_receipts_rejects_unknown_line():
    items = [_make_item(1, quantity="2")]
    with pytest.raises(ValidationError) as exc_info:
        apply_receipts(items, {uuid.uuid4(): Decimal("1")})
    assert "item_ids" in exc_info.value.details
    assert items[0].received_quantity is None


def test_apply_receipts_sets_named_lines_only():
    first, second = _make_item(1, quantity="2"), _make_item(2, quantity="5")
    apply_receipts([first, second], {second.id: Decimal("4")})
    assert first.received_quantity is None
    assert second.received_quantity == Decimal("4")


def test_receipt_lines_collect_by_id():
    first, second = uuid.uuid4(), uuid.uuid4()
    lines = [
        SimpleNamespace(item_id=first, received_quantity=Decimal("1")),
        SimpleNamespace(item_id=second, received_quantity=Decimal("2")),
    ]
    assert receipts_by_line(lines) == {first: Decimal("1"), second: Decimal("2")}


def test_receipt_lines_reject_repeated_id():
    line_id = uuid.uuid4()
    lines = [
        SimpleNamespace(item_id=line_id, received_quantity=Decimal("1")),
        SimpleNamespace(item_id=line_id, received_quantity=Decimal("3")),
    ]
    with pytest.raises(ValidationError) as exc_info:
        receipts_by_line(lines)
    assert exc_info.value.details == {"item_ids": [str(line_id)]}


# ---------------------------------------------------------------------------
# Actor / input guards
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reason_required(reason):
    with pytest.raises(ValidationError):
        require_reason(reason)


def test_reason_is_trimmed():
    assert require_reason("  over budget ") == "over budget"


def test_employee_must_own_record():
    owner = uuid.uuid4()
    with pytest.raises(Forbidden):
        require_owner(Actor(id=uuid.uuid4(), role="employee"), owner)
    require_owner(Actor(id=owner, role="employee"), owner)


def test_reviewers_may_act_for_others():
    require_owner(Actor(id=uuid.uuid4(), role="manager"), uuid.uuid4())
    require_owner(Actor(id=uuid.uuid4(), role="assistant_manager"), uuid.uuid4())


def test_version_guard():
    order = _make_order(version=3)
    require_version(order, None)
    require_version(order, 3)
    with pytest.raises(Conflict) as exc_info:
        require_version(order, 2)
    assert exc_info.value.retryable is True
    assert exc_info.value.details == {"expected_version": 2, "current_version": 3}

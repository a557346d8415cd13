"""
Shared guards for the purchasing workflows: actor checks, input checks and
the purchase order money math.

Money is Decimal throughout, rounded half-up to 2 places per line.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from purchasing.errors import Conflict, Forbidden, ValidationError
from purchasing.models.user import UserRole

TWO_PLACES = Decimal("0.01")

Number = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class Actor:
    id: uuid.UUID
    role: str
    email: Optional[str] = None

    @property
    def is_employee(self) -> bool:
        return self.role == UserRole.EMPLOYEE.value


def require_permission(oracle, actor: Actor, action: str, resource_type: str) -> None:
    if not oracle.can(actor.role, action, resource_type):
        raise Forbidden(
            f"Role '{actor.role}' cannot {action.replace('_', ' ')} {resource_type.replace('_', ' ')}",
            details={"required_roles": oracle.roles_for(action, resource_type)},
        )


def require_owner(actor: Actor, owner_id: uuid.UUID, what: str = "purchase order") -> None:
    """Employees act only on their own records; reviewers act on anyone's."""
    if actor.is_employee and actor.id != owner_id:
        raise Forbidden(f"You can only act on your own {what}")


def require_reason(reason: Optional[str]) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError("A non-empty reason is required")
    return cleaned


def require_version(entity, expected_version: Optional[int]) -> None:
    if expected_version is not None and expected_version != entity.version:
        raise Conflict(
            "Entity has changed since it was read; reload and retry",
            details={"expected_version": expected_version, "current_version": entity.version},
        )


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def compute_line_total(quantity: Number, price: Optional[Number]) -> Decimal:
    if price is None:
        return Decimal("0.00")
    return (to_decimal(quantity) * to_decimal(price)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def recompute_totals(order, items: Iterable) -> Decimal:
    """Refresh every line_total and the order total in place; idempotent."""
    total = Decimal("0.00")
    for item in items:
        item.line_total = compute_line_total(item.quantity, item.price)
        total += item.line_total
    order.total_amount = total.quantize(TWO_PLACES)
    return order.total_amount


def ensure_submittable_items(order, items: list) -> None:
    if not items:
        raise ValidationError("A purchase order needs at least one item before review")
    mismatched = [item.line_number for item in items if item.currency != order.currency]
    if mismatched:
        raise ValidationError(
            f"All items must be priced in the order currency {order.currency}",
            details={"line_numbers": mismatched, "currency": order.currency},
        )


def check_received_quantity(item, received: Number) -> Decimal:
    received = to_decimal(received)
    if received < 0 or received > to_decimal(item.quantity):
        raise ValidationError(
            "Received quantity must be between 0 and the ordered quantity",
            details={
                "line_number": item.line_number,
                "quantity": str(item.quantity),
                "received_quantity": str(received),
            },
        )
    return received


def apply_receipts(items: list, received: dict) -> None:
    """Set received_quantity on the lines named in ``received`` (line id → qty)."""
    by_id = {item.id: item for item in items}
    unknown = [str(line_id) for line_id in received if line_id not in by_id]
    if unknown:
        raise ValidationError(
            "Receipt references lines that are not on this order",
            details={"item_ids": unknown},
        )
    for line_id, quantity in received.items():
        by_id[line_id].received_quantity = check_received_quantity(by_id[line_id], quantity)


def receipts_by_line(lines: Iterable) -> dict:
    """Collect ``(item_id, received_quantity)`` lines into a map; each line id at most once."""
    received: dict = {}
    repeated = []
    for line in lines:
        if line.item_id in received:
            repeated.append(str(line.item_id))
        received[line.item_id] = line.received_quantity
    if repeated:
        raise ValidationError(
            "Each order line may appear only once per receipt",
            details={"item_ids": sorted(set(repeated))},
        )
    return received

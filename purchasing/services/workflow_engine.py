"""
Purchase order workflow engine: the status state machine.

    draft ─submit─▶ under_assistant_review ─approve─▶ under_manager_review ─approve─▶ in_progress ─complete─▶ completed
                          │ reject                          │ reject
                          ▼                                 ▼
                 rejected_by_assistant             rejected_by_manager
                          └──────── resubmit ───────────────┴──▶ under_assistant_review

Each transition runs under the order's entity lock inside one store
transaction: load fresh state, validate edge + actor, recompute totals,
versioned write, audit. Nothing lands unless all of it does.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import structlog

from purchasing.database import utcnow
from purchasing.errors import Forbidden, InvalidState, ValidationError
from purchasing.models.purchase_order import PurchaseOrder, PurchaseOrderStatus as S
from purchasing.services.audit_service import AuditEmitter, AuditEntry, emit_audit
from purchasing.services.authorization_service import RoleAuthorizationOracle
from purchasing.services.entity_store import EntityStore
from purchasing.services.guards import (
    Actor,
    apply_receipts,
    ensure_submittable_items,
    recompute_totals,
    require_owner,
    require_permission,
    require_reason,
    require_version,
)
from purchasing.services.locks import EntityLocks

logger = structlog.get_logger()

RESOURCE = "purchase_order"


@dataclass(frozen=True)
class Transition:
    source: S
    action: str
    target: S
    permission: str


TRANSITIONS: tuple[Transition, ...] = (
    Transition(S.DRAFT, "submit", S.UNDER_ASSISTANT_REVIEW, "submit"),
    Transition(S.UNDER_ASSISTANT_REVIEW, "approve", S.UNDER_MANAGER_REVIEW, "assistant_review"),
    Transition(S.UNDER_ASSISTANT_REVIEW, "reject", S.REJECTED_BY_ASSISTANT, "assistant_review"),
    Transition(S.UNDER_MANAGER_REVIEW, "approve", S.IN_PROGRESS, "manager_review"),
    Transition(S.UNDER_MANAGER_REVIEW, "reject", S.REJECTED_BY_MANAGER, "manager_review"),
    Transition(S.IN_PROGRESS, "complete", S.COMPLETED, "complete"),
    Transition(S.REJECTED_BY_ASSISTANT, "resubmit", S.UNDER_ASSISTANT_REVIEW, "submit"),
    Transition(S.REJECTED_BY_MANAGER, "resubmit", S.UNDER_ASSISTANT_REVIEW, "submit"),
    # submit from a rejected state behaves as resubmit
    Transition(S.REJECTED_BY_ASSISTANT, "submit", S.UNDER_ASSISTANT_REVIEW, "submit"),
    Transition(S.REJECTED_BY_MANAGER, "submit", S.UNDER_ASSISTANT_REVIEW, "submit"),
)

_BY_EDGE = {(t.source, t.action): t for t in TRANSITIONS}

ACTIONS = frozenset(t.action for t in TRANSITIONS)
SUBMIT_ACTIONS = frozenset({"submit", "resubmit"})
TERMINAL_STATES = frozenset({S.REJECTED_BY_ASSISTANT, S.REJECTED_BY_MANAGER, S.COMPLETED})
EDITABLE_STATES = frozenset({S.DRAFT, S.REJECTED_BY_ASSISTANT, S.REJECTED_BY_MANAGER})


def find_transition(status: S, action: str) -> Optional[Transition]:
    return _BY_EDGE.get((S(status), action))


def allowed_actions(status: S) -> list[str]:
    return sorted({t.action for t in TRANSITIONS if t.source == S(status)})


def _permissions_for(action: str) -> set[str]:
    return {t.permission for t in TRANSITIONS if t.action == action}


def _append_note(notes: Optional[str], line: str) -> str:
    return line if not notes else f"{notes}\n\n{line}"


class PurchaseOrderWorkflow:
    def __init__(
        self,
        store: EntityStore,
        oracle: RoleAuthorizationOracle,
        audit: AuditEmitter,
        locks: EntityLocks,
    ):
        self.store = store
        self.oracle = oracle
        self.audit = audit
        self.locks = locks

    async def submit(self, order_id: uuid.UUID, actor: Actor, expected_version: Optional[int] = None):
        return await self.transition(order_id, "submit", actor, expected_version=expected_version)

    async def resubmit(self, order_id: uuid.UUID, actor: Actor, expected_version: Optional[int] = None):
        return await self.transition(order_id, "resubmit", actor, expected_version=expected_version)

    async def approve(self, order_id: uuid.UUID, actor: Actor, expected_version: Optional[int] = None):
        return await self.transition(order_id, "approve", actor, expected_version=expected_version)

    async def reject(
        self,
        order_id: uuid.UUID,
        actor: Actor,
        reason: Optional[str],
        expected_version: Optional[int] = None,
    ):
        return await self.transition(
            order_id, "reject", actor, reason=reason, expected_version=expected_version
        )

    async def complete(
        self,
        order_id: uuid.UUID,
        actor: Actor,
        received: Optional[dict[uuid.UUID, Decimal]] = None,
        expected_version: Optional[int] = None,
    ):
        """
        Close an in-progress order. ``received`` maps line ids to received
        quantities; lines never recorded are stamped with 0.
        """
        return await self.transition(
            order_id, "complete", actor, received=received, expected_version=expected_version
        )

    async def transition(
        self,
        order_id: uuid.UUID,
        action: str,
        actor: Actor,
        reason: Optional[str] = None,
        received: Optional[dict[uuid.UUID, Decimal]] = None,
        expected_version: Optional[int] = None,
    ) -> PurchaseOrder:
        if action not in ACTIONS:
            raise ValidationError(
                f"Unknown purchase order action '{action}'",
                details={"allowed": sorted(ACTIONS)},
            )
        if not any(self.oracle.can(actor.role, p, RESOURCE) for p in _permissions_for(action)):
            raise Forbidden(f"Role '{actor.role}' cannot {action} purchase orders")
        if action == "reject":
            reason = require_reason(reason)

        async with self.locks.hold(RESOURCE, order_id):
            async with self.store.transaction():
                order = await self.store.get(RESOURCE, order_id, for_update=True)
                loaded_version = order.version
                require_version(order, expected_version)

                before = S(order.status)
                edge = find_transition(before, action)
                if edge is None:
                    raise InvalidState(
                        f"Cannot {action} a purchase order in '{before.value}' status",
                        details={"status": before.value, "allowed_actions": allowed_actions(before)},
                    )
                require_permission(self.oracle, actor, edge.permission, RESOURCE)
                if action in SUBMIT_ACTIONS:
                    require_owner(actor, order.created_by)

                items = await self.store.items_for(order.id)
                if action in SUBMIT_ACTIONS:
                    ensure_submittable_items(order, items)
                elif action == "complete":
                    self._stamp_receipts(items, received or {})
                elif action == "reject":
                    order.notes = _append_note(order.notes, f"Rejection reason: {reason}")

                recompute_totals(order, items)
                order.status = edge.target.value
                order.updated_at = utcnow()
                await self.store.put(RESOURCE, order.id, order, loaded_version)

                details = {"number": order.number, "total_amount": order.total_amount}
                if reason:
                    details["reason"] = reason
                await emit_audit(
                    self.audit,
                    AuditEntry(
                        actor_id=actor.id,
                        actor_email=actor.email,
                        action=action,
                        entity_type=RESOURCE,
                        entity_id=order.id,
                        before_state={"status": before.value},
                        after_state={"status": order.status},
                        details=details,
                    ),
                )

        logger.info(
            "po_transition",
            po_id=str(order.id),
            number=order.number,
            action=action,
            from_status=before.value,
            to_status=order.status,
            actor_id=str(actor.id),
        )
        return order

    @staticmethod
    def _stamp_receipts(items: list, received: dict) -> None:
        apply_receipts(items, received)
        for item in items:
            if item.received_quantity is None:
                item.received_quantity = Decimal("0")

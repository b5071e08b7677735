"""Transfer status transitions.

``next_status`` is a pure function of the current status, the action and a
small context object. It never touches the database; ``TransferWorkflow``
applies the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from app.stockflow.core.error_catalog import ImmutableAfterApproval, InvalidStateTransition
from app.stockflow.services.authorization import ApprovalCapacity


class TransferStatus(str, Enum):
    REQUESTED = "requested"
    STORE_APPROVED = "store_approved"
    WAREHOUSE_APPROVED = "warehouse_approved"
    PACKING = "packing"
    PACKED = "packed"
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class TransferAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    ASSIGN_PACKING = "assign_packing"
    PACKING_TASK_COMPLETED = "packing_task_completed"
    DELIVERY_PICKED_UP = "delivery_picked_up"
    DELIVERY_IN_TRANSIT = "delivery_in_transit"
    DELIVERY_DELIVERED = "delivery_delivered"


ALL_STATUSES = tuple(status.value for status in TransferStatus)
TERMINAL_STATUSES = frozenset({"delivered", "rejected", "cancelled"})
LOGISTICS_STATUSES = ("warehouse_approved", "packing", "packed", "dispatched", "in_transit")
IN_PROGRESS_STATUSES = ("store_approved",) + LOGISTICS_STATUSES
EDITABLE_STATUSES = frozenset({"requested"})
DELETABLE_STATUSES = frozenset({"requested", "rejected", "cancelled"})

_ALLOWED_ACTIONS: dict[str, tuple[TransferAction, ...]] = {
    "requested": (
        TransferAction.APPROVE,
        TransferAction.REJECT,
        TransferAction.CANCEL,
        TransferAction.DELIVERY_DELIVERED,
    ),
    "store_approved": (TransferAction.APPROVE, TransferAction.REJECT, TransferAction.DELIVERY_DELIVERED),
    "warehouse_approved": (TransferAction.ASSIGN_PACKING, TransferAction.DELIVERY_DELIVERED),
    "packing": (
        TransferAction.ASSIGN_PACKING,
        TransferAction.PACKING_TASK_COMPLETED,
        TransferAction.DELIVERY_DELIVERED,
    ),
    "packed": (TransferAction.DELIVERY_PICKED_UP, TransferAction.DELIVERY_DELIVERED),
    "dispatched": (
        TransferAction.DELIVERY_PICKED_UP,
        TransferAction.DELIVERY_IN_TRANSIT,
        TransferAction.DELIVERY_DELIVERED,
    ),
    "in_transit": (
        TransferAction.DELIVERY_PICKED_UP,
        TransferAction.DELIVERY_IN_TRANSIT,
        TransferAction.DELIVERY_DELIVERED,
    ),
    "delivered": (),
    "rejected": (),
    "cancelled": (),
}

# Status edges a consistent status log may contain, creation included.
LEGAL_EDGES = frozenset(
    {
        (None, "requested"),
        ("requested", "store_approved"),
        ("requested", "warehouse_approved"),
        ("store_approved", "warehouse_approved"),
        ("requested", "rejected"),
        ("store_approved", "rejected"),
        ("requested", "cancelled"),
        ("warehouse_approved", "packing"),
        ("packing", "packed"),
        ("packed", "dispatched"),
        ("dispatched", "in_transit"),
        ("requested", "delivered"),
        ("store_approved", "delivered"),
        ("warehouse_approved", "delivered"),
        ("packing", "delivered"),
        ("packed", "delivered"),
        ("dispatched", "delivered"),
        ("in_transit", "delivered"),
    }
)

# Side effects named by a transition; the workflow maps them to columns.
EFFECT_STORE_APPROVAL = "store_approval"
EFFECT_WAREHOUSE_APPROVAL = "warehouse_approval"
EFFECT_REJECTION = "rejection"
EFFECT_CANCELLATION = "cancellation"
EFFECT_DISPATCH = "dispatch"
EFFECT_DELIVERY = "delivery"


@dataclass(frozen=True)
class TransitionContext:
    approval: ApprovalCapacity = ApprovalCapacity.NONE
    source_type: str | None = None
    destination_type: str | None = None
    all_packing_completed: bool = False
    rejection_reason: str | None = None
    recipient_name: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Transition:
    action: TransferAction
    from_status: str
    to_status: str
    note: str | None = None
    effects: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return self.from_status != self.to_status


def _status_value(status) -> str:
    return status.value if isinstance(status, TransferStatus) else str(status)


def allowed_actions(status) -> list[str]:
    return [action.value for action in _ALLOWED_ACTIONS.get(_status_value(status), ())]


def _invalid(status: str, action: str, message: str | None = None) -> InvalidStateTransition:
    return InvalidStateTransition(
        message or f"cannot {action.replace('_', ' ')}: transfer is in '{status}'",
        current_status=status,
        action=action,
        allowed_actions=allowed_actions(status),
    )


def ensure_action_allowed(status, action: TransferAction) -> None:
    status_value = _status_value(status)
    if action not in _ALLOWED_ACTIONS.get(status_value, ()):
        raise _invalid(status_value, action.value)


def _stay(action: TransferAction, status: str) -> Transition:
    return Transition(action=action, from_status=status, to_status=status)


def _approve(status: str, context: TransitionContext) -> Transition:
    action = TransferAction.APPROVE
    if status == "requested":
        if context.approval is ApprovalCapacity.AS_WAREHOUSE_MANAGER:
            return Transition(
                action,
                status,
                "warehouse_approved",
                context.notes or "Approved by source warehouse manager",
                (EFFECT_STORE_APPROVAL, EFFECT_WAREHOUSE_APPROVAL),
            )
        if context.approval is ApprovalCapacity.AS_STORE_MANAGER:
            if context.source_type == "store" and context.destination_type == "store":
                return Transition(
                    action,
                    status,
                    "warehouse_approved",
                    context.notes or "Approved by source manager (store to store)",
                    (EFFECT_STORE_APPROVAL, EFFECT_WAREHOUSE_APPROVAL),
                )
            return Transition(
                action,
                status,
                "store_approved",
                context.notes or "Approved by store/source manager",
                (EFFECT_STORE_APPROVAL,),
            )
        raise _invalid(status, action.value, "cannot approve: no manager grant at the source location")
    if context.approval is ApprovalCapacity.AS_WAREHOUSE_MANAGER:
        return Transition(
            action,
            status,
            "warehouse_approved",
            context.notes or "Approved by warehouse manager",
            (EFFECT_WAREHOUSE_APPROVAL,),
        )
    raise _invalid(status, action.value, "cannot approve: store_approved transfers need a warehouse manager")


def next_status(status, action: TransferAction, context: TransitionContext | None = None) -> Transition:
    """Return the transition for ``action`` taken from ``status``.

    Raises ``InvalidStateTransition`` for every pair outside the transition
    table. A returned transition may keep the status unchanged (a second
    packing task, a repeated delivery stage).
    """
    context = context or TransitionContext()
    status_value = _status_value(status)
    ensure_action_allowed(status_value, action)

    if action is TransferAction.APPROVE:
        return _approve(status_value, context)

    if action is TransferAction.REJECT:
        return Transition(
            action,
            status_value,
            "rejected",
            context.rejection_reason or context.notes or "Transfer rejected",
            (EFFECT_REJECTION,),
        )

    if action is TransferAction.CANCEL:
        return Transition(
            action,
            status_value,
            "cancelled",
            context.notes or "Transfer cancelled by requester",
            (EFFECT_CANCELLATION,),
        )

    if action is TransferAction.ASSIGN_PACKING:
        if status_value == "warehouse_approved":
            return Transition(action, status_value, "packing", context.notes or "Packing task assigned")
        return _stay(action, status_value)

    if action is TransferAction.PACKING_TASK_COMPLETED:
        if context.all_packing_completed:
            return Transition(action, status_value, "packed", "All packing tasks completed")
        return _stay(action, status_value)

    if action is TransferAction.DELIVERY_PICKED_UP:
        if status_value == "packed":
            return Transition(action, status_value, "dispatched", "Delivery picked_up", (EFFECT_DISPATCH,))
        return _stay(action, status_value)

    if action is TransferAction.DELIVERY_IN_TRANSIT:
        if status_value == "dispatched":
            return Transition(action, status_value, "in_transit", "Delivery in_transit")
        return _stay(action, status_value)

    note = f"Delivered to {context.recipient_name}" if context.recipient_name else "Delivery completed"
    return Transition(action, status_value, "delivered", note, (EFFECT_DELIVERY,))


def ensure_editable(status) -> None:
    status_value = _status_value(status)
    if status_value not in EDITABLE_STATUSES:
        raise ImmutableAfterApproval(
            f"cannot edit: transfer is in '{status_value}'; items and fields freeze once it leaves 'requested'",
            current_status=status_value,
        )


def ensure_deletable(status) -> None:
    status_value = _status_value(status)
    if status_value not in DELETABLE_STATUSES:
        raise _invalid(
            status_value,
            "delete",
            f"cannot delete: transfer is in '{status_value}'; only requested, rejected or cancelled transfers can be deleted",
        )


def ensure_packing_assignable(status) -> None:
    ensure_action_allowed(status, TransferAction.ASSIGN_PACKING)


def ensure_packing_open(status) -> None:
    status_value = _status_value(status)
    if status_value != "packing":
        raise _invalid(status_value, "update_packing_task", f"cannot update packing: transfer is in '{status_value}'")


def ensure_delivery_assignable(status) -> None:
    status_value = _status_value(status)
    if status_value not in LOGISTICS_STATUSES:
        raise _invalid(status_value, "assign_delivery", f"cannot assign delivery: transfer is in '{status_value}'")


def ensure_delivery_open(status) -> None:
    status_value = _status_value(status)
    if status_value not in LOGISTICS_STATUSES:
        raise _invalid(status_value, "update_delivery", f"cannot update delivery: transfer is in '{status_value}'")


class StatusLogReplayError(ValueError):
    pass


def replay_status_log(entries: Iterable) -> str:
    """Fold ordered log entries into the status they describe."""
    current = None
    expected_sequence = 1
    for entry in entries:
        if entry.sequence != expected_sequence:
            raise StatusLogReplayError(f"sequence gap: expected {expected_sequence}, found {entry.sequence}")
        if entry.from_status != current:
            raise StatusLogReplayError(
                f"entry {entry.sequence} starts from {entry.from_status!r} but the log is at {current!r}"
            )
        if (entry.from_status, entry.to_status) not in LEGAL_EDGES:
            raise StatusLogReplayError(
                f"entry {entry.sequence} records an illegal edge {entry.from_status!r} -> {entry.to_status!r}"
            )
        current = entry.to_status
        expected_sequence += 1
    if current is None:
        raise StatusLogReplayError("status log is empty")
    return current

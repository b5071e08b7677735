from __future__ import annotations

import logging
from datetime import datetime

from app.stockflow.core.error_catalog import ConcurrentModification, InvalidStateTransition, NotFoundError
from app.stockflow.core.logging import log_event
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import StatusLogEntry, Transfer
from app.stockflow.repos.status_log import StatusLogRepository
from app.stockflow.repos.transfers import TransferRepository
from app.stockflow.services.state_machine import (
    EFFECT_CANCELLATION,
    EFFECT_DELIVERY,
    EFFECT_DISPATCH,
    EFFECT_REJECTION,
    EFFECT_STORE_APPROVAL,
    EFFECT_WAREHOUSE_APPROVAL,
    TransferAction,
    Transition,
    TransitionContext,
    allowed_actions,
    next_status,
)

logger = logging.getLogger("stockflow.workflow")


def _effect_values(transition: Transition, actor: str, now: datetime, context: TransitionContext) -> dict:
    values: dict = {}
    for effect in transition.effects:
        if effect == EFFECT_STORE_APPROVAL:
            values.update(store_approved_by=actor, store_approved_at=now)
        elif effect == EFFECT_WAREHOUSE_APPROVAL:
            values.update(warehouse_approved_by=actor, warehouse_approved_at=now)
        elif effect == EFFECT_REJECTION:
            values.update(rejected_by=actor, rejected_at=now, rejection_reason=context.rejection_reason)
        elif effect == EFFECT_CANCELLATION:
            values.update(cancelled_by=actor, cancelled_at=now)
        elif effect == EFFECT_DISPATCH:
            values.update(dispatched_at=now)
        elif effect == EFFECT_DELIVERY:
            values.update(delivered_at=now, recipient_name=context.recipient_name)
    return values


class TransferWorkflow:
    """Single write path for transfer status.

    Every call performs one compare-and-swap on ``(status, version)``; a status
    change also appends exactly one status log entry. Nothing is committed
    here, the caller owns the unit of work.
    """

    def __init__(self, db):
        self.db = db
        self.transfers = TransferRepository(db)
        self.status_log = StatusLogRepository(db)

    def record_creation(self, transfer: Transfer, *, actor: str, notes: str | None = None) -> StatusLogEntry:
        entry = self.status_log.append(
            transfer_id=transfer.id,
            from_status=None,
            to_status=transfer.status,
            changed_by=actor,
            changed_at=transfer.requested_at,
            notes=notes or "Transfer request created",
        )
        metrics.record_transition(None, transfer.status)
        log_event(
            logger,
            "transfer_transition",
            transfer_id=str(transfer.id),
            transfer_number=transfer.transfer_number,
            action="create",
            from_status=None,
            to_status=transfer.status,
            user_id=actor,
        )
        return entry

    def apply(
        self,
        transfer: Transfer,
        action: TransferAction,
        *,
        actor: str,
        context: TransitionContext | None = None,
    ) -> Transition:
        context = context or TransitionContext()
        transition = next_status(transfer.status, action, context)
        now = datetime.utcnow()
        values = {"updated_at": now}
        if transition.changed:
            values["status"] = transition.to_status
            values.update(_effect_values(transition, actor, now, context))
        self._swap(transfer, values)
        if transition.changed:
            self.status_log.append(
                transfer_id=transfer.id,
                from_status=transition.from_status,
                to_status=transition.to_status,
                changed_by=actor,
                changed_at=now,
                notes=transition.note,
            )
            metrics.record_transition(transition.from_status, transition.to_status)
            log_event(
                logger,
                "transfer_transition",
                transfer_id=str(transfer.id),
                transfer_number=transfer.transfer_number,
                action=action.value,
                from_status=transition.from_status,
                to_status=transition.to_status,
                user_id=actor,
                version=transfer.version,
            )
        return transition

    def touch(self, transfer: Transfer, **values) -> None:
        """Bump ``version`` without a status change, failing on a concurrent writer."""
        values.setdefault("updated_at", datetime.utcnow())
        self._swap(transfer, values)

    def _swap(self, transfer: Transfer, values: dict) -> None:
        expected_status = transfer.status
        expected_version = transfer.version
        swapped = self.transfers.compare_and_swap(
            transfer,
            expected_status=expected_status,
            expected_version=expected_version,
            values=values,
        )
        if not swapped:
            current = self.transfers.current_state(transfer.id)
            if current is None:
                raise NotFoundError("transfer not found", transfer_id=str(transfer.id))
            current_status, current_version = current
            if current_status != expected_status:
                raise InvalidStateTransition(
                    f"transfer moved from '{expected_status}' to '{current_status}' while this action was in flight",
                    current_status=current_status,
                    allowed_actions=allowed_actions(current_status),
                )
            raise ConcurrentModification(
                "transfer was changed by another request; reload and retry",
                expected_version=expected_version,
                current_version=current_version,
            )
        self.db.refresh(transfer)

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.stockflow.core.error_catalog import ConcurrentModification, NotFoundError, ValidationError
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import DeliveryAssignment, Transfer
from app.stockflow.repos.delivery import DeliveryAssignmentRepository
from app.stockflow.schemas.delivery import (
    DeliveryAssignmentCreateRequest,
    DeliveryUpdateRequest,
    ItemDeliveredQuantity,
)
from app.stockflow.services.authorization import authorize_assignment_update
from app.stockflow.services.ids import parse_id
from app.stockflow.services.state_machine import (
    TransferAction,
    TransitionContext,
    ensure_delivery_assignable,
    ensure_delivery_open,
)
from app.stockflow.services.transfers import TransferService

DELIVERY_STATUS_ORDER = {"pending": 0, "picked_up": 1, "in_transit": 2, "delivered": 3}
_VEHICLE_FIELDS = ("vehicle_number", "driver_name", "driver_phone", "delivery_notes")


def delivery_events(previous: str, current: str) -> list[TransferAction]:
    """Parent transfer events for a delivery moving from ``previous`` to ``current``."""
    if DELIVERY_STATUS_ORDER[current] <= DELIVERY_STATUS_ORDER[previous]:
        return []
    if current == "delivered":
        return [TransferAction.DELIVERY_DELIVERED]
    events = []
    if DELIVERY_STATUS_ORDER[previous] < DELIVERY_STATUS_ORDER["picked_up"]:
        events.append(TransferAction.DELIVERY_PICKED_UP)
    if current == "in_transit":
        events.append(TransferAction.DELIVERY_IN_TRANSIT)
    return events


def apply_delivered_quantities(items_by_id: dict, quantities: list[ItemDeliveredQuantity], *, now: datetime) -> None:
    for index, entry in enumerate(quantities):
        item = items_by_id.get(parse_id(entry.item_id, entity="transfer_item"))
        if item is None:
            raise ValidationError(
                "item does not belong to this transfer",
                field=f"item_quantities.{index}.item_id",
                item_id=entry.item_id,
            )
        quantity = entry.quantity_delivered
        if quantity > item.quantity_packed:
            raise ValidationError(
                f"quantity_delivered {quantity} exceeds quantity_packed {item.quantity_packed}",
                field=f"item_quantities.{index}.quantity_delivered",
                item_id=str(item.id),
            )
        if quantity < item.quantity_delivered:
            raise ValidationError(
                f"quantity_delivered cannot decrease from {item.quantity_delivered} to {quantity}",
                field=f"item_quantities.{index}.quantity_delivered",
                item_id=str(item.id),
            )
        if quantity != item.quantity_delivered:
            item.quantity_delivered = quantity
            item.updated_at = now


class DeliveryService:
    def __init__(self, db):
        self.db = db
        self.repo = DeliveryAssignmentRepository(db)
        self.transfers = TransferService(db)
        self.workflow = self.transfers.workflow

    def list_assignments(self, transfer_id) -> list[DeliveryAssignment]:
        transfer = self.transfers.load(transfer_id)
        return self.repo.list_assignments(transfer.id)

    def assign_delivery(self, transfer_id, payload: DeliveryAssignmentCreateRequest, *, actor: str) -> DeliveryAssignment:
        transfer = self.transfers.load(transfer_id, for_update=True)
        ensure_delivery_assignable(transfer.status)
        assignee = payload.assigned_to.strip()
        if not assignee:
            raise ValidationError("assigned_to is required", field="assigned_to")
        now = datetime.utcnow()
        assignment = DeliveryAssignment(
            transfer_id=transfer.id,
            assigned_to=assignee,
            assigned_by=actor,
            assigned_at=now,
            assignment_seq=self.repo.next_assignment_seq(transfer.id),
            delivery_status="pending",
            vehicle_number=payload.vehicle_number,
            driver_name=payload.driver_name,
            driver_phone=payload.driver_phone,
            delivery_notes=payload.delivery_notes,
            created_at=now,
            updated_at=now,
        )
        try:
            self.repo.add(assignment)
        except IntegrityError as exc:
            self.db.rollback()
            raise ConcurrentModification(
                "another delivery assignment was created for this transfer; reload and retry",
                transfer_id=str(transfer.id),
            ) from exc
        self.workflow.touch(transfer)
        self.db.commit()
        metrics.record_assignment_stage("delivery_assignment", "pending")
        return assignment

    def update_delivery(
        self,
        transfer_id,
        assignment_id,
        payload: DeliveryUpdateRequest,
        *,
        actor: str,
    ) -> tuple[DeliveryAssignment, Transfer]:
        transfer = self.transfers.load(transfer_id, for_update=True)
        assignment = self.repo.get_assignment(transfer.id, parse_id(assignment_id, entity="delivery_assignment"))
        if assignment is None:
            raise NotFoundError("delivery assignment not found", delivery_assignment_id=str(assignment_id))
        ensure_delivery_open(transfer.status)
        authorize_assignment_update(actor, assignment, kind="delivery_assignment")

        now = datetime.utcnow()
        previous_status = assignment.delivery_status
        if payload.delivery_status is not None and payload.delivery_status != previous_status:
            if DELIVERY_STATUS_ORDER[payload.delivery_status] < DELIVERY_STATUS_ORDER[previous_status]:
                raise ValidationError(
                    f"delivery status cannot move back from {previous_status} to {payload.delivery_status}",
                    field="delivery_status",
                )
            assignment.delivery_status = payload.delivery_status
            if assignment.picked_up_at is None:
                assignment.picked_up_at = now
            if payload.delivery_status == "delivered":
                assignment.delivered_at = now
        for key in _VEHICLE_FIELDS:
            if key in payload.model_fields_set:
                setattr(assignment, key, getattr(payload, key))
        if payload.recipient_name is not None:
            assignment.recipient_name = payload.recipient_name.strip() or None
        assignment.updated_at = now

        if payload.item_quantities:
            apply_delivered_quantities(
                self.transfers.repo.get_items_by_id(transfer.id),
                payload.item_quantities,
                now=now,
            )
        self.db.flush()

        latest = self.repo.latest_assignment(transfer.id)
        events = []
        if latest is not None and latest.id == assignment.id:
            events = delivery_events(previous_status, assignment.delivery_status)
        if events:
            context = TransitionContext(recipient_name=assignment.recipient_name)
            for event in events:
                self.workflow.apply(transfer, event, actor=actor, context=context)
        else:
            self.workflow.touch(transfer)
        self.db.commit()
        if assignment.delivery_status != previous_status:
            metrics.record_assignment_stage("delivery_assignment", assignment.delivery_status)
        return assignment, transfer

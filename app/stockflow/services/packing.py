from __future__ import annotations

from datetime import datetime

from app.stockflow.core.error_catalog import NotFoundError, ValidationError
from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import PackingTask, Transfer
from app.stockflow.repos.packing import PackingTaskRepository
from app.stockflow.schemas.packing import ItemPackedQuantity, PackingTaskCreateRequest, PackingTaskUpdateRequest
from app.stockflow.services.authorization import authorize_assignment_update
from app.stockflow.services.ids import parse_id
from app.stockflow.services.state_machine import (
    TransferAction,
    TransitionContext,
    ensure_packing_assignable,
    ensure_packing_open,
)
from app.stockflow.services.transfers import TransferService

TASK_STATUS_ORDER = {"pending": 0, "in_progress": 1, "completed": 2}


def apply_packed_quantities(items_by_id: dict, quantities: list[ItemPackedQuantity], *, now: datetime) -> None:
    """Set ``quantity_packed`` absolutely; values may only grow up to ``quantity_requested``."""
    for index, entry in enumerate(quantities):
        item = items_by_id.get(parse_id(entry.item_id, entity="transfer_item"))
        if item is None:
            raise ValidationError(
                "item does not belong to this transfer",
                field=f"item_quantities.{index}.item_id",
                item_id=entry.item_id,
            )
        quantity = entry.quantity_packed
        if quantity > item.quantity_requested:
            raise ValidationError(
                f"quantity_packed {quantity} exceeds quantity_requested {item.quantity_requested}",
                field=f"item_quantities.{index}.quantity_packed",
                item_id=str(item.id),
            )
        if quantity < item.quantity_packed:
            raise ValidationError(
                f"quantity_packed cannot decrease from {item.quantity_packed} to {quantity}",
                field=f"item_quantities.{index}.quantity_packed",
                item_id=str(item.id),
            )
        if quantity != item.quantity_packed:
            item.quantity_packed = quantity
            item.updated_at = now


class PackingService:
    def __init__(self, db):
        self.db = db
        self.repo = PackingTaskRepository(db)
        self.transfers = TransferService(db)
        self.workflow = self.transfers.workflow

    def list_tasks(self, transfer_id) -> list[PackingTask]:
        transfer = self.transfers.load(transfer_id)
        return self.repo.list_tasks(transfer.id)

    def assign_task(self, transfer_id, payload: PackingTaskCreateRequest, *, actor: str) -> PackingTask:
        transfer = self.transfers.load(transfer_id, for_update=True)
        ensure_packing_assignable(transfer.status)
        assignee = payload.assigned_to.strip()
        if not assignee:
            raise ValidationError("assigned_to is required", field="assigned_to")
        now = datetime.utcnow()
        task = PackingTask(
            transfer_id=transfer.id,
            assigned_to=assignee,
            assigned_by=actor,
            assigned_at=now,
            task_status="pending",
            packing_notes=payload.packing_notes,
            created_at=now,
            updated_at=now,
        )
        self.repo.add(task)
        self.workflow.apply(transfer, TransferAction.ASSIGN_PACKING, actor=actor)
        self.db.commit()
        metrics.record_assignment_stage("packing_task", "pending")
        return task

    def update_task(self, transfer_id, task_id, payload: PackingTaskUpdateRequest, *, actor: str) -> tuple[PackingTask, Transfer]:
        transfer = self.transfers.load(transfer_id, for_update=True)
        task = self.repo.get_task(transfer.id, parse_id(task_id, entity="packing_task"))
        if task is None:
            raise NotFoundError("packing task not found", packing_task_id=str(task_id))
        ensure_packing_open(transfer.status)
        authorize_assignment_update(actor, task, kind="packing_task")

        now = datetime.utcnow()
        newly_completed = False
        stage_changed = False
        if payload.task_status is not None and payload.task_status != task.task_status:
            if TASK_STATUS_ORDER[payload.task_status] < TASK_STATUS_ORDER[task.task_status]:
                raise ValidationError(
                    f"task status cannot move back from {task.task_status} to {payload.task_status}",
                    field="task_status",
                )
            task.task_status = payload.task_status
            stage_changed = True
            if task.started_at is None:
                task.started_at = now
            if payload.task_status == "completed":
                task.completed_at = now
                newly_completed = True
        if "packing_notes" in payload.model_fields_set:
            task.packing_notes = payload.packing_notes
        task.updated_at = now

        if payload.item_quantities:
            apply_packed_quantities(
                self.transfers.repo.get_items_by_id(transfer.id),
                payload.item_quantities,
                now=now,
            )
        self.db.flush()

        if newly_completed:
            open_tasks = self.repo.count_open_tasks(transfer.id)
            self.workflow.apply(
                transfer,
                TransferAction.PACKING_TASK_COMPLETED,
                actor=actor,
                context=TransitionContext(all_packing_completed=open_tasks == 0),
            )
        else:
            self.workflow.touch(transfer)
        self.db.commit()
        if stage_changed:
            metrics.record_assignment_stage("packing_task", task.task_status)
        return task, transfer

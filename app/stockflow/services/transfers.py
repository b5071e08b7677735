from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from app.stockflow.core.config import settings
from app.stockflow.core.error_catalog import ConflictError, NotFoundError, ValidationError
from app.stockflow.core.logging import log_event
from app.stockflow.db.models import (
    DeliveryAssignment,
    Location,
    PackingTask,
    StatusLogEntry,
    Transfer,
    TransferItem,
    TransferProduct,
)
from app.stockflow.repos.delivery import DeliveryAssignmentRepository
from app.stockflow.repos.packing import PackingTaskRepository
from app.stockflow.repos.status_log import StatusLogRepository
from app.stockflow.repos.transfers import ApprovalScope, TransferQueryFilters, TransferRepository
from app.stockflow.schemas.transfers import (
    TransferApprovalRequest,
    TransferCreateRequest,
    TransferItemCreate,
    TransferItemUpsert,
    TransferUpdateRequest,
)
from app.stockflow.services.authorization import (
    TransferRole,
    authorize_approve,
    authorize_cancel,
    authorize_delete,
    authorize_edit,
    authorize_reject,
)
from app.stockflow.services.ids import parse_id
from app.stockflow.services.locations import LocationService
from app.stockflow.services.products import ProductService
from app.stockflow.services.roles import RoleService
from app.stockflow.services.state_machine import (
    ALL_STATUSES,
    IN_PROGRESS_STATUSES,
    TransferAction,
    TransitionContext,
    ensure_action_allowed,
    ensure_deletable,
    ensure_editable,
)
from app.stockflow.services.workflow import TransferWorkflow

logger = logging.getLogger("stockflow.transfers")

PRIORITIES = ("low", "normal", "high", "urgent")
UNITS = ("pcs", "kg", "box")
LIST_TABS = ("all", "my_requests", "approvals", "packing", "logistics")
_TAB_STATUSES = {
    "packing": ("warehouse_approved", "packing"),
    "logistics": ("packed", "dispatched", "in_transit"),
}
_EDITABLE_FIELDS = ("priority", "request_notes", "internal_notes", "expected_delivery_date")


@dataclass
class TransferDetail:
    transfer: Transfer
    items: list[TransferItem] = field(default_factory=list)
    status_log: list[StatusLogEntry] = field(default_factory=list)
    packing_tasks: list[PackingTask] = field(default_factory=list)
    delivery_assignments: list[DeliveryAssignment] = field(default_factory=list)


def transfer_stats(transfers: list[Transfer]) -> dict:
    return {
        "total": len(transfers),
        "requested": sum(1 for transfer in transfers if transfer.status == "requested"),
        "in_progress": sum(1 for transfer in transfers if transfer.status in IN_PROGRESS_STATUSES),
        "delivered": sum(1 for transfer in transfers if transfer.status == "delivered"),
        "rejected": sum(1 for transfer in transfers if transfer.status == "rejected"),
    }


def _validate_quantity(value, *, index: int) -> int:
    if value is None or isinstance(value, bool) or int(value) < 1:
        raise ValidationError(
            "each item needs a quantity_requested of at least 1",
            field=f"items.{index}.quantity_requested",
        )
    return int(value)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _new_item(
    transfer_id,
    payload: TransferItemCreate | TransferItemUpsert,
    *,
    index: int,
    now: datetime,
    product: TransferProduct | None = None,
) -> TransferItem:
    name = _clean(payload.product_name) or (product.product_name if product else None)
    if not name:
        raise ValidationError("each item needs a product_name", field=f"items.{index}.product_name")
    if product is not None and "unit" not in payload.model_fields_set:
        unit = product.unit
    else:
        unit = payload.unit or "pcs"
    if unit not in UNITS:
        raise ValidationError("unit must be one of pcs, kg, box", field=f"items.{index}.unit")
    return TransferItem(
        transfer_id=transfer_id,
        product_id=product.id if product else None,
        product_name=name,
        product_code=_clean(payload.product_code) or (product.product_code if product else None),
        product_category=_clean(payload.product_category) or (product.product_category if product else None),
        unit=unit,
        quantity_requested=_validate_quantity(payload.quantity_requested, index=index),
        quantity_packed=0,
        quantity_delivered=0,
        item_notes=payload.item_notes,
        created_at=now,
        updated_at=now,
    )


def _is_number_collision(exc: IntegrityError) -> bool:
    return "transfer_number" in str(getattr(exc, "orig", exc))


class TransferService:
    def __init__(self, db):
        self.db = db
        self.repo = TransferRepository(db)
        self.status_log = StatusLogRepository(db)
        self.packing = PackingTaskRepository(db)
        self.delivery = DeliveryAssignmentRepository(db)
        self.locations = LocationService(db)
        self.products = ProductService(db)
        self.roles = RoleService(db)
        self.workflow = TransferWorkflow(db)

    def load(self, transfer_id, *, for_update: bool = False) -> Transfer:
        parsed = parse_id(transfer_id, entity="transfer")
        transfer = self.repo.get_for_update(parsed) if for_update else self.repo.get_transfer(parsed)
        if transfer is None:
            raise NotFoundError("transfer not found", transfer_id=str(transfer_id))
        return transfer

    def next_transfer_number(self, now: datetime, *, attempt: int = 1) -> str:
        number_prefix = f"{settings.TRANSFER_NUMBER_PREFIX}-{now.strftime('%Y%m%d')}-"
        sequence = self.repo.count_numbers_with_prefix(number_prefix) + attempt
        return f"{number_prefix}{sequence:04d}"

    def create_transfer(self, payload: TransferCreateRequest, *, actor: str) -> Transfer:
        if payload.source_location_id == payload.destination_location_id:
            raise ValidationError(
                "source and destination must be different",
                field="destination_location_id",
            )
        if not payload.items:
            raise ValidationError("at least one item is required", field="items")
        if payload.priority not in PRIORITIES:
            raise ValidationError("priority must be one of low, normal, high, urgent", field="priority")
        source = self.locations.require_active(payload.source_location_id, field="source_location_id")
        destination = self.locations.require_active(payload.destination_location_id, field="destination_location_id")
        if source.id == destination.id:
            raise ValidationError("source and destination must be different", field="destination_location_id")
        for index, item in enumerate(payload.items):
            _validate_quantity(item.quantity_requested, index=index)
        products = [
            self._item_product(item, actor=actor, index=index) for index, item in enumerate(payload.items)
        ]

        max_attempts = max(1, settings.TRANSFER_NUMBER_MAX_ATTEMPTS)
        for attempt in range(1, max_attempts + 1):
            now = datetime.utcnow()
            transfer = Transfer(
                transfer_number=self.next_transfer_number(now, attempt=attempt),
                source_location_id=source.id,
                destination_location_id=destination.id,
                status="requested",
                priority=payload.priority,
                request_notes=_clean(payload.request_notes),
                internal_notes=_clean(payload.internal_notes),
                expected_delivery_date=payload.expected_delivery_date,
                requested_by=actor,
                requested_at=now,
                version=1,
                created_at=now,
                updated_at=now,
            )
            try:
                self.db.add(transfer)
                self.db.flush()
                for index, item in enumerate(payload.items):
                    self.db.add(_new_item(transfer.id, item, index=index, now=now, product=products[index]))
                self.workflow.record_creation(transfer, actor=actor)
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                if not _is_number_collision(exc):
                    raise
                log_event(
                    logger,
                    "transfer_number_collision",
                    level=logging.WARNING,
                    transfer_number=transfer.transfer_number,
                    attempt=attempt,
                )
                continue
            return transfer
        raise ConflictError("could not allocate a transfer number; retry the request", attempts=max_attempts)

    def get_detail(self, transfer_id) -> TransferDetail:
        transfer = self.load(transfer_id)
        return TransferDetail(
            transfer=transfer,
            items=self.repo.get_items(transfer.id),
            status_log=self.status_log.list_entries(transfer.id),
            packing_tasks=self.packing.list_tasks(transfer.id),
            delivery_assignments=self.delivery.list_assignments(transfer.id),
        )

    def list_transfers(
        self,
        *,
        caller_ref: str,
        status: str | None = None,
        tab: str = "all",
        search: str | None = None,
    ) -> tuple[list[Transfer], dict]:
        if status and status not in ALL_STATUSES:
            raise ValidationError("unknown transfer status", field="status", allowed=list(ALL_STATUSES))
        tab = tab or "all"
        if tab not in LIST_TABS:
            raise ValidationError("unknown tab", field="tab", allowed=list(LIST_TABS))

        filters = TransferQueryFilters(
            status=status or None,
            statuses=_TAB_STATUSES.get(tab),
            search=_clean(search),
            requested_by=caller_ref if tab == "my_requests" else None,
            limit=settings.TRANSFER_LIST_MAX_ROWS,
        )
        if tab == "approvals":
            roles = self.roles.roles_of(caller_ref)
            scope = ApprovalScope(
                store_manager_location_ids=tuple(
                    parse_id(location_id, entity="location")
                    for location_id in sorted(roles.locations_with(TransferRole.STORE_MANAGER))
                ),
                warehouse_manager_location_ids=tuple(
                    parse_id(location_id, entity="location")
                    for location_id in sorted(roles.locations_with(TransferRole.WAREHOUSE_MANAGER))
                ),
            )
            if scope.is_empty:
                return [], transfer_stats([])
            filters = TransferQueryFilters(
                status=filters.status,
                search=filters.search,
                approval_scope=scope,
                limit=filters.limit,
            )
        rows = self.repo.list_transfers(filters)
        return rows, transfer_stats(rows)

    def update_transfer(self, transfer_id, payload: TransferUpdateRequest, *, actor: str) -> Transfer:
        transfer = self.load(transfer_id, for_update=True)
        ensure_editable(transfer.status)
        authorize_edit(self.roles.roles_of(actor), actor, transfer)

        provided = payload.model_dump(exclude_unset=True)
        changes = {key: provided[key] for key in _EDITABLE_FIELDS if key in provided}
        if "priority" in changes and changes["priority"] not in PRIORITIES:
            raise ValidationError("priority must be one of low, normal, high, urgent", field="priority")
        for key in ("request_notes", "internal_notes"):
            if key in changes:
                changes[key] = _clean(changes[key])

        if payload.items:
            self._upsert_items(transfer, payload.items, actor=actor)
        self.workflow.touch(transfer, **changes)
        self.db.commit()
        return transfer

    def _item_product(
        self,
        item: TransferItemCreate | TransferItemUpsert,
        *,
        actor: str,
        index: int,
    ) -> TransferProduct | None:
        if item.product_id is None:
            return None
        return self.products.require_usable(item.product_id, owner_ref=actor, field=f"items.{index}.product_id")

    def _upsert_items(self, transfer: Transfer, items: list[TransferItemUpsert], *, actor: str) -> None:
        existing = self.repo.get_items_by_id(transfer.id)
        now = datetime.utcnow()
        for index, item in enumerate(items):
            product = self._item_product(item, actor=actor, index=index)
            if item.id is None:
                self.db.add(_new_item(transfer.id, item, index=index, now=now, product=product))
                continue
            current = existing.get(parse_id(item.id, entity="transfer_item"))
            if current is None:
                raise NotFoundError("transfer item not found", transfer_item_id=item.id)
            provided = item.model_dump(exclude_unset=True, exclude={"id"})
            if product is not None:
                current.product_id = product.id
                for key in ("product_name", "product_code", "product_category", "unit"):
                    if key not in provided:
                        setattr(current, key, getattr(product, key))
            if "product_name" in provided:
                name = _clean(provided["product_name"])
                if not name:
                    raise ValidationError("each item needs a product_name", field=f"items.{index}.product_name")
                current.product_name = name
            if "quantity_requested" in provided:
                current.quantity_requested = _validate_quantity(provided["quantity_requested"], index=index)
            if "unit" in provided:
                current.unit = provided["unit"] or "pcs"
            for key in ("product_code", "product_category"):
                if key in provided:
                    setattr(current, key, _clean(provided[key]))
            if "item_notes" in provided:
                current.item_notes = provided["item_notes"]
            current.updated_at = now

    def delete_transfer(self, transfer_id, *, actor: str) -> Transfer:
        transfer = self.load(transfer_id, for_update=True)
        ensure_deletable(transfer.status)
        authorize_delete(self.roles.roles_of(actor), actor, transfer)
        now = datetime.utcnow()
        self.workflow.touch(transfer, deleted_at=now, updated_at=now)
        self.db.commit()
        log_event(
            logger,
            "transfer_deleted",
            transfer_id=str(transfer.id),
            transfer_number=transfer.transfer_number,
            status=transfer.status,
            user_id=actor,
        )
        return transfer

    def approve_or_reject(self, transfer_id, payload: TransferApprovalRequest, *, actor: str) -> Transfer:
        transfer = self.load(transfer_id, for_update=True)
        roles = self.roles.roles_of(actor)
        if payload.action == "approve":
            ensure_action_allowed(transfer.status, TransferAction.APPROVE)
            capacity = authorize_approve(roles, actor, transfer)
            source, destination = self._endpoints(transfer)
            context = TransitionContext(
                approval=capacity,
                source_type=source.location_type,
                destination_type=destination.location_type,
                notes=_clean(payload.notes),
            )
            self.workflow.apply(transfer, TransferAction.APPROVE, actor=actor, context=context)
        else:
            ensure_action_allowed(transfer.status, TransferAction.REJECT)
            authorize_reject(roles, actor, transfer)
            context = TransitionContext(
                rejection_reason=_clean(payload.rejection_reason),
                notes=_clean(payload.notes),
            )
            self.workflow.apply(transfer, TransferAction.REJECT, actor=actor, context=context)
        self.db.commit()
        return transfer

    def cancel_transfer(self, transfer_id, *, actor: str, notes: str | None = None) -> Transfer:
        transfer = self.load(transfer_id, for_update=True)
        ensure_action_allowed(transfer.status, TransferAction.CANCEL)
        authorize_cancel(actor, transfer)
        self.workflow.apply(
            transfer,
            TransferAction.CANCEL,
            actor=actor,
            context=TransitionContext(notes=_clean(notes)),
        )
        self.db.commit()
        return transfer

    def _endpoints(self, transfer: Transfer) -> tuple[Location, Location]:
        return (
            self.locations.get_location(transfer.source_location_id),
            self.locations.get_location(transfer.destination_location_id),
        )

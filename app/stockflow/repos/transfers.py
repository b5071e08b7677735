from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, func, or_, select, update

from app.stockflow.db.models import Transfer, TransferItem


@dataclass(frozen=True)
class ApprovalScope:
    """Location ids where the caller holds an active manager grant."""

    store_manager_location_ids: tuple = ()
    warehouse_manager_location_ids: tuple = ()

    @property
    def is_empty(self) -> bool:
        return not self.store_manager_location_ids and not self.warehouse_manager_location_ids


@dataclass(frozen=True)
class TransferQueryFilters:
    status: str | None = None
    statuses: tuple[str, ...] | None = None
    search: str | None = None
    requested_by: str | None = None
    approval_scope: ApprovalScope | None = None
    limit: int | None = None


def _approval_clause(scope: ApprovalScope):
    conditions = []
    if scope.store_manager_location_ids:
        conditions.append(
            and_(
                Transfer.status == "requested",
                Transfer.source_location_id.in_(scope.store_manager_location_ids),
            )
        )
    if scope.warehouse_manager_location_ids:
        warehouse_ids = scope.warehouse_manager_location_ids
        conditions.append(
            and_(Transfer.status == "requested", Transfer.source_location_id.in_(warehouse_ids))
        )
        conditions.append(
            and_(
                Transfer.status == "store_approved",
                or_(
                    Transfer.source_location_id.in_(warehouse_ids),
                    Transfer.destination_location_id.in_(warehouse_ids),
                ),
            )
        )
    return or_(*conditions)


class TransferRepository:
    def __init__(self, db):
        self.db = db

    def get_transfer(self, transfer_id) -> Transfer | None:
        stmt = select(Transfer).where(Transfer.id == transfer_id, Transfer.deleted_at.is_(None))
        return self.db.execute(stmt).scalars().first()

    def get_for_update(self, transfer_id) -> Transfer | None:
        stmt = (
            select(Transfer)
            .where(Transfer.id == transfer_id, Transfer.deleted_at.is_(None))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalars().first()

    def current_state(self, transfer_id) -> tuple[str, int] | None:
        row = self.db.execute(
            select(Transfer.status, Transfer.version).where(Transfer.id == transfer_id)
        ).first()
        if row is None:
            return None
        return row.status, row.version

    def list_transfers(self, filters: TransferQueryFilters) -> list[Transfer]:
        query = select(Transfer).where(Transfer.deleted_at.is_(None))
        if filters.status:
            query = query.where(Transfer.status == filters.status)
        if filters.statuses:
            query = query.where(Transfer.status.in_(filters.statuses))
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.where(
                or_(Transfer.transfer_number.ilike(pattern), Transfer.request_notes.ilike(pattern))
            )
        if filters.requested_by:
            query = query.where(Transfer.requested_by == filters.requested_by)
        if filters.approval_scope is not None:
            query = query.where(_approval_clause(filters.approval_scope))
        query = query.order_by(Transfer.created_at.desc(), Transfer.transfer_number.desc())
        if filters.limit:
            query = query.limit(filters.limit)
        return self.db.execute(query).scalars().all()

    def count_numbers_with_prefix(self, number_prefix: str) -> int:
        stmt = select(func.count()).select_from(Transfer).where(Transfer.transfer_number.like(f"{number_prefix}%"))
        return int(self.db.execute(stmt).scalar_one() or 0)

    def compare_and_swap(self, transfer: Transfer, *, expected_status: str, expected_version: int, values: dict) -> bool:
        stmt = (
            update(Transfer)
            .where(
                Transfer.id == transfer.id,
                Transfer.status == expected_status,
                Transfer.version == expected_version,
                Transfer.deleted_at.is_(None),
            )
            .values(**values, version=Transfer.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def get_items(self, transfer_id) -> list[TransferItem]:
        stmt = (
            select(TransferItem)
            .where(TransferItem.transfer_id == transfer_id)
            .order_by(TransferItem.created_at.asc(), TransferItem.product_name.asc())
        )
        return self.db.execute(stmt).scalars().all()

    def get_items_by_id(self, transfer_id) -> dict:
        return {item.id: item for item in self.get_items(transfer_id)}

    def get_items_for_transfers(self, transfer_ids) -> dict:
        grouped: dict = {transfer_id: [] for transfer_id in transfer_ids}
        if not grouped:
            return grouped
        stmt = (
            select(TransferItem)
            .where(TransferItem.transfer_id.in_(list(grouped)))
            .order_by(TransferItem.created_at.asc(), TransferItem.product_name.asc())
        )
        for item in self.db.execute(stmt).scalars().all():
            grouped.setdefault(item.transfer_id, []).append(item)
        return grouped

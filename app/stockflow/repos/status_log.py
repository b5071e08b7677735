from datetime import datetime

from sqlalchemy import func, select

from app.stockflow.db.models import StatusLogEntry


class StatusLogRepository:
    """Write-once access to ``transfer_status_log``; there is no update path."""

    def __init__(self, db):
        self.db = db

    def next_sequence(self, transfer_id) -> int:
        stmt = select(func.coalesce(func.max(StatusLogEntry.sequence), 0)).where(
            StatusLogEntry.transfer_id == transfer_id
        )
        return int(self.db.execute(stmt).scalar_one()) + 1

    def append(
        self,
        *,
        transfer_id,
        from_status: str | None,
        to_status: str,
        changed_by: str,
        changed_at: datetime,
        notes: str | None = None,
    ) -> StatusLogEntry:
        entry = StatusLogEntry(
            transfer_id=transfer_id,
            sequence=self.next_sequence(transfer_id),
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            changed_at=changed_at,
            notes=notes,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_entries(self, transfer_id) -> list[StatusLogEntry]:
        stmt = (
            select(StatusLogEntry)
            .where(StatusLogEntry.transfer_id == transfer_id)
            .order_by(StatusLogEntry.sequence.asc())
        )
        return self.db.execute(stmt).scalars().all()

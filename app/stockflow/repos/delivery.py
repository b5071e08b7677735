from sqlalchemy import func, select

from app.stockflow.db.models import DeliveryAssignment


class DeliveryAssignmentRepository:
    def __init__(self, db):
        self.db = db

    def get_assignment(self, transfer_id, assignment_id) -> DeliveryAssignment | None:
        stmt = select(DeliveryAssignment).where(
            DeliveryAssignment.id == assignment_id,
            DeliveryAssignment.transfer_id == transfer_id,
        )
        return self.db.execute(stmt).scalars().first()

    def next_assignment_seq(self, transfer_id) -> int:
        stmt = select(func.coalesce(func.max(DeliveryAssignment.assignment_seq), 0)).where(
            DeliveryAssignment.transfer_id == transfer_id
        )
        return int(self.db.execute(stmt).scalar_one()) + 1

    def list_assignments(self, transfer_id) -> list[DeliveryAssignment]:
        # assignment_seq is per-transfer and strictly increasing; newest first
        stmt = (
            select(DeliveryAssignment)
            .where(DeliveryAssignment.transfer_id == transfer_id)
            .order_by(DeliveryAssignment.assignment_seq.desc())
        )
        return self.db.execute(stmt).scalars().all()

    def latest_assignment(self, transfer_id) -> DeliveryAssignment | None:
        stmt = (
            select(DeliveryAssignment)
            .where(DeliveryAssignment.transfer_id == transfer_id)
            .order_by(DeliveryAssignment.assignment_seq.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def add(self, assignment: DeliveryAssignment) -> DeliveryAssignment:
        self.db.add(assignment)
        self.db.flush()
        return assignment

from sqlalchemy import func, select

from app.stockflow.db.models import PackingTask


class PackingTaskRepository:
    def __init__(self, db):
        self.db = db

    def get_task(self, transfer_id, task_id) -> PackingTask | None:
        stmt = select(PackingTask).where(PackingTask.id == task_id, PackingTask.transfer_id == transfer_id)
        return self.db.execute(stmt).scalars().first()

    def list_tasks(self, transfer_id) -> list[PackingTask]:
        stmt = (
            select(PackingTask)
            .where(PackingTask.transfer_id == transfer_id)
            .order_by(PackingTask.assigned_at.desc(), PackingTask.created_at.desc())
        )
        return self.db.execute(stmt).scalars().all()

    def count_open_tasks(self, transfer_id) -> int:
        stmt = (
            select(func.count())
            .select_from(PackingTask)
            .where(PackingTask.transfer_id == transfer_id, PackingTask.task_status != "completed")
        )
        return int(self.db.execute(stmt).scalar_one() or 0)

    def add(self, task: PackingTask) -> PackingTask:
        self.db.add(task)
        self.db.flush()
        return task

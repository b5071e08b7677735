from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select

from app.stockflow.core.metrics import metrics
from app.stockflow.db.models import PackingTask, StatusLogEntry, Transfer, TransferItem
from app.stockflow.services.state_machine import StatusLogReplayError, replay_status_log


SEVERITY_CRITICAL = "CRITICAL"
SEVERITY_WARN = "WARN"
_POST_PACKING_STATUSES = ("packed", "dispatched", "in_transit")

# Columns a transfer in a given status must have stamped.
_REQUIRED_STAMPS = {
    "store_approved": ("store_approved_at",),
    "warehouse_approved": ("warehouse_approved_at",),
    "packing": ("warehouse_approved_at",),
    "packed": ("warehouse_approved_at",),
    "dispatched": ("warehouse_approved_at", "dispatched_at"),
    "in_transit": ("warehouse_approved_at", "dispatched_at"),
    "delivered": ("delivered_at",),
    "rejected": ("rejected_at",),
    "cancelled": ("cancelled_at",),
}


@dataclass(frozen=True)
class IntegrityFinding:
    check_id: str
    severity: str
    transfer_id: str
    message: str
    entity: str
    entity_id: str | None
    details: dict


def resolve_transfers(db, transfer: str) -> list[str]:
    if transfer.lower() != "all":
        return [transfer]
    rows = db.execute(select(Transfer.id).order_by(Transfer.created_at.asc())).all()
    return [str(row.id) for row in rows]


def _load_transfer(db, transfer_id: str) -> Transfer | None:
    return db.execute(select(Transfer).where(Transfer.id == transfer_id)).scalars().first()


def check_status_log_replay(db, transfer_id: str) -> list[IntegrityFinding]:
    transfer = _load_transfer(db, transfer_id)
    if transfer is None:
        return []
    entries = (
        db.execute(
            select(StatusLogEntry)
            .where(StatusLogEntry.transfer_id == transfer.id)
            .order_by(StatusLogEntry.sequence.asc())
        )
        .scalars()
        .all()
    )
    problem = None
    try:
        replayed = replay_status_log(entries)
        if replayed != transfer.status:
            problem = f"log replays to {replayed!r} but transfer is {transfer.status!r}"
    except StatusLogReplayError as exc:
        problem = str(exc)
    if problem is None:
        return []
    metrics.increment_invariant_violation("status_log_replay")
    return [
        IntegrityFinding(
            check_id="status_log_replay",
            severity=SEVERITY_CRITICAL,
            transfer_id=str(transfer.id),
            message="Status log does not reconstruct the current status.",
            entity="transfer_status_log",
            entity_id=None,
            details={"problem": problem, "status": transfer.status, "entries": len(entries)},
        )
    ]


def check_lifecycle_stamps(db, transfer_id: str) -> list[IntegrityFinding]:
    transfer = _load_transfer(db, transfer_id)
    if transfer is None:
        return []
    missing = [column for column in _REQUIRED_STAMPS.get(transfer.status, ()) if getattr(transfer, column) is None]
    if not missing:
        return []
    metrics.increment_invariant_violation("lifecycle_stamps")
    return [
        IntegrityFinding(
            check_id="lifecycle_stamps",
            severity=SEVERITY_CRITICAL,
            transfer_id=str(transfer.id),
            message="Transfer status is missing the timestamps of the steps that lead to it.",
            entity="transfers",
            entity_id=str(transfer.id),
            details={"status": transfer.status, "missing": missing},
        )
    ]


def check_open_packing_tasks(db, transfer_id: str) -> list[IntegrityFinding]:
    status = db.execute(select(Transfer.status).where(Transfer.id == transfer_id)).scalar()
    if status not in _POST_PACKING_STATUSES:
        return []
    rows = db.execute(
        select(PackingTask.id, PackingTask.task_status).where(
            PackingTask.transfer_id == transfer_id,
            PackingTask.task_status != "completed",
        )
    ).all()
    findings = [
        IntegrityFinding(
            check_id="open_packing_task_after_packed",
            severity=SEVERITY_WARN,
            transfer_id=str(transfer_id),
            message="Packing task still open after the transfer was packed.",
            entity="transfer_packing_tasks",
            entity_id=str(row.id),
            details={"task_status": row.task_status, "transfer_status": status},
        )
        for row in rows
    ]
    if findings:
        metrics.increment_invariant_violation("open_packing_task_after_packed", len(findings))
    return findings


def check_short_delivery(db, transfer_id: str) -> list[IntegrityFinding]:
    status = db.execute(select(Transfer.status).where(Transfer.id == transfer_id)).scalar()
    if status != "delivered":
        return []
    rows = db.execute(
        select(TransferItem.id, TransferItem.quantity_packed, TransferItem.quantity_delivered).where(
            TransferItem.transfer_id == transfer_id,
            TransferItem.quantity_delivered < TransferItem.quantity_packed,
        )
    ).all()
    findings = [
        IntegrityFinding(
            check_id="short_delivery",
            severity=SEVERITY_WARN,
            transfer_id=str(transfer_id),
            message="Delivered transfer has items received below the packed quantity.",
            entity="transfer_items",
            entity_id=str(row.id),
            details={"quantity_packed": row.quantity_packed, "quantity_delivered": row.quantity_delivered},
        )
        for row in rows
    ]
    if findings:
        metrics.increment_invariant_violation("short_delivery", len(findings))
    return findings


CHECKS = {
    "status_log_replay": check_status_log_replay,
    "lifecycle_stamps": check_lifecycle_stamps,
    "open_packing_task_after_packed": check_open_packing_tasks,
    "short_delivery": check_short_delivery,
}


def run_integrity_checks(db, transfer_id: str, checks: list[str] | None = None) -> list[IntegrityFinding]:
    findings: list[IntegrityFinding] = []
    for check_id in checks or CHECKS:
        findings.extend(CHECKS[check_id](db, transfer_id))
    return findings

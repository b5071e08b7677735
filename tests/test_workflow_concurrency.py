import logging
import uuid
from datetime import datetime

import pytest
from sqlalchemy import select

from app.stockflow.core.error_catalog import ConcurrentModification, InvalidStateTransition
from app.stockflow.db.models import AppendOnlyViolation, StatusLogEntry, Transfer
from app.stockflow.repos.status_log import StatusLogRepository
from app.stockflow.services.authorization import ApprovalCapacity
from app.stockflow.services.state_machine import TransferAction, TransitionContext, replay_status_log
from app.stockflow.services.transfers import TransferService
from app.stockflow.services.workflow import TransferWorkflow
from tests.transfer_helpers import (
    approve,
    approved_transfer,
    assign_packing,
    auth_headers,
    create_transfer,
    detail,
    packed_transfer,
    warehouse_to_store,
)

WAREHOUSE_APPROVAL = TransitionContext(approval=ApprovalCapacity.AS_WAREHOUSE_MANAGER)


def _requested(client):
    warehouse, store = warehouse_to_store(client)
    return create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])


def test_stale_approve_loses_to_committed_transition(client, db_session):
    transfer = _requested(client)
    stale = TransferService(db_session).load(transfer["id"])
    assert stale.status == "requested"

    assert approve(client, transfer["id"], "wh-mgr").status_code == 200

    with pytest.raises(InvalidStateTransition) as excinfo:
        TransferWorkflow(db_session).apply(stale, TransferAction.APPROVE, actor="wh-mgr", context=WAREHOUSE_APPROVAL)
    db_session.rollback()
    assert excinfo.value.details["current_status"] == "warehouse_approved"
    assert len(detail(client, transfer["id"])["status_log"]) == 2


def test_stale_version_raises_concurrent_modification(client, db_session):
    transfer = _requested(client)
    stale = TransferService(db_session).load(transfer["id"])

    response = client.patch(
        f"/stockflow/transfers/{transfer['id']}",
        headers=auth_headers("requester"),
        json={"priority": "high"},
    )
    assert response.status_code == 200

    with pytest.raises(ConcurrentModification) as excinfo:
        TransferWorkflow(db_session).apply(stale, TransferAction.APPROVE, actor="wh-mgr", context=WAREHOUSE_APPROVAL)
    db_session.rollback()
    assert excinfo.value.details["expected_version"] == 1
    assert excinfo.value.details["current_version"] == 2
    assert detail(client, transfer["id"])["transfer"]["status"] == "requested"


def test_stale_packing_completion_loses_to_new_task(client, db_session):
    transfer = approved_transfer(client)
    assign_packing(client, transfer["id"], "p1")
    stale = TransferService(db_session).load(transfer["id"])
    assert stale.status == "packing"

    assign_packing(client, transfer["id"], "p2")

    with pytest.raises(ConcurrentModification):
        TransferWorkflow(db_session).apply(
            stale,
            TransferAction.PACKING_TASK_COMPLETED,
            actor="p1",
            context=TransitionContext(all_packing_completed=True),
        )
    db_session.rollback()

    payload = detail(client, transfer["id"])
    assert payload["transfer"]["status"] == "packing"
    assert not any(
        entry["from_status"] == "packing" and entry["to_status"] == "packed" for entry in payload["status_log"]
    )


def test_touch_bumps_version_without_logging(client, db_session):
    transfer = _requested(client)
    loaded = TransferService(db_session).load(transfer["id"])
    TransferWorkflow(db_session).touch(loaded)
    db_session.commit()
    assert loaded.version == 2
    assert len(StatusLogRepository(db_session).list_entries(loaded.id)) == 1


def test_status_log_is_append_only(client, db_session):
    transfer = _requested(client)
    entry = db_session.execute(
        select(StatusLogEntry).where(StatusLogEntry.transfer_id == uuid.UUID(transfer["id"]))
    ).scalar_one()

    entry.notes = "rewritten"
    with pytest.raises(AppendOnlyViolation):
        db_session.flush()
    db_session.rollback()

    db_session.delete(entry)
    with pytest.raises(AppendOnlyViolation):
        db_session.flush()
    db_session.rollback()

    assert detail(client, transfer["id"])["status_log"][0]["notes"] == "Transfer request created"


def test_status_log_replays_to_current_status(client, db_session):
    transfer = packed_transfer(client)
    entries = StatusLogRepository(db_session).list_entries(uuid.UUID(transfer["id"]))
    assert replay_status_log(entries) == "packed"
    assert [entry.sequence for entry in entries] == list(range(1, len(entries) + 1))


def test_transfer_number_collision_is_retried(client, db_session, caplog):
    caplog.set_level(logging.INFO, logger="stockflow.transfers")
    warehouse, store = warehouse_to_store(client)
    now = datetime.utcnow()
    db_session.add(
        Transfer(
            transfer_number=f"TRF-{now.strftime('%Y%m%d')}-0002",
            source_location_id=uuid.UUID(warehouse["id"]),
            destination_location_id=uuid.UUID(store["id"]),
            status="requested",
            priority="normal",
            requested_by="seed",
            requested_at=now,
            version=1,
        )
    )
    db_session.commit()

    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    assert transfer["transfer_number"].endswith("-0003")
    assert any("transfer_number_collision" in record.getMessage() for record in caplog.records)

from datetime import datetime
import uuid

from sqlalchemy import update

from app.ops.integrity_checks import (
    check_lifecycle_stamps,
    check_open_packing_tasks,
    check_short_delivery,
    check_status_log_replay,
    resolve_transfers,
    run_integrity_checks,
)
from app.stockflow.db.models import PackingTask, Transfer
from tests.transfer_helpers import (
    assign_delivery,
    create_transfer,
    packed_transfer,
    update_delivery,
    warehouse_to_store,
)


def _requested(client):
    warehouse, store = warehouse_to_store(client)
    return create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])


def test_consistent_transfer_has_no_findings(client, db_session):
    transfer = packed_transfer(client)
    assert run_integrity_checks(db_session, transfer["id"]) == []


def test_status_log_replay_mismatch(client, db_session):
    transfer = _requested(client)
    db_session.execute(update(Transfer).where(Transfer.id == uuid.UUID(transfer["id"])).values(status="cancelled"))
    db_session.commit()
    findings = check_status_log_replay(db_session, transfer["id"])
    assert len(findings) == 1
    assert findings[0].severity == "CRITICAL"
    assert "replays to 'requested'" in findings[0].details["problem"]


def test_status_log_missing_entirely(client, db_session):
    warehouse, store = warehouse_to_store(client)
    transfer = Transfer(
        transfer_number="TRF-LEGACY-0001",
        source_location_id=uuid.UUID(warehouse["id"]),
        destination_location_id=uuid.UUID(store["id"]),
        status="requested",
        requested_by="seed",
        requested_at=datetime.utcnow(),
    )
    db_session.add(transfer)
    db_session.commit()
    findings = check_status_log_replay(db_session, str(transfer.id))
    assert findings[0].details["problem"] == "status log is empty"


def test_missing_lifecycle_stamp(client, db_session):
    transfer = _requested(client)
    db_session.execute(update(Transfer).where(Transfer.id == uuid.UUID(transfer["id"])).values(status="cancelled"))
    db_session.commit()
    findings = check_lifecycle_stamps(db_session, transfer["id"])
    assert [finding.check_id for finding in findings] == ["lifecycle_stamps"]
    assert findings[0].details["missing"] == ["cancelled_at"]


def test_open_packing_task_after_packed_is_warned(client, db_session):
    transfer = packed_transfer(client)
    db_session.add(
        PackingTask(
            transfer_id=uuid.UUID(transfer["id"]),
            assigned_to="late-packer",
            assigned_by="wh-mgr",
            assigned_at=datetime.utcnow(),
            task_status="pending",
        )
    )
    db_session.commit()
    findings = check_open_packing_tasks(db_session, transfer["id"])
    assert len(findings) == 1
    assert findings[0].severity == "WARN"


def test_short_delivery_is_warned(client, db_session):
    transfer = packed_transfer(client)
    assignment = assign_delivery(client, transfer["id"], "driver-1")
    item = transfer["items"][0]
    response = update_delivery(
        client,
        transfer["id"],
        assignment["id"],
        "driver-1",
        delivery_status="delivered",
        item_quantities=[{"item_id": item["id"], "quantity_delivered": 8}],
    )
    assert response.json()["transfer_status"] == "delivered"
    findings = check_short_delivery(db_session, transfer["id"])
    assert [finding.details for finding in findings] == [{"quantity_packed": 10, "quantity_delivered": 8}]


def test_resolve_transfers(client, db_session):
    first = _requested(client)
    assert resolve_transfers(db_session, first["id"]) == [first["id"]]
    assert resolve_transfers(db_session, "all") == [first["id"]]

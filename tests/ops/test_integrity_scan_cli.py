import json
import uuid

import pytest
from sqlalchemy import update

from app.ops.integrity_scan import main, run_scan
from app.stockflow.db.models import Transfer
from tests.transfer_helpers import create_transfer, packed_transfer, warehouse_to_store


def test_integrity_scan_no_findings(client, database_url, capsys):
    packed_transfer(client)

    exit_code = run_scan("all", "json", False, database_url=database_url)
    captured = capsys.readouterr()
    payload = json.loads(captured.out)
    assert exit_code == 0
    assert payload["summary"]["transfers_scanned"] == 1
    assert payload["summary"]["critical"] == 0
    assert payload["findings"] == []


def test_integrity_scan_critical_exit(client, db_session, database_url, capsys):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    db_session.execute(update(Transfer).where(Transfer.id == uuid.UUID(transfer["id"])).values(status="packed"))
    db_session.commit()

    exit_code = run_scan(transfer["id"], "json", True, database_url=database_url)
    captured = capsys.readouterr()
    payload = json.loads(captured.out)
    assert exit_code == 1
    assert payload["summary"]["critical"] >= 1
    assert {finding["check_id"] for finding in payload["findings"]} == {"status_log_replay", "lifecycle_stamps"}


def test_integrity_scan_text_output(client, database_url, capsys):
    packed_transfer(client)
    exit_code = main(["--format", "text", "--database-url", database_url])
    captured = capsys.readouterr()
    assert exit_code == 0
    assert "Transfer Integrity Scan" in captured.out
    assert "CRITICAL: 0" in captured.out


def test_integrity_scan_check_filter(client, db_session, database_url, capsys):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    db_session.execute(update(Transfer).where(Transfer.id == uuid.UUID(transfer["id"])).values(status="packed"))
    db_session.commit()

    exit_code = main(
        ["--check", "lifecycle_stamps", "--format", "json", "--fail-on-critical", "--database-url", database_url]
    )
    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 1
    assert [finding["check_id"] for finding in payload["findings"]] == ["lifecycle_stamps"]
    assert payload["summary"]["by_check"] == {"lifecycle_stamps": 1}


def test_integrity_scan_rejects_malformed_transfer_id(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--transfer", "not-a-uuid"])
    assert exc_info.value.code == 2
    assert "not a transfer id" in capsys.readouterr().err

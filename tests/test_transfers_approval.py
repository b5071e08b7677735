from tests.transfer_helpers import (
    approve,
    auth_headers,
    create_location,
    create_transfer,
    detail,
    grant_role,
    reject,
    warehouse_to_store,
)


def _stores_and_warehouse(client):
    s1 = create_location(client, code="S1", location_type="store")
    s2 = create_location(client, code="S2", location_type="store")
    w1 = create_location(client, code="W1", location_type="warehouse")
    grant_role(client, user_ref="s1-mgr", location_id=s1["id"], role="store_manager")
    grant_role(client, user_ref="w1-mgr", location_id=w1["id"], role="warehouse_manager")
    return s1, s2, w1


def test_store_to_store_skips_warehouse_approval(client):
    s1, s2, _w1 = _stores_and_warehouse(client)
    transfer = create_transfer(
        client,
        requester="requester",
        source_id=s1["id"],
        destination_id=s2["id"],
        items=[{"product_name": "Soap", "quantity_requested": 10}],
    )

    response = approve(client, transfer["id"], "s1-mgr")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "warehouse_approved"
    assert payload["store_approved_by"] == "s1-mgr"
    assert payload["warehouse_approved_by"] == "s1-mgr"
    assert payload["store_approved_at"] and payload["warehouse_approved_at"]
    assert payload["version"] == 2

    log = detail(client, transfer["id"])["status_log"]
    assert log[-1]["from_status"] == "requested"
    assert log[-1]["to_status"] == "warehouse_approved"
    assert log[-1]["notes"] == "Approved by source manager (store to store)"


def test_store_to_warehouse_needs_two_approvals(client):
    s1, _s2, w1 = _stores_and_warehouse(client)
    transfer = create_transfer(client, requester="requester", source_id=s1["id"], destination_id=w1["id"])

    first = approve(client, transfer["id"], "s1-mgr")
    assert first.status_code == 200
    assert first.json()["status"] == "store_approved"
    assert first.json()["warehouse_approved_by"] is None

    second = approve(client, transfer["id"], "w1-mgr")
    assert second.status_code == 200
    assert second.json()["status"] == "warehouse_approved"
    assert second.json()["warehouse_approved_by"] == "w1-mgr"
    assert second.json()["store_approved_by"] == "s1-mgr"

    log = detail(client, transfer["id"])["status_log"]
    assert [(row["from_status"], row["to_status"]) for row in log] == [
        (None, "requested"),
        ("requested", "store_approved"),
        ("store_approved", "warehouse_approved"),
    ]
    assert [row["sequence"] for row in log] == [1, 2, 3]


def test_store_manager_can_reject_store_approved(client):
    s1, _s2, w1 = _stores_and_warehouse(client)
    transfer = create_transfer(client, requester="requester", source_id=s1["id"], destination_id=w1["id"])
    assert approve(client, transfer["id"], "s1-mgr").json()["status"] == "store_approved"

    response = reject(client, transfer["id"], "s1-mgr", reason="Stock count mismatch")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "rejected"
    assert payload["rejection_reason"] == "Stock count mismatch"
    assert payload["rejected_by"] == "s1-mgr"
    assert detail(client, transfer["id"])["status_log"][-1]["notes"] == "Stock count mismatch"


def test_warehouse_manager_at_source_fast_path(client):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    response = approve(client, transfer["id"], "wh-mgr", notes="Ship Monday")
    assert response.json()["status"] == "warehouse_approved"
    assert detail(client, transfer["id"])["status_log"][-1]["notes"] == "Ship Monday"


def test_approval_without_grant_is_forbidden(client):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])

    for caller in ("requester", "st-mgr"):
        response = approve(client, transfer["id"], caller)
        assert response.status_code == 403
        payload = response.json()
        assert payload["code"] == "PERMISSION_DENIED"
        assert "at the source" in payload["details"]["message"]

    assert detail(client, transfer["id"])["transfer"]["status"] == "requested"


def test_revoked_grant_stops_approval(client):
    warehouse, store = warehouse_to_store(client)
    me = client.get("/stockflow/roles/me", headers=auth_headers("wh-mgr")).json()
    client.delete(f"/stockflow/roles/{me['grants'][0]['id']}", headers=auth_headers("admin"))
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    assert approve(client, transfer["id"], "wh-mgr").status_code == 403


def test_replayed_approve_is_invalid_and_logs_nothing(client):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    assert approve(client, transfer["id"], "wh-mgr").status_code == 200

    response = approve(client, transfer["id"], "wh-mgr")
    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "INVALID_STATE_TRANSITION"
    assert payload["details"]["current_status"] == "warehouse_approved"
    assert payload["details"]["allowed_actions"] == ["assign_packing", "delivery_delivered"]
    assert len(detail(client, transfer["id"])["status_log"]) == 2


def test_store_manager_replaying_first_approval_is_denied(client):
    s1, _s2, w1 = _stores_and_warehouse(client)
    transfer = create_transfer(client, requester="requester", source_id=s1["id"], destination_id=w1["id"])
    assert approve(client, transfer["id"], "s1-mgr").json()["status"] == "store_approved"

    response = approve(client, transfer["id"], "s1-mgr")
    assert response.status_code == 403
    payload = response.json()
    assert payload["code"] == "PERMISSION_DENIED"
    assert "store_approved" in payload["details"]["message"]
    assert detail(client, transfer["id"])["transfer"]["status"] == "store_approved"
    assert len(detail(client, transfer["id"])["status_log"]) == 2


def test_reject_after_approval_is_invalid(client):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    approve(client, transfer["id"], "wh-mgr")
    response = reject(client, transfer["id"], "wh-mgr")
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_STATE_TRANSITION"


def test_unknown_approval_action_rejected(client):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    response = client.post(
        f"/stockflow/transfers/{transfer['id']}/approve",
        headers=auth_headers("wh-mgr"),
        json={"action": "escalate"},
    )
    assert response.status_code == 422

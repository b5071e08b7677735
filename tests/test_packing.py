from tests.transfer_helpers import (
    approved_transfer,
    assign_packing,
    auth_headers,
    create_transfer,
    detail,
    update_packing,
    warehouse_to_store,
)


def test_two_tasks_pack_only_when_both_complete(client):
    transfer = approved_transfer(client)
    first = assign_packing(client, transfer["id"], "packer-1")
    assert detail(client, transfer["id"])["transfer"]["status"] == "packing"
    second = assign_packing(client, transfer["id"], "packer-2")
    assert first["task_status"] == "pending"
    assert first["assigned_by"] == "wh-mgr"

    response = update_packing(client, transfer["id"], first["id"], "packer-1", task_status="completed")
    assert response.status_code == 200
    payload = response.json()
    assert payload["transfer_status"] == "packing"
    assert payload["task"]["started_at"] and payload["task"]["completed_at"]

    response = update_packing(client, transfer["id"], second["id"], "packer-2", task_status="completed")
    assert response.json()["transfer_status"] == "packed"

    log = detail(client, transfer["id"])["status_log"]
    assert [(row["from_status"], row["to_status"]) for row in log][-2:] == [
        ("warehouse_approved", "packing"),
        ("packing", "packed"),
    ]
    assert log[-1]["notes"] == "All packing tasks completed"
    assert log[-1]["changed_by"] == "packer-2"


def test_list_tasks(client):
    transfer = approved_transfer(client)
    assign_packing(client, transfer["id"], "packer-1")
    assign_packing(client, transfer["id"], "packer-2")
    response = client.get(f"/stockflow/transfers/{transfer['id']}/packing", headers=auth_headers("viewer"))
    assert response.status_code == 200
    assert {task["assigned_to"] for task in response.json()["tasks"]} == {"packer-1", "packer-2"}


def test_packing_requires_warehouse_approval(client):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    response = client.post(
        f"/stockflow/transfers/{transfer['id']}/packing",
        headers=auth_headers("wh-mgr"),
        json={"assigned_to": "packer-1"},
    )
    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "INVALID_STATE_TRANSITION"
    assert payload["details"]["current_status"] == "requested"


def test_only_assignee_updates_task(client):
    transfer = approved_transfer(client)
    task = assign_packing(client, transfer["id"], "packer-1")
    response = update_packing(client, transfer["id"], task["id"], "packer-2", task_status="in_progress")
    assert response.status_code == 403
    assert response.json()["details"]["action"] == "update_packing_task"


def test_task_status_moves_forward_only(client):
    transfer = approved_transfer(client)
    assign_packing(client, transfer["id"], "packer-1")
    task = assign_packing(client, transfer["id"], "packer-2")
    response = update_packing(client, transfer["id"], task["id"], "packer-2", task_status="in_progress")
    assert response.json()["task"]["task_status"] == "in_progress"
    response = update_packing(client, transfer["id"], task["id"], "packer-2", task_status="pending")
    assert response.status_code == 422
    assert response.json()["details"]["field"] == "task_status"


def test_packed_quantity_bounds(client):
    transfer = approved_transfer(client)
    task = assign_packing(client, transfer["id"], "packer-1")
    item = transfer["items"][0]

    response = update_packing(
        client,
        transfer["id"],
        task["id"],
        "packer-1",
        item_quantities=[{"item_id": item["id"], "quantity_packed": 11}],
    )
    assert response.status_code == 422
    assert "exceeds quantity_requested" in response.json()["details"]["message"]

    response = update_packing(
        client,
        transfer["id"],
        task["id"],
        "packer-1",
        item_quantities=[{"item_id": item["id"], "quantity_packed": 6}],
    )
    assert response.status_code == 200
    assert detail(client, transfer["id"])["items"][0]["quantity_packed"] == 6

    response = update_packing(
        client,
        transfer["id"],
        task["id"],
        "packer-1",
        item_quantities=[{"item_id": item["id"], "quantity_packed": 4}],
    )
    assert response.status_code == 422
    assert "cannot decrease" in response.json()["details"]["message"]
    assert detail(client, transfer["id"])["items"][0]["quantity_packed"] == 6


def test_foreign_item_rejected(client):
    transfer = approved_transfer(client)
    task = assign_packing(client, transfer["id"], "packer-1")
    warehouse_id = transfer["source_location_id"]
    store_id = transfer["destination_location_id"]
    other = create_transfer(client, requester="requester", source_id=warehouse_id, destination_id=store_id)

    response = update_packing(
        client,
        transfer["id"],
        task["id"],
        "packer-1",
        item_quantities=[{"item_id": other["items"][0]["id"], "quantity_packed": 1}],
    )
    assert response.status_code == 422
    assert response.json()["details"]["field"] == "item_quantities.0.item_id"


def test_task_update_after_packed_is_invalid(client):
    transfer = approved_transfer(client)
    task = assign_packing(client, transfer["id"], "packer-1")
    assert update_packing(client, transfer["id"], task["id"], "packer-1", task_status="completed").status_code == 200
    response = update_packing(client, transfer["id"], task["id"], "packer-1", packing_notes="late note")
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_STATE_TRANSITION"


def test_unknown_task_is_not_found(client):
    transfer = approved_transfer(client)
    response = update_packing(
        client,
        transfer["id"],
        "6b1f3c1e-8d7a-4b55-9f1e-2c1d9a7e5b10",
        "packer-1",
        task_status="completed",
    )
    assert response.status_code == 404

from __future__ import annotations

from app.stockflow.core.security import create_access_token


def auth_headers(user_ref: str) -> dict:
    token = create_access_token({"sub": user_ref})
    return {"Authorization": f"Bearer {token}"}


def create_location(client, *, code: str, location_type: str = "store", name: str | None = None, actor: str = "admin"):
    response = client.post(
        "/stockflow/locations",
        headers=auth_headers(actor),
        json={
            "location_name": name or f"Location {code}",
            "location_code": code,
            "location_type": location_type,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def grant_role(client, *, user_ref: str, location_id: str, role: str, actor: str = "admin"):
    response = client.post(
        "/stockflow/roles",
        headers=auth_headers(actor),
        json={"user_ref": user_ref, "location_id": location_id, "role": role},
    )
    assert response.status_code == 201, response.text
    return response.json()


def create_transfer(client, *, requester: str, source_id: str, destination_id: str, items=None, **fields):
    payload = {
        "source_location_id": source_id,
        "destination_location_id": destination_id,
        "items": items or [{"product_name": "Cement 50kg", "quantity_requested": 10, "unit": "box"}],
    }
    payload.update(fields)
    response = client.post("/stockflow/transfers", headers=auth_headers(requester), json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def approve(client, transfer_id: str, user_ref: str, **fields):
    return client.post(
        f"/stockflow/transfers/{transfer_id}/approve",
        headers=auth_headers(user_ref),
        json={"action": "approve", **fields},
    )


def reject(client, transfer_id: str, user_ref: str, reason: str | None = None):
    return client.post(
        f"/stockflow/transfers/{transfer_id}/approve",
        headers=auth_headers(user_ref),
        json={"action": "reject", "rejection_reason": reason},
    )


def detail(client, transfer_id: str, user_ref: str = "viewer"):
    response = client.get(f"/stockflow/transfers/{transfer_id}", headers=auth_headers(user_ref))
    assert response.status_code == 200, response.text
    return response.json()


def warehouse_to_store(client):
    """Warehouse WH-1 ships to store ST-1; ``wh-mgr`` manages the warehouse, ``st-mgr`` the store."""
    warehouse = create_location(client, code="WH-1", location_type="warehouse")
    store = create_location(client, code="ST-1", location_type="store")
    grant_role(client, user_ref="wh-mgr", location_id=warehouse["id"], role="warehouse_manager")
    grant_role(client, user_ref="st-mgr", location_id=store["id"], role="store_manager")
    return warehouse, store


def approved_transfer(client, *, requester: str = "requester", items=None):
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(
        client,
        requester=requester,
        source_id=warehouse["id"],
        destination_id=store["id"],
        items=items,
    )
    response = approve(client, transfer["id"], "wh-mgr")
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "warehouse_approved"
    return response.json()


def assign_packing(client, transfer_id: str, assignee: str, actor: str = "wh-mgr"):
    response = client.post(
        f"/stockflow/transfers/{transfer_id}/packing",
        headers=auth_headers(actor),
        json={"assigned_to": assignee},
    )
    assert response.status_code == 201, response.text
    return response.json()


def update_packing(client, transfer_id: str, task_id: str, user_ref: str, **payload):
    return client.patch(
        f"/stockflow/transfers/{transfer_id}/packing/{task_id}",
        headers=auth_headers(user_ref),
        json=payload,
    )


def assign_delivery(client, transfer_id: str, assignee: str, actor: str = "wh-mgr", **fields):
    response = client.post(
        f"/stockflow/transfers/{transfer_id}/delivery",
        headers=auth_headers(actor),
        json={"assigned_to": assignee, **fields},
    )
    assert response.status_code == 201, response.text
    return response.json()


def update_delivery(client, transfer_id: str, assignment_id: str, user_ref: str, **payload):
    return client.patch(
        f"/stockflow/transfers/{transfer_id}/delivery/{assignment_id}",
        headers=auth_headers(user_ref),
        json=payload,
    )


def packed_transfer(client, *, packer: str = "packer-1"):
    transfer = approved_transfer(client)
    task = assign_packing(client, transfer["id"], packer)
    item = transfer["items"][0]
    response = update_packing(
        client,
        transfer["id"],
        task["id"],
        packer,
        task_status="completed",
        item_quantities=[{"item_id": item["id"], "quantity_packed": item["quantity_requested"]}],
    )
    assert response.status_code == 200, response.text
    assert response.json()["transfer_status"] == "packed"
    return transfer

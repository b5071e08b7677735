from tests.transfer_helpers import auth_headers, create_location, create_transfer


def test_create_location_normalizes_code(client):
    location = create_location(client, code="  wh-main ", location_type="warehouse", name="Main Warehouse")
    assert location["location_code"] == "WH-MAIN"
    assert location["location_type"] == "warehouse"
    assert location["is_active"] is True
    assert location["created_by"] == "admin"


def test_list_locations_with_stats_and_filters(client):
    create_location(client, code="WH-1", location_type="warehouse", name="North Warehouse")
    create_location(client, code="ST-1", location_type="store", name="Downtown Store")
    inactive = create_location(client, code="ST-2", location_type="store", name="Closed Store")
    client.delete(f"/stockflow/locations/{inactive['id']}", headers=auth_headers("admin"))

    response = client.get("/stockflow/locations", headers=auth_headers("admin"))
    assert response.status_code == 200
    payload = response.json()
    assert {row["location_code"] for row in payload["locations"]} == {"WH-1", "ST-1"}
    assert payload["stats"] == {"total": 2, "stores": 1, "warehouses": 1, "active": 2}

    response = client.get(
        "/stockflow/locations",
        headers=auth_headers("admin"),
        params={"include_inactive": True, "location_type": "store"},
    )
    assert {row["location_code"] for row in response.json()["locations"]} == {"ST-1", "ST-2"}

    response = client.get("/stockflow/locations", headers=auth_headers("admin"), params={"search": "north"})
    assert [row["location_code"] for row in response.json()["locations"]] == ["WH-1"]


def test_update_location_rejects_code_collision(client):
    create_location(client, code="ST-1")
    other = create_location(client, code="ST-2")
    response = client.patch(
        f"/stockflow/locations/{other['id']}",
        headers=auth_headers("admin"),
        json={"location_code": "st-1"},
    )
    assert response.status_code == 409
    assert response.json()["code"] == "CONFLICT"

    response = client.patch(
        f"/stockflow/locations/{other['id']}",
        headers=auth_headers("admin"),
        json={"location_name": "Renamed", "city": "Lima"},
    )
    assert response.status_code == 200
    assert response.json()["location_name"] == "Renamed"
    assert response.json()["city"] == "Lima"
    assert response.json()["location_code"] == "ST-2"


def test_deactivate_and_reactivate_location(client):
    location = create_location(client, code="ST-9")
    response = client.delete(f"/stockflow/locations/{location['id']}", headers=auth_headers("admin"))
    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert response.json()["deactivated_at"]

    response = client.patch(
        f"/stockflow/locations/{location['id']}",
        headers=auth_headers("admin"),
        json={"is_active": True},
    )
    assert response.json()["is_active"] is True
    assert response.json()["deactivated_at"] is None


def test_inactive_location_cannot_be_transfer_endpoint(client):
    source = create_location(client, code="WH-1", location_type="warehouse")
    destination = create_location(client, code="ST-1")
    client.delete(f"/stockflow/locations/{destination['id']}", headers=auth_headers("admin"))

    response = client.post(
        "/stockflow/transfers",
        headers=auth_headers("requester"),
        json={
            "source_location_id": source["id"],
            "destination_location_id": destination["id"],
            "items": [{"product_name": "Rice", "quantity_requested": 2}],
        },
    )
    assert response.status_code == 422
    assert response.json()["details"]["field"] == "destination_location_id"


def test_unknown_location_is_not_found(client):
    response = client.get(
        "/stockflow/locations/6b1f3c1e-8d7a-4b55-9f1e-2c1d9a7e5b10",
        headers=auth_headers("admin"),
    )
    assert response.status_code == 404


def test_existing_transfers_survive_deactivation(client):
    source = create_location(client, code="WH-1", location_type="warehouse")
    destination = create_location(client, code="ST-1")
    transfer = create_transfer(client, requester="requester", source_id=source["id"], destination_id=destination["id"])
    client.delete(f"/stockflow/locations/{source['id']}", headers=auth_headers("admin"))

    response = client.get(f"/stockflow/transfers/{transfer['id']}", headers=auth_headers("requester"))
    assert response.status_code == 200
    assert response.json()["transfer"]["source"]["location_code"] == "WH-1"

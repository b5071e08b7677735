from app.stockflow.core.metrics import metrics
from tests.transfer_helpers import (
    approve,
    assign_delivery,
    create_transfer,
    packed_transfer,
    update_delivery,
    warehouse_to_store,
)


def test_metrics_endpoint_reports_transitions(client):
    if not metrics.enabled:
        return
    warehouse, store = warehouse_to_store(client)
    transfer = create_transfer(client, requester="requester", source_id=warehouse["id"], destination_id=store["id"])
    approve(client, transfer["id"], "wh-mgr")

    response = client.get("/stockflow/ops/metrics")
    assert response.status_code == 200
    content = response.text
    assert 'stockflow_transfer_transitions_total{from_status="requested",to_status="warehouse_approved"} 1.0' in content
    assert 'stockflow_transfer_transitions_total{from_status="none",to_status="requested"} 1.0' in content
    assert "stockflow_http_requests_total" in content


def test_metrics_endpoint_reports_assignment_stages(client):
    if not metrics.enabled:
        return
    transfer = packed_transfer(client)
    assignment = assign_delivery(client, transfer["id"], "driver-1")
    response = update_delivery(client, transfer["id"], assignment["id"], "driver-1", delivery_status="picked_up")
    assert response.status_code == 200, response.text

    content = client.get("/stockflow/ops/metrics").text
    assert 'stockflow_assignment_stage_total{kind="packing_task",stage="pending"} 1.0' in content
    assert 'stockflow_assignment_stage_total{kind="packing_task",stage="completed"} 1.0' in content
    assert 'stockflow_assignment_stage_total{kind="delivery_assignment",stage="pending"} 1.0' in content
    assert 'stockflow_assignment_stage_total{kind="delivery_assignment",stage="picked_up"} 1.0' in content

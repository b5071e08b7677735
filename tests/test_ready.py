from sqlalchemy.exc import OperationalError

from app.stockflow.routers import health


def test_ready(client):
    response = client.get("/ready")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["trace_id"]


def test_ready_reports_db_unavailable(client):
    class BrokenSession:
        def execute(self, *args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    client.app.dependency_overrides[health.get_db] = lambda: BrokenSession()
    try:
        response = client.get("/ready")
    finally:
        client.app.dependency_overrides.clear()
    assert response.status_code == 503
    payload = response.json()
    assert payload["code"] == "DB_UNAVAILABLE"
    assert payload["details"] == {"type": "OperationalError"}

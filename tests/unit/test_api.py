from fastapi.testclient import TestClient
import pytest


@pytest.fixture(autouse=True)
def fresh_session(client: TestClient):
    response = client.post("/api/v1/session/reset")
    assert response.status_code == 200


def tick(client: TestClient, count: int = 1):
    session = client.app.state.session
    for _ in range(count):
        client.portal.call(session.scheduler.tick)


def test_healthz(client: TestClient):
    response = client.get("/api/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ready(client: TestClient):
    response = client.get("/api/ready")
    assert response.status_code == 200
    assert response.json()["status"] == "ready"


def test_list_deployments(client: TestClient):
    response = client.get("/api/v1/deployments")
    assert response.status_code == 200
    deployments = response.json()["deployments"]
    assert [d["version"] for d in deployments] == ["v1.2.0", "v1.1.9", "v1.1.8"]
    assert deployments[0]["status"] == "ACTIVE"
    assert deployments[0]["commitHash"] == "7e12a4b"


def test_active_deployment(client: TestClient):
    response = client.get("/api/v1/deployments/active")
    assert response.status_code == 200
    assert response.json()["version"] == "v1.2.0"


def test_telemetry_buffers(client: TestClient):
    tick(client, 3)

    metrics = client.get("/api/v1/telemetry/metrics").json()
    logs = client.get("/api/v1/telemetry/logs").json()

    assert len(metrics["metrics"]) == 3
    assert metrics["capacity"] == 30
    assert len(logs["logs"]) == 3
    assert logs["capacity"] == 50
    assert set(logs["logs"][0]) >= {"timestamp", "level", "message", "service", "isSuspect"}


def test_update_faults(client: TestClient):
    response = client.put("/api/v1/faults", json={"errorBurst": True})
    assert response.status_code == 200
    assert response.json() == {"latencySpike": False, "errorBurst": True, "memoryLeak": False}

    # omitted toggles keep their value
    response = client.put("/api/v1/faults", json={"memoryLeak": True})
    assert response.json()["errorBurst"] is True
    assert client.get("/api/v1/faults").json()["memoryLeak"] is True


def test_analysis_lifecycle(client: TestClient):
    assert client.get("/api/v1/analysis").json() == {"state": "IDLE", "analysis": None}

    response = client.post("/api/v1/analysis?wait=true")
    assert response.status_code == 202
    body = response.json()
    assert body["state"] == "IDLE"
    assert body["analysis"]["recommendation"] in ("STAY", "INVESTIGATE", "ROLLBACK")
    assert "riskScore" in body["analysis"]

    assert client.delete("/api/v1/analysis").json() == {"cleared": True}
    assert client.delete("/api/v1/analysis").json() == {"cleared": False}


def test_rollback_produces_incident(client: TestClient):
    tick(client, 2)

    response = client.post("/api/v1/rollback", json={"targetVersion": "v1.1.9"})
    assert response.status_code == 200
    report = response.json()
    assert report["failedVersion"] == "v1.2.0"
    assert report["restoredVersion"] == "v1.1.9"
    assert report["incidentId"].startswith("INC-")
    assert report["resolutionTime"] == "~0s (Manual)"

    statuses = {d["version"]: d["status"] for d in client.get("/api/v1/deployments").json()["deployments"]}
    assert statuses == {"v1.2.0": "ROLLED_BACK", "v1.1.9": "ACTIVE", "v1.1.8": "PREVIOUS"}

    latest = client.get("/api/v1/incidents/latest")
    assert latest.status_code == 200
    assert latest.json()["incidentId"] == report["incidentId"]


def test_rollback_without_target_uses_previous(client: TestClient):
    response = client.post("/api/v1/rollback", json={})
    assert response.status_code == 200
    assert response.json()["restoredVersion"] == "v1.1.9"


def test_rollback_to_active_version(client: TestClient):
    response = client.post("/api/v1/rollback", json={"targetVersion": "v1.2.0"})
    assert response.status_code == 422
    assert response.json()["error"] == "InvalidRollbackTargetError"


def test_rollback_unknown_version(client: TestClient):
    response = client.post("/api/v1/rollback", json={"targetVersion": "v9.9.9"})
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"


def test_rollback_invalid_trigger(client: TestClient):
    response = client.post("/api/v1/rollback", json={"targetVersion": "v1.1.9", "trigger": "SOMETIMES"})
    assert response.status_code == 422


def test_rollback_automatic_trigger_refused(client: TestClient):
    response = client.post("/api/v1/rollback", json={"targetVersion": "v1.1.9", "trigger": "AUTOMATIC"})
    assert response.status_code == 422


def test_no_incident_after_reset(client: TestClient):
    response = client.get("/api/v1/incidents/latest")
    assert response.status_code == 404


def test_chat_offline_fallback(client: TestClient):
    payload = {"history": [{"role": "user", "content": "Why is latency up?"}]}
    response = client.post("/api/v1/chat", json=payload)
    assert response.status_code == 200
    assert response.json()["reply"]


@pytest.mark.parametrize(
    "payload",
    [
        {"history": []},
        {"history": [{"role": "system", "content": "hi"}]},
        {},
    ],
)
def test_chat_validation_error(client: TestClient, payload):
    response = client.post("/api/v1/chat", json=payload)
    assert response.status_code == 422


def test_correlation_id_echoed(client: TestClient):
    response = client.get("/api/healthz", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"
    assert "X-Process-Time" in response.headers


def test_metrics_endpoint(client: TestClient):
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "rollback_total" in response.text

def test_liveness_probes(client):
    assert client.get("/api/health").json() == {"status": "ok"}

    live = client.get("/api/health/live")
    assert live.status_code == 200
    assert live.json()["timestamp"]


def test_readiness_reports_slot_indexes_and_grid(client):
    ready = client.get("/api/health/ready")

    assert ready.status_code == 200
    payload = ready.json()
    assert payload["status"] == "ok"
    assert payload["database"]["missing_slot_indexes"] == []
    assert payload["grid"]["slots"][0] == "10:00"
    assert payload["grid"]["slots"][-1] == "16:00"
    assert payload["grid"]["enforced"] is True

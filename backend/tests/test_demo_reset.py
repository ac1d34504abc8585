"""
Tests for demo reset endpoint. Demo reset is only available when DEMO_MODE=true.
"""
from models import GeneralPatient, PatientDatabase


class TestDemoResetEndpoint:
    """Test POST /demo/reset is gated by DEMO_MODE and behaves correctly."""

    def test_demo_reset_endpoint_disabled_when_demo_mode_false(self, client, monkeypatch):
        """When DEMO_MODE is false, POST /demo/reset returns 404."""
        monkeypatch.setenv("DEMO_MODE", "false")

        resp = client.post("/demo/reset")
        assert resp.status_code == 404
        assert "detail" in resp.json()

    def test_demo_reset_endpoint_disabled_when_demo_mode_unset(self, client, monkeypatch):
        """When DEMO_MODE is unset, POST /demo/reset returns 404."""
        monkeypatch.delenv("DEMO_MODE", raising=False)

        resp = client.post("/demo/reset")
        assert resp.status_code == 404

    def test_demo_status_reflects_env(self, client, monkeypatch):
        monkeypatch.setenv("DEMO_MODE", "TRUE")
        assert client.get("/demo/status").json() == {"demoMode": True}
        monkeypatch.setenv("DEMO_MODE", "no")
        assert client.get("/demo/status").json() == {"demoMode": False}

    def test_demo_reset_replaces_database_when_demo_mode_true(self, client, store, monkeypatch):
        """When DEMO_MODE=true, reset discards visits and restores the demo patients."""
        monkeypatch.setenv("DEMO_MODE", "true")
        store.save(PatientDatabase(generalPatients=[GeneralPatient(nome="Temporária", cpf="9")]))
        client.post("/visits", json={"cpf": "9", "obs": "visita"})
        assert len(client.get("/visits").json()) == 1

        reset_resp = client.post("/demo/reset")
        assert reset_resp.status_code == 200
        assert reset_resp.json() == {"status": "ok", "patientCount": 5}

        assert client.get("/visits").json() == []
        names = [p["nome"] for p in client.get("/db").json()["generalPatients"]]
        assert names == ["Carlos Andrade", "Fernanda Lima"]

        # Saving after reset works on the demo data
        data = client.post("/visits", json={"cpf": "444.555.666-77", "pa": "140/90"}).json()
        assert len(data["chronicPatients"][0]["visits"]) == 1

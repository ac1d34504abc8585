"""
API smoke tests using FastAPI TestClient
"""
import pytest
from main import app, get_text_generator
from visits import VISIT_ID_FIELD


class TestRoot:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestDatabaseEndpoints:
    """GET/DELETE /db, GET /db/status, POST /db/import"""

    def test_status_when_nothing_loaded(self, client):
        response = client.get("/db/status")
        assert response.status_code == 200
        assert response.json() == {"loaded": False, "patientCount": 0, "loadedAt": None}

    def test_get_db_when_nothing_loaded_is_404(self, client):
        response = client.get("/db")
        assert response.status_code == 404
        assert "detail" in response.json()

    def test_status_after_seed(self, client, seeded_store):
        data = client.get("/db/status").json()
        assert data["loaded"] is True
        assert data["patientCount"] == 5
        assert data["loadedAt"] == "2024-08-01T09:00:00+00:00"

    def test_get_db_returns_three_collections(self, client, seeded_store):
        data = client.get("/db").json()
        assert len(data["generalPatients"]) == 2
        assert len(data["pregnantPatients"]) == 1
        assert len(data["chronicPatients"]) == 2

    def test_clear(self, client, seeded_store):
        assert client.delete("/db").json() == {"status": "cleared"}
        assert client.get("/db/status").json()["loaded"] is False

    def test_import_xlsx(self, client, workbook_factory):
        content = workbook_factory({"PBG": [["nome", "cpf"], ["Juliana", "333"]]})
        response = client.post(
            "/db/import",
            files={"file": ("base.xlsx", content, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
        )
        assert response.status_code == 200
        assert response.json()["patientCount"] == 1
        assert len(client.get("/db").json()["pregnantPatients"]) == 1

    def test_import_empty_sheet_is_422(self, client, workbook_factory):
        content = workbook_factory({"PBG": [["nome", "cpf"]]})
        response = client.post("/db/import", files={"file": ("base.xlsx", content, "application/octet-stream")})
        assert response.status_code == 422
        assert "PBG" in response.json()["detail"]

    def test_import_out_of_range_date_is_422(self, client, workbook_factory):
        content = workbook_factory({"TPC": [["nome", "cpf", "dataNascimento"], ["Ana", "1", 99999999]]})
        response = client.post("/db/import", files={"file": ("base.xlsx", content, "application/octet-stream")})
        assert response.status_code == 422
        assert "dataNascimento" in response.json()["detail"]

    def test_import_wrong_extension_is_422(self, client):
        response = client.post("/db/import", files={"file": ("base.csv", b"nome,cpf", "text/csv")})
        assert response.status_code == 422


class TestPatientEndpoints:
    def test_search_by_name(self, client, seeded_store):
        response = client.get("/patients/search", params={"name": "graca"})
        assert response.status_code == 200
        assert [p["nome"] for p in response.json()] == ["Maria da Graça Souza"]

    def test_search_without_database_is_empty(self, client):
        assert client.get("/patients/search", params={"name": "ana"}).json() == []

    def test_by_document_uses_pathway_collection(self, client, seeded_store):
        response = client.get(
            "/patients/by-document",
            params={"field": "cpf", "value": "33344455566", "pathway": "gestantes"},
        )
        assert response.status_code == 200
        assert response.json()["dum"] == "2024-05-01"

    def test_by_document_falls_back_to_general(self, client, seeded_store):
        response = client.get(
            "/patients/by-document",
            params={"field": "cns", "value": "123456789012345", "pathway": "diabetes"},
        )
        assert response.status_code == 200
        assert response.json()["nome"] == "Carlos Andrade"

    def test_by_document_not_found(self, client, seeded_store):
        response = client.get("/patients/by-document", params={"value": "000"})
        assert response.status_code == 404

    def test_by_document_invalid_field_is_422(self, client, seeded_store):
        response = client.get("/patients/by-document", params={"field": "nome", "value": "Ana"})
        assert response.status_code == 422


class TestVisitEndpoints:
    def test_save_requires_cpf(self, client):
        response = client.post("/visits", json={"nome": "Ana"})
        assert response.status_code == 400
        assert "CPF" in response.json()["detail"]

    def test_save_creates_then_appends(self, client):
        data = client.post("/visits", json={"cpf": "12345678900", "nome": "Ana"}).json()
        assert len(data["generalPatients"]) == 1
        data = client.post("/visits", json={"cpf": "123.456.789-00", "pressao": "130/80"}).json()
        assert len(data["generalPatients"]) == 1
        assert len(data["generalPatients"][0]["visits"]) == 2

    def test_edit_visit(self, client):
        data = client.post("/visits", json={"cpf": "1", "nome": "Ana", "obs": "a"}).json()
        visit_id = data["generalPatients"][0]["visits"][0]["id"]
        data = client.post("/visits", json={"cpf": "1", "obs": "b", VISIT_ID_FIELD: visit_id}).json()
        visits = data["generalPatients"][0]["visits"]
        assert len(visits) == 1
        assert visits[0]["formData"]["obs"] == "b"

    def test_edit_unknown_visit_is_404(self, client):
        client.post("/visits", json={"cpf": "1", "nome": "Ana"})
        response = client.post("/visits", json={"cpf": "1", VISIT_ID_FIELD: "missing"})
        assert response.status_code == 404

    def test_history_feed(self, client):
        client.post("/visits", json={"cpf": "1", "nome": "Ana"})
        client.post("/visits", json={"cpf": "2", "nome": "Bia"})
        feed = client.get("/visits").json()
        assert [v["patientName"] for v in feed] == ["Bia", "Ana"]

    def test_history_feed_without_database(self, client):
        assert client.get("/visits").json() == []

    def test_patient_visits_newest_first(self, client):
        client.post("/visits", json={"cpf": "1", "nome": "Ana", "n": 1})
        client.post("/visits", json={"cpf": "1", "n": 2})
        data = client.get("/patients/visits", params={"cpf": "1", "newestFirst": True}).json()
        assert data["patientName"] == "Ana"
        assert [v["formData"]["n"] for v in data["visits"]] == [2, 1]

    def test_patient_visits_unknown_cpf(self, client, seeded_store):
        assert client.get("/patients/visits", params={"cpf": "000"}).status_code == 404


class TestCollaboratorEndpoints:
    @pytest.fixture
    def fake_generator(self):
        calls = []

        def generate(prompt, image=None):
            calls.append(prompt)
            return " ok "

        app.dependency_overrides[get_text_generator] = lambda: generate
        yield calls
        app.dependency_overrides.pop(get_text_generator, None)

    def test_rewrite(self, client, fake_generator):
        response = client.post("/ai/rewrite", json={"text": "paciente com dor", "target": "record"})
        assert response.status_code == 200
        assert response.json() == {"text": "ok"}
        assert "paciente com dor" in fake_generator[0]

    def test_rewrite_rejects_unknown_target(self, client, fake_generator):
        response = client.post("/ai/rewrite", json={"text": "x", "target": "family"})
        assert response.status_code == 422

    def test_populate_without_source_is_400(self, client, fake_generator):
        response = client.post("/ai/populate", json={"template": "Nome: XXXXXX"})
        assert response.status_code == 400

    def test_rewrite_without_api_key_is_502(self, client, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        response = client.post("/ai/rewrite", json={"text": "x", "target": "patient"})
        assert response.status_code == 502

    def test_export_without_url_is_502(self, client, monkeypatch):
        monkeypatch.delenv("SHEET_SCRIPT_URL", raising=False)
        response = client.post("/export", json={"cpf": "1"})
        assert response.status_code == 502

    def test_export_success(self, client, monkeypatch):
        monkeypatch.setenv("SHEET_SCRIPT_URL", "https://script.example.com/exec")
        sent = []

        def fake_send(record, url, client=None, timeout=30.0):
            sent.append((record, url))

        monkeypatch.setattr("main.send_to_sheet", fake_send)
        response = client.post("/export", json={"cpf": "1"})
        assert response.status_code == 200
        assert sent == [({"cpf": "1"}, "https://script.example.com/exec")]

"""
Tests for the /symbol-sets endpoints.
"""
import pytest
from fastapi.testclient import TestClient

from dreamontology.api.app import create_app
from dreamontology.config import Settings
from dreamontology.repository import MemoryRepositoryFactory
from dreamontology.repository.seed import seed_test_data


@pytest.fixture
def client():
    factory = MemoryRepositoryFactory()
    seed_test_data(factory)
    return TestClient(create_app(factory=factory, settings=Settings(_env_file=None)))


@pytest.fixture
def elements_payload(client):
    sun = client.get("/symbols/sun").json()
    return {
        "id": "elements",
        "name": "Classical Elements",
        "category": "nature",
        "description": "Fire, water and the rest",
        "symbols": {"sun": sun},
    }


class TestSymbolSetEndpoints:

    def test_list(self, client):
        data = client.get("/symbol-sets").json()
        assert data["total_count"] == 2
        assert {s["id"] for s in data["symbol_sets"]} == {"celestial", "opposites"}

    def test_list_by_category(self, client):
        data = client.get("/symbol-sets", params={"category": "concept"}).json()
        assert [s["id"] for s in data["symbol_sets"]] == ["opposites"]

    def test_list_limit(self, client):
        data = client.get("/symbol-sets", params={"limit": 1}).json()
        assert len(data["symbol_sets"]) == 1
        assert data["total_count"] == 2

    def test_get_includes_member_bodies(self, client):
        data = client.get("/symbol-sets/celestial").json()
        assert set(data["symbols"]) == {"sun", "moon"}
        assert data["symbols"]["moon"]["description"] == "Natural satellite of Earth"

    def test_get_missing_is_404(self, client):
        response = client.get("/symbol-sets/nope")
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "SymbolSet not found: nope"

    def test_search_by_set_fields(self, client):
        data = client.get("/symbol-sets/search", params={"query": "opposing"}).json()
        assert [s["id"] for s in data["symbol_sets"]] == ["opposites"]

    def test_search_by_member(self, client):
        data = client.get("/symbol-sets/search", params={"query": "satellite"}).json()
        assert [s["id"] for s in data["symbol_sets"]] == ["celestial"]

    def test_search_requires_query(self, client):
        assert client.get("/symbol-sets/search").status_code == 400
        assert client.get("/symbol-sets/search", params={"query": " "}).status_code == 400

    def test_create(self, client, elements_payload):
        response = client.post("/symbol-sets", json=elements_payload)
        assert response.status_code == 201
        assert client.get("/symbol-sets/elements").json()["name"] == "Classical Elements"

    def test_create_duplicate_is_409(self, client, elements_payload):
        client.post("/symbol-sets", json=elements_payload)
        assert client.post("/symbol-sets", json=elements_payload).status_code == 409

    def test_create_with_empty_id_is_400(self, client, elements_payload):
        payload = {**elements_payload, "id": ""}
        assert client.post("/symbol-sets", json=payload).status_code == 400

    @pytest.mark.parametrize("method", ["put", "post"])
    def test_update(self, client, method):
        celestial = client.get("/symbol-sets/celestial").json()
        del celestial["symbols"]["moon"]
        response = getattr(client, method)("/symbol-sets/celestial", json=celestial)
        assert response.status_code == 200
        assert set(client.get("/symbol-sets/celestial").json()["symbols"]) == {"sun"}

    def test_update_id_mismatch_is_400(self, client):
        celestial = client.get("/symbol-sets/celestial").json()
        assert client.put("/symbol-sets/opposites", json=celestial).status_code == 400

    def test_update_missing_is_404(self, client, elements_payload):
        assert client.put("/symbol-sets/elements", json=elements_payload).status_code == 404

    def test_delete(self, client):
        assert client.delete("/symbol-sets/opposites").status_code == 204
        assert client.get("/symbol-sets/opposites").status_code == 404
        assert client.delete("/symbol-sets/opposites").status_code == 404
        # members survive
        assert client.get("/symbols/light").status_code == 200

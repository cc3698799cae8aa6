"""HTTP-level tests through FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

from product_assistant.app import create_app


@pytest.fixture
def client(assistant):
    return TestClient(create_app(assistant=assistant))


class TestHealth:

    def test_reports_healthy(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "Healthy"
        assert body["version"] == "1.0.0"
        assert "timestamp" in body


class TestQueryRoute:

    def test_success_payload_uses_camel_case(self, client):
        response = client.post(
            "/api/query",
            json={"query": "What is the width of 6205?", "conversationId": "conv-1"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["resultType"] == "Success"
        assert body["conversationId"] == "conv-1"
        assert body["productDetails"]["productName"] == "6205"
        assert body["productDetails"]["value"] == "15"
        assert body["productDetails"]["allAttributes"]["width"] == "15 mm"

    def test_blank_query_is_rejected(self, client, language):
        response = client.post("/api/query", json={"query": "   "})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Invalid query format"
        assert language.calls == []

    def test_malformed_body_is_rejected(self, client):
        response = client.post("/api/query", json={"query": ["not", "a", "string"]})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid query format"

    def test_missing_query_field_is_rejected(self, client):
        response = client.post("/api/query", json={"conversationId": "conv-1"})
        assert response.status_code == 400


class TestConversationRoutes:

    def test_start_get_delete(self, client):
        started = client.post("/api/conversation/start")
        assert started.status_code == 200
        conversation_id = started.json()["conversationId"]
        assert started.json()["createdAt"]

        fetched = client.get(f"/api/conversation/{conversation_id}")
        assert fetched.status_code == 200
        assert fetched.json()["id"] == conversation_id

        deleted = client.delete(f"/api/conversation/{conversation_id}")
        assert deleted.status_code == 204
        assert client.get(f"/api/conversation/{conversation_id}").status_code == 404

    def test_unknown_conversation(self, client):
        assert client.get("/api/conversation/does-not-exist").status_code == 404


class TestProductRoutes:

    def test_attribute_lookup(self, client):
        response = client.get("/api/product/6205/attribute/width")
        assert response.status_code == 200
        body = response.json()
        assert body["found"] is True
        assert body["productDetails"]["unit"] == "mm"
        assert "mass" in body["availableAttributes"]

    def test_attribute_lookup_miss(self, client):
        body = client.get("/api/product/9999/attribute/width").json()
        assert body["found"] is False
        assert body["availableAttributes"] == []

    def test_similar_products(self, client):
        body = client.get("/api/product/6206/similar").json()
        assert body["similarProducts"][0] == "6206"
        assert body["hasSuggestions"] is True

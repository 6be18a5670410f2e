"""
Tests for health endpoints
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient


@pytest.mark.api
def test_root(client: TestClient):
    response = client.get("/")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "healthy"


@pytest.mark.api
def test_health(client: TestClient):
    response = client.get("/health")

    body = response.json()
    assert body["checks"]["database"]["status"] == "up"
    assert body["status"] == "healthy"


@pytest.mark.api
def test_unknown_route_uses_envelope(client: TestClient):
    response = client.get("/api/v1/nothing-here")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["success"] is False


@pytest.mark.api
def test_error_envelope_documented(client: TestClient):
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    denied = schema["paths"]["/api/v1/medications"]["get"]["responses"]["403"]
    assert denied["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")

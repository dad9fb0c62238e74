import pytest
from fastapi import status

def test_health_check(client):
    """Test the /health endpoint returns 200 and up status."""
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "up"
    assert "version" in data
    assert "timestamp" in data

def test_readiness_check(client):
    """Test the /readiness endpoint returns 200 and database status."""
    response = client.get("/readiness")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ready"
    assert data["components"]["database"] == "connected"

def test_root_endpoint(client):
    """Test the API root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert "Resume Optimizer API" in response.json()["message"]

def test_metrics_endpoint_exposes_pipeline_counters(client):
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "optimization_runs" in response.text

def test_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

def test_missing_token_is_rejected(client):
    response = client.get("/api/optimized-resumes")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["errors"][0]["code"] == "AUTH_ERROR"

def test_invalid_token_is_rejected(client):
    response = client.get("/api/optimized-resumes", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401

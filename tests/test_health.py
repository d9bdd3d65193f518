"""
tests/test_health.py -- Integration tests for GET /health, GET / and error routing.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok'
  - No authentication required
  - Unknown routes answer with the uniform error envelope
"""

from __future__ import annotations

from conftest import ApiContext


def test_health_returns_200_with_components(api_client: ApiContext):
    """Health endpoint returns 200 with status, version, and components."""
    resp = api_client.client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == "1.0.0"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(api_client: ApiContext):
    resp = api_client.client.get("/health", headers={})
    assert resp.status_code == 200


def test_root_points_to_docs(api_client: ApiContext):
    data = api_client.client.get("/").json()
    assert data["documentation"] == "/api-docs"
    assert api_client.client.get("/api-docs").status_code == 200


def test_unknown_route_returns_envelope(api_client: ApiContext):
    resp = api_client.client.get("/inventory")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Route not found"}

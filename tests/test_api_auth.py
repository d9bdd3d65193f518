"""
tests/test_api_auth.py -- Integration tests for the auth and role chain.

Exercises the full request path: bearer token extraction -> TokenService ->
Role Gate -> FieldValidator -> handler, through the real FastAPI app.

Fixtures used (from conftest.py):
  - api_client: ApiContext with a Manager (simon) and a Sales Agent (amina)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from conftest import MANAGER_PASSWORD, TEST_SECRET, ApiContext, auth

from auth.models import Identity, Role
from auth.tokens import TokenConfig, TokenService


class TestLogin:
    def test_login_with_username(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/users/login", json={"username": "simon", "password": MANAGER_PASSWORD})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["message"] == "Login successful"
        assert body["user"] == {
            "id": api_client.manager_id,
            "username": "simon",
            "email": "simon@kgl.ug",
            "role": "Manager",
        }
        assert resp.headers["Cache-Control"] == "no-store"

        identity = api_client.services.token_service.verify(body["token"])
        assert identity == Identity(api_client.manager_id, "simon", Role.MANAGER)

    def test_login_with_email(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/users/login", json={"username": "simon@kgl.ug", "password": MANAGER_PASSWORD})
        assert resp.status_code == 200

    def test_wrong_password(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/users/login", json={"username": "simon", "password": "wrong-password"})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Invalid credentials"}
        assert resp.headers["Cache-Control"] == "no-store"

    def test_unknown_user_gets_same_response(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/users/login", json={"username": "ghost", "password": MANAGER_PASSWORD})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Invalid credentials"}

    def test_missing_password_is_validation_error(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/users/login", json={"username": "simon"})
        assert resp.status_code == 400
        assert resp.json() == {"message": "Password is required"}

    def test_invalid_json_body(self, api_client: ApiContext) -> None:
        resp = api_client.client.post(
            "/users/login", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 400
        assert resp.json() == {"message": "Request body must be valid JSON"}


class TestTokenRequired:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/users/me"),
            ("GET", "/users"),
            ("GET", "/procurement"),
            ("POST", "/procurement"),
            ("GET", "/sales"),
            ("POST", "/sales/cash"),
            ("DELETE", "/sales/1"),
        ],
    )
    def test_missing_token(self, api_client: ApiContext, method: str, path: str) -> None:
        resp = api_client.client.request(method, path)
        assert resp.status_code == 401
        assert resp.json() == {"message": "Access token required"}

    def test_non_bearer_scheme_is_missing_token(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/users/me", headers={"Authorization": f"Basic {api_client.manager_token}"})
        assert resp.status_code == 401

    def test_bearer_scheme_is_case_insensitive(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/users/me", headers={"Authorization": f"bearer {api_client.manager_token}"})
        assert resp.status_code == 200

    def test_garbage_token(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/users/me", headers=auth("garbage"))
        assert resp.status_code == 403
        assert resp.json() == {"message": "Invalid or expired token"}

    def test_token_from_other_secret(self, api_client: ApiContext) -> None:
        foreign = TokenService(TokenConfig(secret_key="x" * 40)).issue(
            Identity(api_client.manager_id, "simon", Role.MANAGER)
        )
        resp = api_client.client.get("/users/me", headers=auth(foreign))
        assert resp.status_code == 403

    def test_expired_token(self, api_client: ApiContext) -> None:
        two_days_ago = datetime.now(timezone.utc) - timedelta(days=2)
        issuer = TokenService(TokenConfig(secret_key=TEST_SECRET), clock=lambda: two_days_ago)
        expired = issuer.issue(Identity(api_client.manager_id, "simon", Role.MANAGER))
        resp = api_client.client.get("/users/me", headers=auth(expired))
        assert resp.status_code == 403
        assert resp.json() == {"message": "Invalid or expired token"}

    def test_me_returns_identity(self, api_client: ApiContext) -> None:
        resp = api_client.client.get("/users/me", headers=auth(api_client.agent_token))
        assert resp.status_code == 200
        assert resp.json() == {"id": api_client.agent_id, "username": "amina", "role": "Sales Agent"}


class TestRoleGate:
    def test_sales_agent_cannot_create_procurement(self, api_client: ApiContext, procurement_body) -> None:
        resp = api_client.client.post("/procurement", json=procurement_body, headers=auth(api_client.agent_token))
        assert resp.status_code == 403
        assert resp.json() == {"message": "Access denied. Required role: Manager"}

    def test_manager_cannot_record_sale(self, api_client: ApiContext, cash_sale_body) -> None:
        resp = api_client.client.post("/sales/cash", json=cash_sale_body, headers=auth(api_client.manager_token))
        assert resp.status_code == 403
        assert resp.json() == {"message": "Access denied. Required role: Sales Agent"}

    def test_role_checked_before_body(self, api_client: ApiContext) -> None:
        resp = api_client.client.post("/procurement", json={"tonnage": 1}, headers=auth(api_client.agent_token))
        assert resp.status_code == 403

    def test_token_checked_before_role(self, api_client: ApiContext, procurement_body) -> None:
        resp = api_client.client.post("/procurement", json=procurement_body, headers=auth("garbage"))
        assert resp.status_code == 403
        assert resp.json() == {"message": "Invalid or expired token"}

    def test_body_validated_after_role_passes(self, api_client: ApiContext, procurement_body) -> None:
        resp = api_client.client.post(
            "/procurement",
            json={**procurement_body, "tonnage": 50},
            headers=auth(api_client.manager_token),
        )
        assert resp.status_code == 400
        assert resp.json() == {"message": "Tonnage must be minimum 100kg"}

    def test_reads_need_identity_only(self, api_client: ApiContext) -> None:
        assert api_client.client.get("/procurement", headers=auth(api_client.agent_token)).status_code == 200
        assert api_client.client.get("/sales", headers=auth(api_client.manager_token)).status_code == 200

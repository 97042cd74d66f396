"""
Integration tests for the client configuration API

Tests cover:
- GET/PUT config with versioning and server-locked AI fields
- Validation envelope, client id checks, CSRF, auth and ownership
- Mailbox provisioning from the stored config
- Personalized workflow rendering
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from floworx.api.dependencies import get_label_provider
from floworx.api.middleware.user_auth import get_current_user
from floworx.config import CSRF_COOKIE_NAME
from floworx.observability.telemetry import get_counter

EXPECTED_LABELS = {
    "Service",
    "Service/Emergency",
    "Service/Maintenance",
    "Sales",
    "Parts",
    "Warranty",
    "Warranty/Claims",
    "Support",
    "General",
}


class TestHealthAndAuth:
    def test_health(self, raw_client):
        body = raw_client.get("/api/health").json()

        assert body["status"] == "healthy"
        assert body["service"] == "FloWorx API"

    def test_db_health(self, raw_client):
        body = raw_client.get("/api/health/db").json()

        assert body["status"] == "healthy"
        assert body["warning"] is None

    def test_csrf_cookie_matches_body(self, app):
        test_client = TestClient(app)
        response = test_client.get("/api/auth/csrf")

        assert response.status_code == 200
        assert response.cookies[CSRF_COOKIE_NAME] == response.json()["csrf"]

    def test_me(self, raw_client):
        assert raw_client.get("/api/auth/me").json() == {
            "id": "user-1",
            "email": "owner@acmehvac.com",
            "name": "Owner",
        }

    def test_missing_bearer_token(self, app):
        del app.dependency_overrides[get_current_user]

        response = TestClient(app).get("/api/clients/acme/config")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestConfig:
    def test_unsaved_client_gets_default(self, client):
        response = client.get("/api/clients/acme/config")

        assert response.status_code == 200
        body = response.json()
        assert body["clientId"] == "acme"
        assert body["version"] == 1
        assert body["config"]["channels"]["email"]["provider"] == "gmail"
        assert body["config"]["ai"]["locked"] is True

    def test_put_then_get(self, client, acme_config, settings):
        response = client.put("/api/clients/acme/config", json=acme_config)

        assert response.status_code == 200
        assert response.json() == {"ok": True, "version": 2}

        body = client.get("/api/clients/acme/config").json()
        config = body["config"]
        assert body["version"] == 2
        assert config["client"]["name"] == "Acme HVAC"
        assert config["people"]["suppliers"] == ["ferguson.com", "johnstone.com"]
        assert config["labelMap"]["SERVICE"] == ["Service"]
        assert config["labelMap"]["SALES"] == ["Sales"]
        assert config["ai"]["model"] == settings.ai.model
        assert config["ai"]["maxTokens"] == settings.ai.max_tokens

    def test_each_put_bumps_version(self, client, acme_config):
        versions = [client.put("/api/clients/acme/config", json=acme_config).json()["version"] for _ in range(3)]

        assert versions == [2, 3, 4]

    def test_invalid_config_lists_every_field(self, client, acme_config):
        acme_config["client"]["name"] = ""
        acme_config["people"]["managers"][0]["email"] = "not-an-email"

        response = client.put("/api/clients/acme/config", json=acme_config)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_FAILED"
        fields = {detail["field"] for detail in error["details"]}
        assert {"client.name", "people.managers[0].email"} <= fields

        # nothing stored
        assert client.get("/api/clients/acme/config").json()["version"] == 1
        assert get_counter("config.validation_failed") == 1

    @pytest.mark.parametrize(
        ("field", "value"),
        [("website", "http://[acme"), ("timezone", "A" * 300), ("timezone", "../../etc/passwd")],
    )
    def test_unusable_client_field_is_400(self, client, acme_config, field, value):
        acme_config["client"][field] = value

        response = client.put("/api/clients/acme/config", json=acme_config)

        assert response.status_code == 400
        assert [detail["field"] for detail in response.json()["error"]["details"]] == [f"client.{field}"]
        assert client.get("/api/clients/acme/workflow").status_code == 200

    def test_non_object_body(self, client):
        response = client.put("/api/clients/acme/config", json=["not", "a", "config"])

        assert response.status_code == 400
        assert response.json()["error"]["details"][0]["field"] == "config"

    def test_invalid_client_id(self, client):
        response = client.get("/api/clients/acme%20hvac/config")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_CLIENT_ID"

    def test_put_requires_csrf_token(self, raw_client, acme_config):
        response = raw_client.put("/api/clients/acme/config", json=acme_config)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "CSRF_INVALID"

    def test_wrong_csrf_token(self, client, acme_config):
        response = client.put(
            "/api/clients/acme/config", json=acme_config, headers={"X-CSRF-Token": "forged"}
        )

        assert response.status_code == 403

    def test_other_owner_denied(self, app, client, acme_config, other_user):
        client.put("/api/clients/acme/config", json=acme_config)
        app.dependency_overrides[get_current_user] = lambda: other_user

        assert client.get("/api/clients/acme/config").status_code == 403
        response = client.put("/api/clients/acme/config", json=acme_config)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"


class TestProvision:
    def test_creates_taxonomy(self, client, acme_config, label_provider):
        client.put("/api/clients/acme/config", json=acme_config)

        response = client.post("/api/clients/acme/provision")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert {item["name"] for item in body["created"]} == EXPECTED_LABELS
        assert body["errors"] == []
        assert body["version"] == 1
        assert {entry["category"] for entry in body["mapping"]} == {
            "SERVICE",
            "SALES",
            "PARTS",
            "WARRANTY",
            "SUPPORT",
            "GENERAL",
        }
        assert set(label_provider.user_label_names()) == EXPECTED_LABELS

    def test_second_run_is_noop(self, client, acme_config, label_provider):
        client.put("/api/clients/acme/config", json=acme_config)
        client.post("/api/clients/acme/provision")
        label_provider.create_calls.clear()

        body = client.post("/api/clients/acme/provision").json()

        assert body["created"] == []
        assert len(body["skipped"]) == len(EXPECTED_LABELS)
        assert body["version"] == 1
        assert label_provider.create_calls == []

    def test_unsaved_client_gets_default_config(self, client):
        body = client.post("/api/clients/new-client/provision").json()

        assert len(body["created"]) == len(EXPECTED_LABELS)
        assert client.get("/api/clients/new-client/config").json()["version"] == 1

    def test_partial_failure_reported(self, app, client, acme_config, make_label_provider):
        provider = make_label_provider(fail_on=("Service",))
        app.dependency_overrides[get_label_provider] = lambda: provider
        client.put("/api/clients/acme/config", json=acme_config)

        response = client.post("/api/clients/acme/provision")

        assert response.status_code == 200
        body = response.json()
        codes = {error["name"]: error["code"] for error in body["errors"]}
        assert codes == {
            "Service": "MAILBOX_PROVIDER_ERROR",
            "Service/Emergency": "PARENT_FAILED",
            "Service/Maintenance": "PARENT_FAILED",
        }
        assert "SERVICE" not in {entry["category"] for entry in body["mapping"]}

    def test_o365_not_supported_yet(self, client, acme_config):
        acme_config["channels"]["email"]["provider"] = "o365"
        assert client.put("/api/clients/acme/config", json=acme_config).status_code == 200

        response = client.post("/api/clients/acme/provision")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UNSUPPORTED_PROVIDER"

    def test_provision_requires_csrf(self, raw_client):
        assert raw_client.post("/api/clients/acme/provision").status_code == 403


class TestWorkflow:
    def test_industry_template_personalized(self, client, acme_config):
        client.put("/api/clients/acme/config", json=acme_config)
        client.post("/api/clients/acme/provision")

        response = client.get("/api/clients/acme/workflow", params={"industry": "furnace repair"})

        assert response.status_code == 200
        body = response.json()
        assert body["industry"] == "hvac"
        assert body["templateSource"] == "industry"
        workflow = body["workflow"]
        assert workflow["name"] == "Acme HVAC - HVAC Email Automation"
        assert workflow["meta"]["configVersion"] == 2
        assert workflow["meta"]["mappingVersion"] == 1
        assert workflow["meta"]["unmappedCategories"] == []

    def test_business_name_detects_industry(self, client, acme_config):
        client.put("/api/clients/acme/config", json=acme_config)

        body = client.get("/api/clients/acme/workflow").json()

        assert body["industry"] == "hvac"

    @pytest.mark.parametrize("services", [["consulting"], ["bookkeeping", "payroll"]])
    def test_unknown_business_uses_enhanced(self, client, services):
        body = client.get("/api/clients/new-client/workflow", params={"services": services}).json()

        assert body["industry"] is None
        assert body["templateSource"] == "enhanced"
        assert body["workflow"]["meta"]["clientId"] == "new-client"

    def test_services_select_industry(self, client):
        body = client.get(
            "/api/clients/new-client/workflow", params={"services": ["Drain cleaning", "Water heaters"]}
        ).json()

        assert body["industry"] == "plumber"

"""
Tests for client config validation and normalization

Tests cover:
- Every missing required field is reported at once
- Timezone, provider and manager email checks
- Supplier domain normalization and de-duplication
- labelMap normalization over the canonical defaults
- AI settings are always the server's, whatever the client sends
"""

from __future__ import annotations

import pytest

from floworx.clients.models import DEFAULT_SIGNATURE, Invalid, LockedAI, Valid
from floworx.clients.validation import normalize_label_map, normalize_suppliers, validate_config
from floworx.config import SIGNATURE_MAX_LENGTH, AISettings, Settings


def _fields(result) -> set[str]:
    assert isinstance(result, Invalid)
    return {error.field for error in result.errors}


class TestRequiredFields:
    def test_valid_document_passes(self, acme_config, settings):
        result = validate_config(acme_config, settings)

        assert isinstance(result, Valid)
        assert result.config.client.name == "Acme HVAC"
        assert result.config.provider == "gmail"

    def test_all_missing_fields_reported(self, settings):
        """A config missing several required fields reports every one of them"""
        result = validate_config({"channels": {"email": {}}, "people": {"managers": []}}, settings)

        assert _fields(result) == {
            "client.name",
            "client.timezone",
            "channels.email.provider",
            "people.managers[0]",
        }

    def test_empty_document(self, settings):
        result = validate_config({}, settings)

        assert {"client.name", "client.timezone", "channels.email.provider", "people.managers[0]"} <= _fields(result)

    def test_non_object_rejected(self, settings):
        result = validate_config(["not", "a", "config"], settings)

        assert _fields(result) == {"config"}

    def test_blank_first_manager_name(self, acme_config, settings):
        acme_config["people"]["managers"] = [{"name": "  ", "email": "alex@acmehvac.com"}]

        assert _fields(validate_config(acme_config, settings)) == {"people.managers[0].name"}

    def test_second_manager_name_optional(self, acme_config, settings):
        acme_config["people"]["managers"].append({"email": "office@acmehvac.com"})

        result = validate_config(acme_config, settings)

        assert isinstance(result, Valid)
        assert [m.email for m in result.config.managers] == ["alex@acmehvac.com", "office@acmehvac.com"]

    def test_invalid_manager_email(self, acme_config, settings):
        acme_config["people"]["managers"].append({"name": "Jordan", "email": "jordan-at-acme"})

        assert _fields(validate_config(acme_config, settings)) == {"people.managers[1].email"}


class TestFieldChecks:
    def test_unknown_timezone(self, acme_config, settings):
        acme_config["client"]["timezone"] = "Mars/Olympus_Mons"

        result = validate_config(acme_config, settings)

        assert _fields(result) == {"client.timezone"}
        assert "Unknown timezone" in result.errors[0].message

    @pytest.mark.parametrize("timezone", ["A" * 300, "../../etc/passwd", "/usr/share/zoneinfo/UTC"])
    def test_unusable_timezone_is_a_field_error(self, acme_config, settings, timezone):
        acme_config["client"]["timezone"] = timezone

        assert _fields(validate_config(acme_config, settings)) == {"client.timezone"}

    @pytest.mark.parametrize("website", ["http://[acme", "https://", "x" * 2049])
    def test_unparseable_website(self, acme_config, settings, website):
        acme_config["client"]["website"] = website

        assert _fields(validate_config(acme_config, settings)) == {"client.website"}

    @pytest.mark.parametrize("website", ["acmehvac.com", "https://www.acmehvac.com/contact", ""])
    def test_websites_accepted(self, acme_config, settings, website):
        acme_config["client"]["website"] = website

        assert isinstance(validate_config(acme_config, settings), Valid)

    def test_provider_enum(self, acme_config, settings):
        acme_config["channels"]["email"]["provider"] = "yahoo"

        assert _fields(validate_config(acme_config, settings)) == {"channels.email.provider"}

    def test_o365_is_a_valid_provider(self, acme_config, settings):
        acme_config["channels"]["email"]["provider"] = "o365"

        result = validate_config(acme_config, settings)

        assert isinstance(result, Valid)
        assert result.config.provider == "o365"

    def test_wrong_types_in_client_profile(self, acme_config, settings):
        acme_config["client"]["phones"] = "555-0100"
        acme_config["client"]["hours"] = ["9-5"]
        acme_config["client"]["website"] = 42

        assert _fields(validate_config(acme_config, settings)) == {
            "client.phones",
            "client.hours",
            "client.website",
        }

    def test_blank_signature_becomes_default(self, acme_config, settings):
        acme_config["signature"] = "   "

        result = validate_config(acme_config, settings)

        assert result.config.signature == DEFAULT_SIGNATURE

    def test_signature_too_long(self, acme_config, settings):
        acme_config["signature"] = "x" * (SIGNATURE_MAX_LENGTH + 1)

        assert _fields(validate_config(acme_config, settings)) == {"signature"}

    def test_signature_locked_must_be_bool(self, acme_config, settings):
        acme_config["signatureLocked"] = "yes"

        assert _fields(validate_config(acme_config, settings)) == {"signatureLocked"}


class TestSupplierNormalization:
    def test_case_duplicates_collapse(self):
        """["Foo.com", "foo.com"] normalizes to ["foo.com"]"""
        errors: list = []

        assert normalize_suppliers(["Foo.com", "foo.com"], errors) == ["foo.com"]
        assert errors == []

    def test_at_prefix_and_whitespace_stripped(self):
        errors: list = []

        assert normalize_suppliers([" @Ferguson.com ", "johnstone.com", ""], errors) == [
            "ferguson.com",
            "johnstone.com",
        ]
        assert errors == []

    def test_invalid_domain_reported_by_index(self):
        errors: list = []

        result = normalize_suppliers(["ferguson.com", "not a domain", "localhost"], errors)

        assert result == ["ferguson.com"]
        assert [e.field for e in errors] == ["people.suppliers[1]", "people.suppliers[2]"]

    def test_not_a_list(self):
        errors: list = []

        assert normalize_suppliers("ferguson.com", errors) == []
        assert [e.field for e in errors] == ["people.suppliers"]

    def test_document_suppliers_normalized(self, acme_config, settings):
        result = validate_config(acme_config, settings)

        assert result.config.suppliers == ["ferguson.com", "johnstone.com"]


class TestLabelMapNormalization:
    def test_defaults_when_missing(self):
        label_map = normalize_label_map(None, [])

        assert label_map["SERVICE"] == ["Service"]
        assert set(label_map) == {"SERVICE", "SALES", "PARTS", "WARRANTY", "SUPPORT", "GENERAL"}

    def test_keys_uppercased_values_cleaned(self):
        errors: list = []

        label_map = normalize_label_map(
            {"service": "Repairs", "parts": ["  ", "Parts", "Parts", 7], "vip": ["VIP"]}, errors
        )

        assert errors == []
        assert label_map["SERVICE"] == ["Repairs"]
        assert label_map["PARTS"] == ["Parts", "7"]
        assert label_map["VIP"] == ["VIP"]
        assert label_map["SALES"] == ["Sales"]

    def test_invalid_value_type(self):
        errors: list = []

        normalize_label_map({"SALES": {"name": "Sales"}}, errors)

        assert [e.field for e in errors] == ["labelMap.SALES"]


class TestAILock:
    def test_client_ai_values_ignored(self, acme_config, settings):
        result = validate_config(acme_config, settings)

        assert result.config.ai == LockedAI.from_settings(settings.ai)
        assert result.config.to_document()["ai"]["maxTokens"] == settings.ai.max_tokens
        assert result.config.to_document()["ai"]["locked"] is True

    def test_server_settings_win(self, acme_config):
        settings = Settings(ai=AISettings(model="server-model", temperature=0.1, max_tokens=256))

        document = validate_config(acme_config, settings).config.to_document()

        assert document["ai"] == {"model": "server-model", "temperature": 0.1, "maxTokens": 256, "locked": True}

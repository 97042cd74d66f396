"""Tests for filling a selected workflow template with a client's config"""

from __future__ import annotations

import json

import pytest

from floworx.clients.models import StoredConfig
from floworx.clients.validation import validate_config
from floworx.config import DEFAULT_TEMPLATES_DIR
from floworx.mailbox.repository import MailboxMapping, MappingEntry
from floworx.workflows.industries import BusinessDescriptors
from floworx.workflows.personalize import (
    business_domains,
    build_system_message,
    personalize_workflow,
)
from floworx.workflows.selector import SelectedTemplate, TemplateSelector


@pytest.fixture
def stored(acme_config, settings):
    config = validate_config(acme_config, settings).config.to_document()
    return StoredConfig(client_id="acme", version=3, config=config)


@pytest.fixture
def mapping():
    return MailboxMapping(
        client_id="acme",
        provider="gmail",
        version=2,
        mapping=(
            MappingEntry("SERVICE", "Label_10", "Service"),
            MappingEntry("SALES", "Label_11", "Sales"),
        ),
        created_at="2026-01-01T00:00:00+00:00",
        updated_at="2026-01-02T00:00:00+00:00",
    )


@pytest.fixture
def hvac_template():
    return TemplateSelector(DEFAULT_TEMPLATES_DIR).select(BusinessDescriptors(industry="hvac"))


def _node(workflow, name):
    return next(node for node in workflow["nodes"] if node["name"] == name)


def test_company_placeholders_filled(hvac_template, stored, mapping):
    workflow = personalize_workflow(hvac_template, stored, mapping)

    assert workflow["name"] == "Acme HVAC - HVAC Email Automation"
    assert workflow["settings"]["timezone"] == "America/New_York"
    trigger = _node(workflow, "Gmail Trigger")
    assert trigger["credentials"]["gmailOAuth2"]["id"] == "client_acme_gmail"
    assert trigger["parameters"]["filters"]["q"] == "in:inbox -(from:(acmehvac.com))"
    assert workflow["staticData"]["supplierDomains"] == "ferguson.com OR johnstone.com"


def test_no_known_placeholders_left(hvac_template, stored, mapping):
    text = json.dumps(personalize_workflow(hvac_template, stored, mapping))

    assert "{{COMPANY_NAME}}" not in text
    assert "{{LABEL_" not in text
    assert "{{AI_" not in text
    # n8n expressions survive
    assert "{{ $json.subject }}" in text


def test_typed_values_for_whole_placeholders(hvac_template, stored, mapping, settings):
    workflow = personalize_workflow(hvac_template, stored, mapping)

    options = _node(workflow, "AI Master Classifier")["parameters"]["options"]
    assert options["temperature"] == settings.ai.temperature
    assert options["maxTokens"] == settings.ai.max_tokens
    assert workflow["staticData"]["configVersion"] == 3


def test_label_ids_from_mapping(hvac_template, stored, mapping):
    workflow = personalize_workflow(hvac_template, stored, mapping)

    assert _node(workflow, "Label Service")["parameters"]["labelIds"] == ["Label_10"]
    assert _node(workflow, "Label Sales")["parameters"]["labelIds"] == ["Label_11"]
    assert _node(workflow, "Label Parts")["parameters"]["labelIds"] == [""]


def test_meta_block(hvac_template, stored, mapping):
    meta = personalize_workflow(hvac_template, stored, mapping)["meta"]

    assert meta["clientId"] == "acme"
    assert meta["industry"] == "hvac"
    assert meta["templateSource"] == "industry"
    assert meta["templateVersion"] == "3.0.0"
    assert meta["configVersion"] == 3
    assert meta["mappingVersion"] == 2
    assert meta["unmappedCategories"] == ["PARTS", "WARRANTY", "SUPPORT", "GENERAL"]
    assert meta["managers"] == ["Alex Smith"]


def test_without_mapping(hvac_template, stored):
    meta = personalize_workflow(hvac_template, stored)["meta"]

    assert meta["mappingVersion"] is None
    assert len(meta["unmappedCategories"]) == 6


def test_template_not_mutated(hvac_template, stored, mapping):
    personalize_workflow(hvac_template, stored, mapping)

    assert hvac_template.document["name"] == "{{COMPANY_NAME}} - HVAC Email Automation"
    assert "meta" not in hvac_template.document


def test_unknown_placeholder_kept(stored):
    selected = SelectedTemplate(None, "baseline", "baseline", {"nodes": [], "note": "{{NOT_A_THING}} {{CLIENT_ID}}"})

    assert personalize_workflow(selected, stored)["note"] == "{{NOT_A_THING}} acme"


def test_business_domains():
    config = {
        "client": {"website": "https://www.acmehvac.com/contact"},
        "people": {"managers": [{"email": "alex@acmehvac.com"}, {"email": "ops@acme-mail.com"}]},
    }

    assert business_domains(config) == ["acmehvac.com", "acme-mail.com"]


def test_system_message_lists_categories():
    message = build_system_message("Acme HVAC", "hvac", {"SERVICE": ["Repairs"]})

    assert "Acme HVAC" in message
    assert "hvac services business" in message
    assert "- SERVICE: Repairs" in message
    assert "- GENERAL: General" in message
    assert "furnace" in message


def test_unparseable_stored_website_skipped():
    config = {
        "client": {"website": "http://[acme"},
        "people": {"managers": [{"email": "alex@acmehvac.com"}]},
    }

    assert business_domains(config) == ["acmehvac.com"]


def test_workflow_renders_for_unparseable_stored_website(hvac_template, stored):
    stored.config["client"]["website"] = "http://[acme"

    workflow = personalize_workflow(hvac_template, stored)

    assert workflow["meta"]["clientId"] == "acme"

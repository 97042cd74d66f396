"""
Fill a selected workflow template in with one client's configuration.

Placeholders are ``{{UPPER_SNAKE}}`` tokens anywhere in the document's
strings. n8n's own expressions (``{{ $json.subject }}``) are left alone. A
string that is exactly one placeholder takes the value's native type, so
``"{{AI_TEMPERATURE}}"`` becomes ``0.2``. Unknown placeholders stay as they are.
"""

from __future__ import annotations

import copy
import re
from datetime import UTC, datetime
from typing import Any

from floworx.clients.models import StoredConfig
from floworx.mailbox.repository import MailboxMapping
from floworx.mailbox.taxonomy import CATEGORY_KEYS
from floworx.utils.validators import website_host
from floworx.workflows.industries import get_industry
from floworx.workflows.selector import SelectedTemplate

PLACEHOLDER = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")


def _domain(value: str) -> str | None:
    value = value.strip().lower()
    if not value:
        return None
    if "@" in value:
        return value.rsplit("@", 1)[1] or None
    host = website_host(value)
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def business_domains(config: dict[str, Any]) -> list[str]:
    """The client's own domains: website host plus manager email domains."""
    candidates = [config.get("client", {}).get("website", "")]
    candidates += [m.get("email", "") for m in config.get("people", {}).get("managers", [])]

    domains: list[str] = []
    for candidate in candidates:
        domain = _domain(candidate or "")
        if domain and domain not in domains:
            domains.append(domain)
    return domains


def build_system_message(company: str, industry: str | None, label_map: dict[str, list[str]]) -> str:
    profile = get_industry(industry)
    kind = profile.display_name.lower() if profile else "service"
    lines = [
        f"You are the email triage assistant for {company or 'this business'}, a {kind} business.",
        "Classify each email into exactly one category:",
    ]
    for key in CATEGORY_KEYS:
        names = label_map.get(key) or [key.title()]
        lines.append(f"- {key}: {names[0]}")
    if profile and profile.business_terms:
        lines.append("Business vocabulary: " + ", ".join(profile.business_terms) + ".")
    lines.append("Reply with the category key only.")
    return "\n".join(lines)


def placeholder_values(
    stored: StoredConfig, mapping: MailboxMapping | None, industry: str | None
) -> dict[str, Any]:
    config = stored.config
    client = config.get("client", {})
    people = config.get("people", {})
    ai = config.get("ai", {})
    label_map = config.get("labelMap", {})
    label_ids = mapping.label_ids() if mapping else {}

    values: dict[str, Any] = {
        "COMPANY_NAME": client.get("name", ""),
        "CLIENT_ID": stored.client_id,
        "TIMEZONE": client.get("timezone", "UTC"),
        "BUSINESS_DOMAINS": " OR ".join(business_domains(config)),
        "SUPPLIER_DOMAINS": " OR ".join(people.get("suppliers", [])),
        "GMAIL_CREDENTIAL_ID": f"client_{stored.client_id}_gmail",
        "AI_SYSTEM_MESSAGE": build_system_message(client.get("name", ""), industry, label_map),
        "AI_MODEL": ai.get("model"),
        "AI_TEMPERATURE": ai.get("temperature"),
        "AI_MAX_TOKENS": ai.get("maxTokens"),
        "CONFIG_VERSION": stored.version,
    }
    for key in CATEGORY_KEYS:
        values[f"LABEL_{key}"] = label_ids.get(key, "")
    return values


def _substitute(node: Any, values: dict[str, Any]) -> Any:
    if isinstance(node, dict):
        return {key: _substitute(value, values) for key, value in node.items()}
    if isinstance(node, list):
        return [_substitute(item, values) for item in node]
    if not isinstance(node, str):
        return node

    whole = PLACEHOLDER.fullmatch(node)
    if whole and whole.group(1) in values:
        return values[whole.group(1)]

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        value = values[name]
        return "" if value is None else str(value)

    return PLACEHOLDER.sub(replace, node)


def personalize_workflow(
    selected: SelectedTemplate, stored: StoredConfig, mapping: MailboxMapping | None = None
) -> dict[str, Any]:
    """A filled-in deep copy of the selected template, plus a ``meta`` block."""
    values = placeholder_values(stored, mapping, selected.industry)
    workflow = _substitute(copy.deepcopy(selected.document), values)

    mapped = mapping.label_ids() if mapping else {}
    config = stored.config
    workflow["meta"] = {
        "clientId": stored.client_id,
        "companyName": config.get("client", {}).get("name", ""),
        "industry": selected.industry,
        "templateSource": selected.source,
        "templateName": selected.template_name,
        "templateVersion": workflow.get("versionId", "1.0.0"),
        "configVersion": stored.version,
        "mappingVersion": mapping.version if mapping else None,
        "unmappedCategories": [key for key in CATEGORY_KEYS if key not in mapped],
        "managers": [m.get("name", "") for m in config.get("people", {}).get("managers", [])][:5],
        "suppliers": list(config.get("people", {}).get("suppliers", []))[:10],
        "generatedAt": datetime.now(UTC).isoformat(),
    }
    return workflow

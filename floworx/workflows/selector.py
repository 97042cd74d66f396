"""
Industry Template Selector.

Fallback chain, first hit wins:
    1. ``<templates_dir>/<industry>.json`` for the detected industry
    2. ``<templates_dir>/enhanced.json`` (generic)
    3. the built-in minimal baseline below

A template is always returned. Parsed files are cached per selector; a
missing or unreadable file just moves the chain along.
"""

from __future__ import annotations

import copy
import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from floworx.observability.logging import get_logger
from floworx.observability.telemetry import counter
from floworx.workflows.industries import BusinessDescriptors, determine_industry

logger = get_logger(__name__)

ENHANCED_TEMPLATE = "enhanced"

SOURCE_INDUSTRY = "industry"
SOURCE_ENHANCED = "enhanced"
SOURCE_BASELINE = "baseline"


def baseline_template() -> dict[str, Any]:
    """Gmail trigger feeding one AI classifier; enough for a working workflow."""
    return {
        "name": "{{COMPANY_NAME}} - Email Automation",
        "nodes": [
            {
                "parameters": {
                    "pollTimes": {"item": [{"mode": "custom", "cronExpression": "=0 */2 * * * *"}]},
                    "simple": False,
                    "filters": {"q": "in:inbox -(from:({{BUSINESS_DOMAINS}}))"},
                    "options": {"downloadAttachments": True},
                },
                "type": "n8n-nodes-base.gmailTrigger",
                "typeVersion": 1.2,
                "position": [-5904, 3296],
                "id": "gmail-trigger-main",
                "name": "Gmail Trigger",
                "credentials": {
                    "gmailOAuth2": {"id": "{{GMAIL_CREDENTIAL_ID}}", "name": "{{COMPANY_NAME}} Gmail"}
                },
            },
            {
                "parameters": {
                    "promptType": "define",
                    "text": "=Subject: {{ $json.subject }}\nFrom: {{ $json.from }}\n\n{{ $json.body }}",
                    "options": {"systemMessage": "{{AI_SYSTEM_MESSAGE}}"},
                },
                "id": "ai-classifier-main",
                "name": "AI Master Classifier",
                "type": "@n8n/n8n-nodes-langchain.chatOpenAi",
                "position": [-4800, 3296],
                "typeVersion": 1.3,
            },
        ],
        "connections": {
            "Gmail Trigger": {"main": [[{"node": "AI Master Classifier", "type": "main", "index": 0}]]}
        },
        "active": False,
        "settings": {},
        "versionId": "1.0.0",
    }


@dataclass(frozen=True)
class SelectedTemplate:
    industry: str | None
    source: str
    template_name: str
    document: dict[str, Any]


class TemplateSelector:
    def __init__(self, templates_dir: Path):
        self.templates_dir = Path(templates_dir)
        self._cache: dict[str, dict[str, Any] | None] = {}
        self._lock = threading.Lock()

    def _load(self, name: str) -> dict[str, Any] | None:
        with self._lock:
            if name in self._cache:
                return self._cache[name]

            path = self.templates_dir / f"{name}.json"
            document: dict[str, Any] | None = None
            try:
                with path.open(encoding="utf-8") as f:
                    loaded = json.load(f)
            except FileNotFoundError:
                logger.info("No workflow template at %s", path)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Unreadable workflow template %s: %s", path, e)
                counter("workflow.template_corrupt")
            else:
                if isinstance(loaded, dict) and isinstance(loaded.get("nodes"), list):
                    document = loaded
                else:
                    logger.warning("Workflow template %s has no nodes list, ignoring", path)
                    counter("workflow.template_corrupt")

            self._cache[name] = document
            return document

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def select(self, descriptors: BusinessDescriptors) -> SelectedTemplate:
        """Pick a workflow template; the returned document is a private copy."""
        industry = determine_industry(descriptors)

        if industry is not None:
            document = self._load(industry)
            if document is not None:
                counter("workflow.template.industry")
                return SelectedTemplate(industry, SOURCE_INDUSTRY, industry, copy.deepcopy(document))
            logger.info("No template for industry %s, falling back to %s", industry, ENHANCED_TEMPLATE)

        document = self._load(ENHANCED_TEMPLATE)
        if document is not None:
            counter("workflow.template.enhanced")
            return SelectedTemplate(industry, SOURCE_ENHANCED, ENHANCED_TEMPLATE, copy.deepcopy(document))

        logger.warning("Enhanced template unavailable, using built-in baseline")
        counter("workflow.template.baseline")
        return SelectedTemplate(industry, SOURCE_BASELINE, SOURCE_BASELINE, baseline_template())

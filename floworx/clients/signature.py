"""
Signature guardrail.

With ``signatureLocked`` on, a custom signature may not contain any manager's
name as a whole word. Matching is case-insensitive, internal whitespace in a
name matches any whitespace run, and boundaries use Unicode ``\\w`` so that
"Al" does not match "Always" and "José" does not match "Josélito".
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from floworx.clients.models import ClientConfig, FieldError, Manager


def name_pattern(name: str) -> re.Pattern[str] | None:
    """Whole-word, case-insensitive pattern for a manager name; None for a blank name."""
    words = name.split()
    if not words:
        return None
    body = r"\s+".join(re.escape(word) for word in words)
    return re.compile(rf"(?<!\w){body}(?!\w)", re.IGNORECASE)


def find_manager_name_in_signature(signature: str, managers: Sequence[Manager]) -> Manager | None:
    """First manager, in list order, whose name appears in the signature."""
    for manager in managers:
        pattern = name_pattern(manager.name or "")
        if pattern is not None and pattern.search(signature):
            return manager
    return None


def check_signature(config: ClientConfig) -> FieldError | None:
    if not config.signature_locked or not config.has_custom_signature:
        return None

    offender = find_manager_name_in_signature(config.signature, config.managers)
    if offender is None:
        return None

    return FieldError(
        field="signature",
        message=(
            f"Custom signature must not contain manager name '{offender.name}' "
            "while the signature is locked"
        ),
    )

"""
Suggest how existing mailbox labels map onto the canonical categories.

Scoring per (label, category):
    1.0  normalized name equals the category key or label name
    0.8  label name contains it
    0.7  it contains the label name
    0.6  label name overlaps one of the category's examples
    else SequenceMatcher ratio when above 0.5, otherwise 0

>= 0.9 is an exact match, >= 0.6 a partial one. Only matches at or above
REUSE_THRESHOLD are proposed for reuse; everything else gets a create.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from difflib import SequenceMatcher
from typing import Any

from floworx.mailbox.discovery import MailboxLabel
from floworx.mailbox.taxonomy import (
    CANONICAL_CATEGORIES,
    CanonicalCategory,
    desired_labels,
    split_path,
)

EXACT_THRESHOLD = 0.9
PARTIAL_THRESHOLD = 0.6
REUSE_THRESHOLD = 0.7

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _normalize(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def score(label_name: str, category: CanonicalCategory, preferred_name: str | None = None) -> float:
    name = _normalize(label_name)
    if not name:
        return 0.0

    targets = {_normalize(category.key), _normalize(category.name)}
    if preferred_name:
        targets.add(_normalize(preferred_name))
    targets.discard("")

    if name in targets:
        return 1.0
    if any(t in name for t in targets):
        return 0.8
    if any(name in t for t in targets):
        return 0.7

    for example in category.examples:
        example = _normalize(example)
        if example and (example in name or name in example):
            return 0.6

    similarity = max(SequenceMatcher(None, name, t).ratio() for t in targets)
    return similarity if similarity > 0.5 else 0.0


def _best_category(
    label: MailboxLabel, preferred: Mapping[str, str]
) -> tuple[CanonicalCategory | None, float]:
    best, best_score = None, 0.0
    for category in CANONICAL_CATEGORIES:
        value = score(label.path[-1], category, preferred.get(category.key))
        if value > best_score:
            best, best_score = category, value
    return best, best_score


def suggest_mapping(
    labels: Sequence[MailboxLabel],
    label_map: Mapping[str, Sequence[str]] | None = None,
) -> dict[str, Any]:
    """Analyze discovered labels and propose reuse/create per canonical category."""
    preferred = {d.category: d.name for d in desired_labels(label_map) if d.root}

    exact: list[dict[str, Any]] = []
    partial: list[dict[str, Any]] = []
    unmatched: list[dict[str, Any]] = []
    # category key -> (score, label); shallow labels win ties
    chosen: dict[str, tuple[float, MailboxLabel]] = {}

    for label in sorted(labels, key=lambda lb: len(lb.path)):
        category, value = _best_category(label, preferred)
        if category is None or value < PARTIAL_THRESHOLD:
            unmatched.append({"existing": label.to_dict(), "reason": "no_suitable_match"})
            continue

        entry = {"existing": label.to_dict(), "canonicalKey": category.key, "confidence": round(value, 3)}
        (exact if value >= EXACT_THRESHOLD else partial).append(entry)

        if value >= REUSE_THRESHOLD and value > chosen.get(category.key, (0.0, None))[0]:
            chosen[category.key] = (value, label)

    reuse: list[dict[str, Any]] = []
    create: list[dict[str, Any]] = []
    mapping: dict[str, dict[str, Any]] = {}

    for category in CANONICAL_CATEGORIES:
        if category.key in chosen:
            value, label = chosen[category.key]
            action = "reuse" if value >= EXACT_THRESHOLD else "reuse_with_confirmation"
            reuse.append(
                {
                    "canonicalKey": category.key,
                    "existingId": label.id,
                    "existingName": label.name,
                    "confidence": round(value, 3),
                    "action": action,
                }
            )
            mapping[category.key] = {
                "canonicalKey": category.key,
                "existingId": label.id,
                "existingName": label.name,
                "color": category.color,
                "action": action,
                "confidence": round(value, 3),
            }
        else:
            item = {
                "canonicalKey": category.key,
                "path": list(split_path(preferred[category.key])),
                "color": category.color,
                "description": category.description,
                "priority": category.priority,
                "action": "create",
            }
            create.append(item)
            mapping[category.key] = item

    create.sort(key=lambda item: item["priority"])

    return {
        "analysis": {
            "existingCount": len(labels),
            "canonicalCount": len(CANONICAL_CATEGORIES),
            "matchedCount": len(exact) + len(partial),
            "unmatchedCount": len(unmatched),
        },
        "matches": {"exact": exact, "partial": partial, "unmatched": unmatched},
        "suggestions": {"reuse": reuse, "create": create},
        "suggestedMapping": mapping,
        "missingCount": len(create),
    }

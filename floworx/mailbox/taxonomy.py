"""
Canonical mailbox taxonomy.

Six fixed business categories. Each becomes a top-level Gmail label (name
overridable per client through ``labelMap``) and some carry fixed child
labels, e.g. ``Service/Emergency``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

LABEL_SEPARATOR = "/"


@dataclass(frozen=True)
class CanonicalCategory:
    key: str
    name: str
    color: str
    priority: int
    description: str
    examples: tuple[str, ...] = ()
    children: tuple[str, ...] = ()


CANONICAL_CATEGORIES: tuple[CanonicalCategory, ...] = (
    CanonicalCategory(
        key="SERVICE",
        name="Service",
        color="#4a86e8",
        priority=1,
        description="Repair requests, appointments and on-site visits",
        examples=("repair", "appointment", "service call", "maintenance", "urgent"),
        children=("Emergency", "Maintenance"),
    ),
    CanonicalCategory(
        key="SALES",
        name="Sales",
        color="#16a765",
        priority=2,
        description="Quotes, new installs and purchase enquiries",
        examples=("quote", "estimate", "leads", "pricing"),
    ),
    CanonicalCategory(
        key="PARTS",
        name="Parts",
        color="#ffad47",
        priority=3,
        description="Parts orders and supplier correspondence",
        examples=("order", "supplier", "inventory", "shipping"),
    ),
    CanonicalCategory(
        key="WARRANTY",
        name="Warranty",
        color="#a479e2",
        priority=4,
        description="Warranty claims and manufacturer follow-ups",
        examples=("claim", "guarantee", "rma"),
        children=("Claims",),
    ),
    CanonicalCategory(
        key="SUPPORT",
        name="Support",
        color="#43d692",
        priority=5,
        description="Customer questions after the sale",
        examples=("help", "question", "customer care", "troubleshooting"),
    ),
    CanonicalCategory(
        key="GENERAL",
        name="General",
        color="#999999",
        priority=6,
        description="Everything that does not fit another category",
        examples=("misc", "other", "inbox", "admin"),
    ),
)

CATEGORY_KEYS: tuple[str, ...] = tuple(c.key for c in CANONICAL_CATEGORIES)

_BY_KEY = {c.key: c for c in CANONICAL_CATEGORIES}


def get_category(key: str) -> CanonicalCategory | None:
    return _BY_KEY.get(key.upper())


def split_path(name: str) -> tuple[str, ...]:
    """``"Service / Emergency"`` -> ``("Service", "Emergency")``; empty segments dropped."""
    return tuple(part.strip() for part in name.split(LABEL_SEPARATOR) if part.strip())


def label_key(name: str | Sequence[str]) -> str:
    """Case-insensitive comparison key for a label name or path."""
    path = split_path(name) if isinstance(name, str) else tuple(p.strip() for p in name)
    return LABEL_SEPARATOR.join(path).lower()


@dataclass(frozen=True)
class DesiredLabel:
    """A label the canonical taxonomy wants to exist in the mailbox."""

    category: str
    path: tuple[str, ...]
    color: str | None = None
    # the category's own label, as opposed to one of its fixed children
    root: bool = True

    @property
    def name(self) -> str:
        return LABEL_SEPARATOR.join(self.path)

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def parent_name(self) -> str | None:
        if len(self.path) < 2:
            return None
        return LABEL_SEPARATOR.join(self.path[:-1])


def desired_labels(label_map: Mapping[str, Sequence[str]] | None = None) -> list[DesiredLabel]:
    """
    Expand the canonical taxonomy for one client.

    ``label_map[category][0]`` replaces the category's default top-level name.
    Children hang off whatever top-level name is in effect.
    """
    label_map = label_map or {}
    labels: list[DesiredLabel] = []

    for category in CANONICAL_CATEGORIES:
        override = next((str(v) for v in label_map.get(category.key) or () if str(v).strip()), None)
        top = split_path(override) if override else (category.name,)
        if not top:
            top = (category.name,)

        labels.append(DesiredLabel(category.key, top, category.color))
        for child in category.children:
            labels.append(DesiredLabel(category.key, (*top, child), category.color, root=False))

    return labels


def missing_labels(desired: Iterable[DesiredLabel], existing_names: Iterable[str]) -> list[DesiredLabel]:
    """
    Desired labels not present in the mailbox, parents first.

    Gmail label names are unique case-insensitively, so the comparison is too.
    """
    present = {label_key(name) for name in existing_names}
    missing = [label for label in desired if label_key(label.path) not in present]
    return sorted(missing, key=lambda label: label.depth)

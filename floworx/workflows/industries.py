"""
Industry detection from free-text business descriptors.

INDUSTRIES is ordered: when a descriptor matches keywords from several
industries, the first registered one wins. Keywords match on word boundaries,
so "ac" never matches "contact" and "spa" never matches "space".
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True)
class IndustryProfile:
    slug: str
    display_name: str
    keywords: tuple[str, ...]
    business_terms: tuple[str, ...] = ()


@dataclass(frozen=True)
class BusinessDescriptors:
    """What a client says about itself: name, stated industry and services."""

    business_name: str = ""
    industry: str = ""
    services: Sequence[str] = field(default_factory=tuple)

    def text(self) -> str:
        parts = [self.industry, self.business_name, *self.services]
        return " ".join(p for p in parts if p).lower()


INDUSTRIES: tuple[IndustryProfile, ...] = (
    IndustryProfile(
        "hvac",
        "HVAC Services",
        ("hvac", "heating", "cooling", "air conditioning", "furnace", "heat pump"),
        ("furnace", "air conditioning", "heat pump", "boiler", "ductwork", "thermostat"),
    ),
    IndustryProfile(
        "electrician",
        "Electrical Services",
        ("electrical", "electrician", "wiring", "panel", "outlet", "lighting"),
        ("breaker", "panel", "outlet", "wiring", "generator"),
    ),
    IndustryProfile(
        "plumber",
        "Plumbing Services",
        ("plumbing", "plumber", "pipe", "drain", "water heater", "sewer"),
        ("pipe", "leak", "drain", "toilet", "faucet", "water heater", "sewer"),
    ),
    IndustryProfile("drywall", "Drywall Services", ("drywall", "ceiling tile", "sheetrock", "gypsum", "taping", "mudding")),
    IndustryProfile("carpenter", "Carpentry Services", ("carpenter", "carpentry", "framing", "trim", "cabinet", "millwork")),
    IndustryProfile("welder", "Welding & Fabrication", ("welding", "welder", "fabrication", "structural")),
    IndustryProfile(
        "roofer",
        "Roofing Services",
        ("roofing", "roofer", "shingles", "roof repair", "gutters", "roof replacement"),
        ("shingles", "flashing", "gutters", "leak", "inspection"),
    ),
    IndustryProfile("painter", "Painting Services", ("painting", "painter", "interior paint", "exterior paint", "staining")),
    IndustryProfile("insulation", "Insulation Services", ("insulation", "blown in", "spray foam", "energy efficiency", "attic")),
    IndustryProfile("mason", "Masonry Services", ("masonry", "mason", "brick", "stone", "concrete", "chimney")),
    IndustryProfile("pipelayer", "Pipelaying & Utilities", ("pipelayer", "sewer line", "water main", "excavation", "utilities")),
    IndustryProfile("locksmith", "Locksmith Services", ("locksmith", "locks", "keys", "lockout", "safe")),
    IndustryProfile(
        "hot-tub-spa",
        "Hot Tub & Spa Services",
        ("hot tub", "hot tubs", "spa", "spas", "jacuzzi", "whirlpool", "swim spa"),
        ("hot tub", "spa", "jets", "heater", "pump", "filter", "chlorine", "bromine", "cover", "ozone"),
    ),
    IndustryProfile(
        "landscaping",
        "Landscaping Services",
        ("landscaping", "landscaper", "landscape", "lawn", "irrigation", "garden"),
        ("lawn", "tree", "garden", "irrigation", "mulch", "hardscape"),
    ),
)

_BY_SLUG = {profile.slug: profile for profile in INDUSTRIES}


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(word) for word in keyword.lower().split())
    return re.compile(rf"(?<![a-z0-9]){body}(?![a-z0-9])")


_PATTERNS: tuple[tuple[IndustryProfile, tuple[re.Pattern[str], ...]], ...] = tuple(
    (profile, tuple(_keyword_pattern(k) for k in profile.keywords)) for profile in INDUSTRIES
)


def get_industry(slug: str | None) -> IndustryProfile | None:
    return _BY_SLUG.get(slug) if slug else None


def determine_industry(descriptors: BusinessDescriptors) -> str | None:
    """Slug of the first registered industry with a matching keyword, or None."""
    text = descriptors.text()
    if not text:
        return None

    for profile, patterns in _PATTERNS:
        if any(pattern.search(text) for pattern in patterns):
            return profile.slug
    return None

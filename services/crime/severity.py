"""
Severity model: severity weights and the lookup tables that translate
external crime taxonomies into our own categories and severities.

New external sources register a table in ``EXTERNAL_TAXONOMIES``; no new
branching is needed.
"""

from typing import Dict, Optional

from services.crime.types import Category, Severity

DEFAULT_SEVERITY = Severity.MEDIUM

SEVERITY_WEIGHTS: Dict[str, float] = {
    Severity.LOW.value: 0.25,
    Severity.MEDIUM.value: 0.5,
    Severity.HIGH.value: 0.75,
    Severity.CRITICAL.value: 1.0,
}
UNKNOWN_SEVERITY_WEIGHT = 0.25

# data.police.uk street-level crime categories
UK_POLICE_CATEGORIES: Dict[str, Category] = {
    "anti-social-behaviour": Category.HARASSMENT,
    "burglary": Category.THEFT,
    "criminal-damage-arson": Category.VANDALISM,
    "drugs": Category.OTHER,
    "robbery": Category.ROBBERY,
    "theft-from-the-person": Category.THEFT,
    "vehicle-crime": Category.THEFT,
    "violent-crime": Category.ASSAULT,
    "public-order": Category.HARASSMENT,
}

UK_POLICE_SEVERITIES: Dict[str, Severity] = {
    "robbery": Severity.HIGH,
    "violent-crime": Severity.HIGH,
    "burglary": Severity.MEDIUM,
    "theft-from-the-person": Severity.MEDIUM,
    "vehicle-crime": Severity.MEDIUM,
    "criminal-damage-arson": Severity.LOW,
    "anti-social-behaviour": Severity.LOW,
    "drugs": Severity.MEDIUM,
    "public-order": Severity.LOW,
}

# source name -> (category table, severity table)
EXTERNAL_TAXONOMIES = {
    "uk_police": (UK_POLICE_CATEGORIES, UK_POLICE_SEVERITIES),
}


def severity_weight(severity: Optional[str]) -> float:
    """Numeric weight of a severity level; unknown or missing levels weigh 0.25."""
    if isinstance(severity, Severity):
        severity = severity.value
    return SEVERITY_WEIGHTS.get(severity, UNKNOWN_SEVERITY_WEIGHT)


def normalize_severity(severity: Optional[str]) -> Severity:
    """Coerce raw source data to a severity, defaulting to medium."""
    try:
        return Severity(severity)
    except ValueError:
        return DEFAULT_SEVERITY


def map_external_category(key: str, source: str = "uk_police") -> Category:
    categories, _ = EXTERNAL_TAXONOMIES[source]
    return categories.get(key, Category.OTHER)


def map_external_severity(key: str, source: str = "uk_police") -> Severity:
    _, severities = EXTERNAL_TAXONOMIES[source]
    return severities.get(key, Severity.LOW)

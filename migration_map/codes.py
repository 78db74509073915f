"""
Region code normalization and schema-tolerant property lookup.

The polygon dataset, the statistics dataset and the flow dataset are authored
independently, so the same country can show up under different keys
(Eurostat uses ``EL`` for Greece and ``UK`` for the United Kingdom, ISO 3166
uses ``GR`` and ``GB``) and the code itself can live under several property
names. Everything that joins the three datasets goes through this module.
"""

from typing import Any, Dict, Mapping, Optional, Sequence

from loguru import logger

# Eurostat -> ISO 3166-1 alpha-2
ALIASES: Dict[str, str] = {
    "EL": "GR",
    "UK": "GB",
}

# Ordered candidate property names, first present wins
REGION_CODE_KEYS = ("ISO2", "CNTR_ID", "ISO_A2", "iso2", "cntr_id", "iso_a2")
REGION_NAME_KEYS = ("NAME_EN", "name", "NAME", "CNTR_NAME")

UNKNOWN_REGION_NAME = "Unknown"


def _clean(raw_code: Any) -> str:
    if raw_code is None:
        return ""
    return str(raw_code).strip().upper()


def _check_idempotent(table: Mapping[str, str]) -> None:
    chained = sorted(target for target in table.values() if target in table)
    if chained:
        raise ValueError(f"Alias targets must be canonical codes, found chained aliases: {chained}")


_check_idempotent(ALIASES)


def build_alias_table(extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Merge configured aliases onto the static table.

    Args:
        extra: Additional alias -> canonical code pairs (any case)

    Returns:
        New alias table; the static table is left untouched

    Raises:
        ValueError: If an alias target is itself an alias
    """
    table = dict(ALIASES)
    for alias, target in (extra or {}).items():
        alias_code, target_code = _clean(alias), _clean(target)
        if not alias_code or not target_code or alias_code == target_code:
            continue
        table[alias_code] = target_code
    _check_idempotent(table)
    return table


class CodeNormalizer:
    """Canonicalizes region codes against an alias table."""

    def __init__(self, aliases: Optional[Mapping[str, str]] = None):
        self.aliases: Dict[str, str] = dict(ALIASES) if aliases is None else dict(aliases)
        _check_idempotent(self.aliases)

    def __call__(self, raw_code: Any) -> str:
        return self.normalize(raw_code)

    def normalize(self, raw_code: Any) -> str:
        code = _clean(raw_code)
        return self.aliases.get(code, code)


_default_normalizer = CodeNormalizer()


def normalize(raw_code: Any) -> str:
    """Normalize a region code with the static alias table."""
    return _default_normalizer.normalize(raw_code)


def properties_of(feature: Mapping[str, Any]) -> Mapping[str, Any]:
    """Property bag of a GeoJSON feature; empty when missing or not an object."""
    properties = feature.get("properties")
    return properties if isinstance(properties, Mapping) else {}


def first_present(properties: Optional[Mapping[str, Any]], keys: Sequence[str]) -> Any:
    """
    Return the value of the first candidate key that is present and non-empty.

    Args:
        properties: Property bag (may be None)
        keys: Candidate key names in priority order

    Returns:
        The first usable value, or None
    """
    if not isinstance(properties, Mapping):
        return None
    for key in keys:
        value = properties.get(key)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def region_code_of(feature: Mapping[str, Any]) -> Optional[str]:
    """Raw (un-normalized) region code of a GeoJSON feature, falling back to its id."""
    value = first_present(properties_of(feature), REGION_CODE_KEYS)
    if value is None:
        value = feature.get("id")
    if value is None or not str(value).strip():
        logger.trace(f"No region code found in feature properties: {feature.get('properties')}")
        return None
    return str(value)


def region_name_of(properties: Optional[Mapping[str, Any]]) -> str:
    value = first_present(properties, REGION_NAME_KEYS)
    return str(value) if value is not None else UNKNOWN_REGION_NAME

"""
latam_energy.registry — Country identity lookups.

The registry is built once from constants.COUNTRY_TABLE and never
mutated. Canonical country names are the primary key everywhere
downstream; codes only appear in raw source documents.
"""

from __future__ import annotations

from dataclasses import dataclass

from latam_energy.constants import COUNTRY_TABLE, LEGACY_CODE_ALIASES


@dataclass(frozen=True, slots=True)
class Country:
    """A country of the study region."""

    name: str
    code: str
    latlng: tuple[float, float]

    def to_dict(self) -> dict:
        return {"name": self.name, "code": self.code, "latlng": list(self.latlng)}


COUNTRIES: tuple[Country, ...] = tuple(
    Country(name=name, code=code, latlng=(lat, lng))
    for name, code, lat, lng in COUNTRY_TABLE
)

CODE_TO_NAME: dict[str, str] = {c.code: c.name for c in COUNTRIES}
COUNTRY_NAMES: frozenset[str] = frozenset(CODE_TO_NAME.values())

_BY_NAME: dict[str, Country] = {c.name: c for c in COUNTRIES}
_BY_CODE: dict[str, Country] = {c.code: c for c in COUNTRIES}


def get_country_by_name(name: str) -> Country | None:
    return _BY_NAME.get(name)


def get_country_by_code(code: str) -> Country | None:
    return _BY_CODE.get(code)


def standard_code(code: str) -> str:
    """Map a legacy data-file code to its standard code; others pass through."""
    return LEGACY_CODE_ALIASES.get(code, code)


def resolve_code(code: str) -> str | None:
    """Resolve a (possibly legacy) country code to its canonical name.

    Returns None when the code is not in the registry.
    """
    return CODE_TO_NAME.get(standard_code(code))

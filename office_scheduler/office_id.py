"""
Office Identifier Normalizer.

Canonical office ids look like ``<Floor>-<Unit>``:
- Floor A units are lowercase letters (``A-a`` .. ``A-z``).
- Floors B and C units are positive numbers (``B-1``, ``C-12``).

Everything that compares or stores office ids goes through
``standardize_office_id`` first.
"""

import re
from dataclasses import dataclass
from typing import Optional

from . import config
from .errors import ConfigurationError

FLOORS = ("A", "B", "C")

_DASHED = re.compile(r"^([A-Z])-([A-Z]|\d+)$", re.ASCII)
_COMPACT = re.compile(r"^([A-Z])([A-Z]|\d+)$", re.ASCII)
_CANONICAL_A = re.compile(r"^A-[a-z]$", re.ASCII)
_CANONICAL_BC = re.compile(r"^[BC]-[1-9]\d*$", re.ASCII)


@dataclass(frozen=True)
class OfficeLocation:
    """Floor/unit components of a canonical office id."""
    floor: str
    unit: str


def standardize_office_id(raw: Optional[str], default: Optional[str] = None) -> str:
    """
    Normalize a free-form office identifier (``b1``, ``B-1``, ``b-A``).

    Total and idempotent: unparseable input, an unknown floor, or a unit that
    cannot be expressed on its floor all yield ``default`` (the configured
    default office when not given).
    """
    fallback = default if default is not None else config.DEFAULT_OFFICE_ID
    if not raw:
        return fallback

    cleaned = raw.strip().upper()
    parts = _split_floor_unit(cleaned)
    if parts is None:
        return fallback

    floor, unit = parts
    if floor not in FLOORS:
        return fallback

    if floor == "A":
        if unit.isdigit():
            number = int(unit)
            if not 1 <= number <= 9:
                return fallback
            unit = chr(ord("a") + number - 1)
        return f"A-{unit.lower()}"

    # Floors B / C carry numeric units
    if unit.isalpha():
        return f"{floor}-{ord(unit) - ord('A') + 1}"
    number = int(unit)
    if number < 1:
        return fallback
    return f"{floor}-{number}"


def _split_floor_unit(cleaned: str) -> Optional[tuple]:
    match = _DASHED.match(cleaned)
    if match:
        return match.group(1), match.group(2)

    compact = re.sub(r"[^A-Z0-9]", "", cleaned)
    match = _COMPACT.match(compact)
    if match:
        return match.group(1), match.group(2)

    # Last resort: first two letters are floor and unit ("Office B, room A")
    letters = re.sub(r"[^A-Z]", "", cleaned)
    if len(letters) >= 2:
        return letters[0], letters[1]
    return None


def is_valid_office_id(value: str) -> bool:
    """True only for ids already in canonical form."""
    if not isinstance(value, str):
        return False
    return bool(_CANONICAL_A.match(value) or _CANONICAL_BC.match(value))


def parse_office_id(value: str) -> OfficeLocation:
    floor, _, unit = standardize_office_id(value).partition("-")
    return OfficeLocation(floor=floor, unit=unit)


def format_office_id(value: str) -> str:
    """Display form, e.g. ``Floor A, Unit C``."""
    location = parse_office_id(value)
    return f"Floor {location.floor}, Unit {location.unit.upper()}"


def require_canonical(value: str, setting: str) -> str:
    """Used for configured defaults, which must already be canonical."""
    if not is_valid_office_id(value):
        raise ConfigurationError(f"{setting} must be a canonical office id, got {value!r}")
    return value

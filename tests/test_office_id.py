import string

import pytest

from office_scheduler import config
from office_scheduler.errors import ConfigurationError
from office_scheduler.office_id import (
    format_office_id,
    is_valid_office_id,
    parse_office_id,
    require_canonical,
    standardize_office_id,
)


@pytest.mark.parametrize("raw, expected", [
    ("b1", "B-1"),
    ("B-1", "B-1"),
    ("b-A", "B-1"),
    ("c-c", "C-3"),
    ("c12", "C-12"),
    (" C-07 ", "C-7"),
    ("a3", "A-c"),
    ("A-B", "A-b"),
    ("a-9", "A-i"),
    ("A a", "A-a"),
])
def test_standardize_known_forms(raw, expected):
    assert standardize_office_id(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "   ", "Z-1", "D4", "A-0", "A-10", "B-0", "?"])
def test_unparseable_or_invalid_floor_uses_default(raw):
    assert standardize_office_id(raw) == config.DEFAULT_OFFICE_ID
    assert standardize_office_id(raw, default="A-a") == "A-a"


def test_normalize_is_idempotent_over_ascii_samples():
    samples = ["", "b1", "a3", "C-z", "office 12", "B--2", "x", "AA", "c99", "A-Z", "b-0"]
    samples += list(string.printable)
    samples += [a + b for a in "abcABC-1 " for b in "az09-"]
    for raw in samples:
        once = standardize_office_id(raw)
        assert standardize_office_id(once) == once, raw
        assert is_valid_office_id(once), raw


def test_is_valid_office_id():
    assert is_valid_office_id("A-a")
    assert is_valid_office_id("C-12")
    assert not is_valid_office_id("a-a")
    assert not is_valid_office_id("B-a")
    assert not is_valid_office_id("B-01")


def test_parse_and_format():
    location = parse_office_id("b2")
    assert (location.floor, location.unit) == ("B", "2")
    assert format_office_id("a3") == "Floor A, Unit C"


def test_require_canonical_rejects_raw_default():
    assert require_canonical("B-1", "default") == "B-1"
    with pytest.raises(ConfigurationError):
        require_canonical("b1", "default")

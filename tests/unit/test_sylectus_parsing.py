from datetime import datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.loadboards.extraction.dates import parse_sylectus_datetime
from src.loadboards.extraction.locations import parse_location

NOW = datetime(2025, 8, 1, 12, 30)


@pytest.mark.parametrize(
    "token, expected",
    [
        ("08/04/2025 14:00", "2025-08-04T14:00:00"),
        ("8/4/2025 9:05", "2025-08-04T09:05:00"),
        ("08/04/2025", "2025-08-04T00:00:00"),
        ("ASAP", NOW.isoformat()),
        ("asap", NOW.isoformat()),
        ("Direct", NOW.isoformat()),
        ("DIRECT DRIVE", NOW.isoformat()),
        ("2025-08-04T14:00:00", "2025-08-04T14:00:00"),
        ("", ""),
        ("   ", ""),
        (None, ""),
        ("TBD", "TBD"),
        ("13/45/2025 10:00", "13/45/2025 10:00"),
    ],
)
def test_parse_sylectus_datetime(token, expected):
    assert parse_sylectus_datetime(token, now=NOW) == expected


def test_asap_defaults_to_current_time():
    before = datetime.now()
    value = datetime.fromisoformat(parse_sylectus_datetime("ASAP"))
    assert value >= before.replace(microsecond=0)


@pytest.mark.parametrize(
    "text, city, state, zip_code",
    [
        ("Chicago, IL 60601", "Chicago", "IL", "60601"),
        ("Dallas, TX", "Dallas", "TX", None),
        ("  St.   Louis ,  mo 63101 ", "St. Louis", "MO", "63101"),
        ("Springfield", "Springfield", "", None),
        ("Reno, Nevada", "Reno", "", None),
    ],
)
def test_parse_location(text, city, state, zip_code):
    loc = parse_location(text)
    assert loc.city == city
    assert loc.state == state
    assert loc.zip_code == zip_code
    assert loc.full_address == " ".join(text.split())


def test_location_wire_omits_missing_zip():
    wire = parse_location("Dallas, TX").model_dump(by_alias=True, exclude_none=True)
    assert wire == {"city": "Dallas", "state": "TX", "fullAddress": "Dallas, TX"}


def test_empty_location():
    loc = parse_location("")
    assert loc.city == "" and loc.state == "" and loc.zip_code is None


@given(
    st.from_regex(r"[A-Z][a-z]{2,10}", fullmatch=True),
    st.sampled_from(["IL", "TX", "CA", "NY", "GA"]),
    st.from_regex(r"[0-9]{5}", fullmatch=True),
)
def test_city_state_zip_round_trip(city, state, zip_code):
    loc = parse_location(f"{city}, {state} {zip_code}")
    assert (loc.city, loc.state, loc.zip_code) == (city, state, zip_code)

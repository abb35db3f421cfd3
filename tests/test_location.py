import pytest

from job_ingest.agents.location import (
    COUNTRY_TABLES,
    country_display_name,
    filter_jobs_by_country,
    is_in_country,
    location_stats,
    resolve_country_code,
)
from tests.factories import make_job


def test_no_location_signal_is_rejected():
    """All-empty location data never counts as in-country"""
    for code in COUNTRY_TABLES:
        assert not is_in_country(code, "")
        assert not is_in_country(code, None, None, None, None)


@pytest.mark.parametrize(
    "target,other_country",
    [("in", "United States"), ("us", "India"), ("gb", "Germany"), ("ca", "US"), ("au", "New Zealand")],
)
def test_explicit_other_country_short_circuits(target, other_country):
    """An explicit non-matching country rejects even when the city matches"""
    city = COUNTRY_TABLES[target].cities[0].title()
    assert not is_in_country(target, f"{city}", city=city, country=other_country)


def test_explicit_country_variants_match():
    assert is_in_country("in", "Pune", city="Pune", country="India")
    assert is_in_country("in", "Pune", city="Pune", country="IN")
    assert is_in_country("in", "Pune", city="Pune", country="in,")
    assert is_in_country("in", "Pune", city="Pune", country="IN-MH")
    assert is_in_country("us", "Austin", city="Austin", country="USA")
    assert is_in_country("gb", "Leeds", city="Leeds", country="uk")
    assert is_in_country("de", "Berlin", city="Berlin", country=" Deutschland ")


def test_us_examples():
    assert is_in_country("us", "New York, NY, USA")
    assert not is_in_country("us", "Berlin, Germany")
    assert not is_in_country("us", "Mumbai, India")
    assert not is_in_country("us", "Paris, France")


def test_us_state_reference_rejected_for_other_targets():
    """US city names colliding with other countries' cities are excluded"""
    assert not is_in_country("gb", "Birmingham, Alabama")
    assert not is_in_country("au", "Perth, Texas 76093")
    assert is_in_country("gb", "Birmingham, West Midlands")


def test_subdivision_codes_match_as_tokens():
    assert is_in_country("ca", "Somewhere, ON")
    assert is_in_country("in", "Office IN-KA")
    # "on" inside a word is not Ontario
    assert not is_in_country("ca", "Boston Road")


def test_city_match_uses_word_boundaries():
    assert is_in_country("in", "Greater Bengaluru Area")
    assert is_in_country("in", "Hybrid - Noida")
    assert not is_in_country("in", "Punekar Street")


def test_country_keyword_suffix_and_standalone():
    assert is_in_country("in", "Remote, India")
    assert is_in_country("in", "India")
    assert is_in_country("gb", "Anywhere, United Kingdom")
    assert not is_in_country("in", "Indiana Jones Museum")
    # keyword inside a longer segment is not the country
    assert not is_in_country("gb", "Kyiv, Ukraine")
    assert not is_in_country("in", "Carmel, Indianapolis")
    assert not is_in_country("us", "Remote, Americas")
    assert is_in_country("gb", "Somewhere, UK, Europe")


def test_unknown_target_country_rejects():
    assert not is_in_country("zz", "Somewhere, Zedland")


def test_target_country_alias_is_resolved():
    assert is_in_country("uk", "London, United Kingdom", city="London", country="United Kingdom")
    assert is_in_country("UK", "Leeds, UK")
    assert not is_in_country("uk", "Paris, France")


def test_resolve_country_code():
    assert resolve_country_code("India") == "in"
    assert resolve_country_code("United Kingdom") == "gb"
    assert resolve_country_code("UK") == "gb"
    assert resolve_country_code("DE") == "de"
    assert resolve_country_code("Atlantis") == "us"
    assert country_display_name("sg") == "Singapore"


def test_filter_and_stats():
    jobs = [
        make_job(location="Pune, MH, India", city="Pune", state="MH", country="India"),
        make_job(location="Austin, TX, US", city="Austin", state="TX", country="US"),
        make_job(location="Remote", city=None, state=None, country=None),
    ]

    kept = filter_jobs_by_country(jobs, "in")

    assert [job.city for job in kept] == ["Pune"]
    assert location_stats(jobs) == {"India": 1, "US": 1, "Unknown": 1}

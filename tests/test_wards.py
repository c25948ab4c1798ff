import pytest

from voterlookup.config import WardConfig, WardSet
from voterlookup.exceptions import ValidationError
from voterlookup.wards import find_ward_set, resolve_ward_set, validate_ward, ward_set_for_host


@pytest.fixture
def wards():
    return WardConfig(
        sets=[
            WardSet("165", ("165", "ward165", "ward-165"), ["165"]),
            WardSet("multiple", ("multiple", "all", "voters", "multi"), ["140", "141", "146"]),
        ],
        configured_ward="140",
    )


def test_find_by_name_or_alias(wards):
    assert find_ward_set("Ward-165", wards).name == "165"
    assert find_ward_set("ALL", wards).name == "multiple"
    assert find_ward_set("999", wards) is None


def test_host_lookup_ignores_port(wards):
    assert ward_set_for_host("ward165.example.org:3000", wards).name == "165"
    assert ward_set_for_host("localhost:3000", wards) is None


def test_identifier_wins_over_host(wards):
    assert resolve_ward_set("multi", "ward165.example.org", wards) == ["140", "141", "146"]


def test_falls_back_to_host_then_configured_ward(wards):
    assert resolve_ward_set("nope", "ward165.example.org", wards) == ["165"]
    assert resolve_ward_set(None, None, wards) == ["140"]


def test_configured_ward_may_list_several():
    config = WardConfig(sets=[], configured_ward="140, 141,,146")
    assert resolve_ward_set(None, "localhost", config) == ["140", "141", "146"]


def test_all_wards_is_ordered_union(wards):
    assert wards.all_wards() == ["165", "140", "141", "146"]


def test_validate_ward_returns_int(wards):
    assert validate_ward(" 146 ", wards.all_wards()) == 146
    assert validate_ward(165, wards.all_wards()) == 165


@pytest.mark.parametrize("value", [None, "", "abc", "999", "14.5"])
def test_validate_ward_rejects(value, wards):
    with pytest.raises(ValidationError):
        validate_ward(value, wards.all_wards())

from datetime import date

import pytest

from aero_common.normalize import (
    NormalizedRecord,
    aggregate_tags,
    cell_text,
    normalize_record,
    normalize_rows,
    split_multi,
    to_id,
    to_num,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("48,265", 48.265),
        (" 11.5 ", 11.5),
        (48.1, 48.1),
        (7, 7.0),
        ("-3", -3.0),
    ],
)
def test_to_num_parses_numbers_and_decimal_comma(value, expected):
    assert to_num(value) == pytest.approx(expected)


@pytest.mark.parametrize("value", ["", "   ", None, "abc", True, float("nan"), float("inf"), "inf", "1,2,3", "48_1", "1_000", "nan"])
def test_to_num_rejects_empty_and_non_finite(value):
    assert to_num(value) is None


def test_split_multi_shared_delimiters():
    assert split_multi("Aviation, Space; Space") == ["Aviation", "Space", "Space"]
    assert split_multi("A / B | C\nD") == ["A", "B", "C", "D"]
    assert split_multi("Hardware|Software") == ["Hardware|Software"]
    assert split_multi(" ,; ") == []
    assert split_multi(None) == []


def test_cell_text_renders_spreadsheet_values():
    assert cell_text(2024.0) == "2024"
    assert cell_text(48.1) == "48.1"
    assert cell_text(date(2024, 5, 1)) == "2024-05-01"
    assert cell_text(None) == ""


def test_to_id_is_a_stable_slug():
    assert to_id("Sky-Tech GmbH!!") == "sky-tech-gmbh"
    assert to_id("  Luft_und Raumfahrt  Süd ") == "luft-und-raumfahrt-süd"
    assert to_id("!!!") == ""


def test_identifier_does_not_depend_on_row_index():
    first = normalize_record({"company_name": "Sky-Tech GmbH!!"}, 0)
    later = normalize_record({"company_name": "Sky-Tech GmbH!!"}, 5)
    assert first.id == later.id == "sky-tech-gmbh"


def test_name_and_id_fallbacks():
    unnamed = normalize_record({"domain": "Space"}, 4)
    assert unnamed.name == "Company 5"
    assert unnamed.id == "company-5"

    symbols = normalize_record({"company_name": "???"}, 3)
    assert symbols.name == "???"
    assert symbols.id == "id-3"


def test_stakeholders_dedupe_in_source_order():
    record = normalize_record({"company_name": "X", "stakeholder": "Space; Aviation, Space"}, 0)
    assert record.stakeholders == ("Space", "Aviation")

    record = normalize_record({"company_name": "X", "stakeholder": "Aviation, Space; Space"}, 0)
    assert record.stakeholders == ("Aviation", "Space")


def test_tags_union_sorted_with_munich_aerospace_affiliation():
    row = {
        "domain": "Space, Aviation",
        "type_of_stakeholder": "SME",
        "support_services": "Space",
        "federal_states": "Bavaria",
        "munich_aerospace": " Member ",
        "comments": "not a tag source",
    }
    assert aggregate_tags(row) == ("Aviation", "Bavaria", "Munich Aerospace: Member", "SME", "Space")


def test_tags_are_case_sensitive():
    assert aggregate_tags({"domain": "space", "hardware_software": "Space"}) == ("Space", "space")


def test_normalize_record_fields():
    row = {
        "company_name": "  Acme Space ",
        "company_address": "Munich",
        "company_web": "https://acme.example",
        "description": "   ",
        "latitude": "48,1",
        "longitude": 11.5,
        "domain": "Space",
        "hardware_software": "Hardware / Software",
        "manufacturers_developers": "Satellites; Satellites",
        "research_education": None,
    }
    record = normalize_record(row, 0)

    assert record.name == "Acme Space"
    assert record.id == "acme-space"
    assert record.address == "Munich"
    assert record.website == "https://acme.example"
    assert record.description is None
    assert record.lat == pytest.approx(48.1)
    assert record.lng == pytest.approx(11.5)
    assert record.has_coordinates
    assert record.cat_hw_sw == ("Hardware", "Software")
    assert record.cat_manufacturers == ("Satellites", "Satellites")
    assert record.cat_research == ()


def test_bad_cells_degrade_instead_of_failing():
    record = normalize_record({"company_name": "Acme", "latitude": "north", "longitude": float("nan")}, 0)
    assert record.lat is None
    assert record.lng is None
    assert not record.has_coordinates


def test_normalize_rows_skips_blank_rows_and_reindexes():
    rows = [
        {"company_name": "  ", "domain": None},
        {"domain": "Space"},
        {"company_name": "Acme"},
    ]
    records = normalize_rows(rows)
    assert [r.name for r in records] == ["Company 1", "Acme"]


def test_record_dict_conversion_keeps_lists():
    record = normalize_record({"company_name": "Acme", "domain": "Space", "latitude": 1}, 0)
    data = record.to_dict()
    assert data["tags"] == ["Space"]
    assert NormalizedRecord.from_dict({**data, "unknown": "ignored"}) == record

    with pytest.raises(ValueError):
        NormalizedRecord.from_dict({"id": "x"})

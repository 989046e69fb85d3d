from Back_End.normalize import (
    all_doctors,
    build_state_index,
    normalize_doctor,
    parse_count,
    rank_by_cancer_count,
    resolve_state,
    title_case,
)

from conftest import make_record


def test_parse_count_reads_leading_integer():
    assert parse_count("12") == 12
    assert parse_count("12abc") == 12
    assert parse_count("3.7") == 3
    assert parse_count(" 5") == 5
    assert parse_count(41) == 41
    assert parse_count(9.9) == 9


def test_parse_count_defaults_to_zero():
    for value in (None, "", "n/a", "abc", "  ", True):
        assert parse_count(value) == 0, f"expected 0 for {value!r}"


def test_parse_count_ignores_non_ascii_digits():
    """Arabic-Indic and full-width digits are not numbers to parseInt."""
    assert parse_count("١٢") == 0
    assert parse_count("７") == 0
    assert parse_count("4١") == 4


def test_title_case_each_word():
    assert title_case("NEW YORK") == "New York"
    assert title_case("district of columbia") == "District Of Columbia"
    assert title_case("los angeles") == "Los Angeles"


def test_resolve_state_expands_abbreviations():
    assert resolve_state("ny") == "New York"
    assert resolve_state("DC") == "District Of Columbia"
    assert resolve_state("texas") == "Texas"


def test_resolve_state_passes_unknown_codes_through():
    """Unrecognized codes are kept, uppercased then title-cased, not expanded."""
    assert resolve_state("ZZ") == "Zz"
    assert resolve_state("PR") == "Pr"
    assert resolve_state(None) == ""


def test_normalize_doctor_fields(raw_records):
    doctor = normalize_doctor(raw_records[0])

    assert doctor == {
        "npi_number": "1000000001",
        "name": "Alice Adams",
        "specialty": "Surgical Oncology, Surgery",
        "address": "Mount Sinai, Brooklyn, kings, NY, 11201",
        "county": "Kings",
        "total_whipple_procedures": "3",
        "total_pancreatic_cancer": "50",
        "url": "https://example.org/alice",
    }


def test_normalize_doctor_empty_county_is_none():
    doctor = normalize_doctor(make_record("No County", "OH", county=""))
    assert doctor["county"] is None

    doctor = normalize_doctor(make_record("Missing County", "OH", county=None))
    assert doctor["county"] is None
    assert doctor["address"] == "General Hospital, Springfield, , OH, 00000"


def test_rank_by_cancer_count_is_stable(raw_records):
    ranked = [r["provider_name"] for r in rank_by_cancer_count(raw_records)]
    assert ranked == [
        "Bob Brown", "Eve Evans", "Alice Adams", "Dan Diaz", "Frank Fox", "Gina Green", "Carol Chen",
    ]


def test_build_state_index_buckets_by_full_name(index):
    assert list(index) == ["New York", "California", "Texas", "Zz"]
    assert [d["name"] for d in index["New York"]] == ["Bob Brown", "Alice Adams"]
    assert [d["name"] for d in index["California"]] == ["Eve Evans", "Gina Green"]
    assert [d["name"] for d in index["Texas"]] == ["Dan Diaz", "Carol Chen"]


def test_build_state_index_never_drops_records(raw_records, index):
    assert len(all_doctors(index)) == len(raw_records)

    messy = [make_record("Nobody", None, county=None, cancer=None, whipple=None)]
    messy_index = build_state_index(messy)
    assert messy_index == {"": [normalize_doctor(messy[0])]}


def test_build_state_index_does_not_mutate_input(raw_records):
    before = [r["provider_name"] for r in raw_records]
    build_state_index(raw_records)
    assert [r["provider_name"] for r in raw_records] == before

"""
Reshape raw provider records into the state-keyed doctor index.

Raw records come from the pancreatic map JSON blob. Each record is renamed into
the directory's display schema and bucketed under its full state name.
"""

import re
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from .states import ABBREVIATION_TO_STATE

LEADING_INT_RE = re.compile(r'^\s*([+-]?[0-9]+)')

DoctorIndex = Dict[str, List[Dict[str, Any]]]


def parse_count(value: Any) -> int:
    """
    Read the leading integer of a count field ("12" -> 12, "3.7" -> 3).
    Missing or non-numeric values count as 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    match = LEADING_INT_RE.match(str(value))
    if not match:
        return 0
    return int(match.group(1))


def title_case(value: str) -> str:
    """Capitalize the first letter of each space-separated word, lowercase the rest."""
    return ' '.join(word[:1].upper() + word[1:].lower() for word in value.split(' '))


def _part(value: Any) -> str:
    return '' if value is None else str(value)


def resolve_state(raw_state: Optional[str], abbreviations: Mapping[str, str] = ABBREVIATION_TO_STATE) -> str:
    """
    Turn a raw state field into its bucket key.

    Two-letter codes are expanded to the full name; anything unrecognized
    passes through uppercased. Either way the result is title-cased.
    """
    state_upper = _part(raw_state).upper()
    full_name = abbreviations.get(state_upper, state_upper)
    return title_case(full_name)


def normalize_doctor(record: Dict[str, Any]) -> Dict[str, Any]:
    """Rename a raw provider record into the display schema."""
    state_upper = _part(record.get('state')).upper()
    address = ', '.join([
        _part(record.get('affiliated_hco')),
        _part(record.get('city')),
        _part(record.get('county')),
        state_upper,
        _part(record.get('zip_code')),
    ])

    county = record.get('county')

    return {
        'npi_number': record.get('npi_number'),
        'name': _part(record.get('provider_name')),
        'specialty': _part(record.get('primary_hcp_segment')),
        'address': address,
        'county': title_case(str(county)) if county else None,
        'total_whipple_procedures': record.get('total_whipple_procedures'),
        'total_pancreatic_cancer': record.get('total_pancreatic_cancer'),
        'url': record.get('url'),
    }


def rank_by_cancer_count(records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Order records by total_pancreatic_cancer, highest first. Ties keep input order."""
    return sorted(records, key=lambda r: parse_count(r.get('total_pancreatic_cancer')), reverse=True)


def build_state_index(
    records: List[Dict[str, Any]],
    abbreviations: Mapping[str, str] = ABBREVIATION_TO_STATE,
) -> DoctorIndex:
    """
    Build the state-keyed doctor index from raw provider records.

    Records are ranked once by pancreatic cancer count before bucketing, so
    each bucket keeps that global order. No record is ever dropped.

    Args:
        records: Raw provider records as returned by the data blob
        abbreviations: Abbreviation -> full state name table

    Returns:
        Dictionary of full state name -> list of normalized doctors
    """
    index: DoctorIndex = defaultdict(list)
    for record in rank_by_cancer_count(records):
        state_key = resolve_state(record.get('state'), abbreviations)
        index[state_key].append(normalize_doctor(record))
    return dict(index)


def all_doctors(index: DoctorIndex) -> List[Dict[str, Any]]:
    """Flatten the index back into one list, bucket by bucket."""
    return [doctor for doctors in index.values() for doctor in doctors]

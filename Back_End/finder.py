"""
Filter, sort and paginate the doctor index for one view of the finder.

`find_doctors` is a pure function of (index, filters); `FinderSession` layers
the page-reset rules of the interactive finder on top of it.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from .normalize import DoctorIndex, all_doctors, parse_count
from .states import HIGH_VOLUME_LIMIT, HIGH_VOLUME_STATES, STATE_ABBREVIATIONS

logger = logging.getLogger(__name__)

DOCTORS_PER_PAGE = 10
MAX_PAGE_BUTTONS = 5

SURGICAL_ONCOLOGY = "Surgical Oncology"
SPECIALTIES = (SURGICAL_ONCOLOGY, "Radiation Oncology", "Medical Oncology")

# Selected specialty (lowercased) -> specialty tokens that count as a match
SPECIALTY_SYNONYMS: Mapping[str, FrozenSet[str]] = MappingProxyType({
    "surgical oncology": frozenset({"surgery", "surgical", "surgical critical care", "surgical oncology"}),
    "radiation oncology": frozenset({"radiation oncology"}),
    "medical oncology": frozenset({"oncology", "medical oncology", "hematology", "hematology & oncology"}),
})


@dataclass(frozen=True)
class FinderFilters:
    state: str = ""
    specialty: str = ""
    county: str = ""
    query: str = ""
    page: int = 1


@dataclass
class PageInfo:
    page: int
    total: int
    total_pages: int
    page_numbers: List[int] = field(default_factory=list)
    show_first: bool = False
    show_last: bool = False
    has_previous: bool = False
    has_next: bool = False


@dataclass
class FinderResult:
    doctors: List[Dict[str, Any]]
    page_info: PageInfo


# -----------------------------
# Scope + filters
# -----------------------------
def scope_by_state(
    index: DoctorIndex,
    state: str,
    high_volume_states: FrozenSet[str] = HIGH_VOLUME_STATES,
    limit: int = HIGH_VOLUME_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Pick the doctors a state selection starts from.

    High-volume states are capped to the first `limit` doctors of their
    bucket; no state means every bucket flattened in index order.
    """
    if not state:
        return all_doctors(index)
    doctors = index.get(state, [])
    if state in high_volume_states:
        return doctors[:limit]
    return list(doctors)


def matches_county(doctor: Dict[str, Any], county: str) -> bool:
    if not county:
        return True
    return (doctor.get("county") or "").lower() == county.lower()


def specialty_tokens(doctor: Dict[str, Any]) -> List[str]:
    return [token.strip() for token in (doctor.get("specialty") or "").lower().split(",")]


def matches_specialty(
    doctor: Dict[str, Any],
    specialty: str,
    synonyms: Mapping[str, FrozenSet[str]] = SPECIALTY_SYNONYMS,
) -> bool:
    if not specialty:
        return True
    wanted = synonyms.get(specialty.lower())
    if not wanted:
        return False
    return any(token in wanted for token in specialty_tokens(doctor))


def matches_query(doctor: Dict[str, Any], query: str) -> bool:
    if not query:
        return True
    return query.lower() in (doctor.get("name") or "").lower()


def filter_doctors(doctors: List[Dict[str, Any]], filters: FinderFilters) -> List[Dict[str, Any]]:
    return [
        d for d in doctors
        if matches_county(d, filters.county)
        and matches_specialty(d, filters.specialty)
        and matches_query(d, filters.query)
    ]


def refine_surgical(doctors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Narrow a surgical oncology view to doctors with at least one Whipple
    procedure, ranked by Whipple count. If nobody qualifies the list is
    returned as-is, unsorted.
    """
    with_whipple = [d for d in doctors if parse_count(d.get("total_whipple_procedures")) >= 1]
    if not with_whipple:
        return doctors
    return sorted(with_whipple, key=lambda d: parse_count(d.get("total_whipple_procedures")), reverse=True)


# -----------------------------
# Pagination
# -----------------------------
def page_numbers(current_page: int, total_pages: int, max_buttons: int = MAX_PAGE_BUTTONS) -> List[int]:
    """Page buttons to show around the current page."""
    if total_pages <= max_buttons:
        return list(range(1, total_pages + 1))
    if current_page <= 3:
        return list(range(1, max_buttons + 1))
    if current_page >= total_pages - 2:
        return list(range(total_pages - max_buttons + 1, total_pages + 1))
    return list(range(current_page - 2, current_page + 3))


def paginate(doctors: List[Dict[str, Any]], page: int, per_page: int = DOCTORS_PER_PAGE) -> FinderResult:
    total = len(doctors)
    total_pages = math.ceil(total / per_page)
    start = (page - 1) * per_page

    info = PageInfo(
        page=page,
        total=total,
        total_pages=total_pages,
        page_numbers=page_numbers(page, total_pages),
        show_first=page > 3 and total_pages > MAX_PAGE_BUTTONS,
        show_last=page < total_pages - 2 and total_pages > MAX_PAGE_BUTTONS,
        has_previous=page > 1,
        has_next=page < total_pages,
    )
    return FinderResult(doctors=doctors[start:start + per_page], page_info=info)


def find_doctors(index: DoctorIndex, filters: FinderFilters) -> FinderResult:
    """Run scope -> filter -> surgical refinement -> pagination for one view."""
    doctors = filter_doctors(scope_by_state(index, filters.state), filters)
    if filters.specialty.lower() == SURGICAL_ONCOLOGY.lower():
        doctors = refine_surgical(doctors)
    return paginate(doctors, filters.page)


# -----------------------------
# Dropdown options + click action
# -----------------------------
def list_states(index: DoctorIndex, abbreviations: Mapping[str, str] = STATE_ABBREVIATIONS) -> List[str]:
    """States that have doctors and a known abbreviation, alphabetically."""
    return sorted(state for state in index if state.strip() and state in abbreviations)


def list_counties(index: DoctorIndex, state: str) -> List[str]:
    if not state:
        return []
    return sorted({d["county"] for d in index.get(state, []) if d.get("county")})


def doctor_link(doctor: Dict[str, Any]) -> Optional[str]:
    """URL to open for a clicked doctor, or None when the record has none."""
    url = doctor.get("url")
    if url:
        return url
    logger.error("No URL available for doctor %s", doctor.get("npi_number"))
    return None


# -----------------------------
# Interactive session
# -----------------------------
@dataclass
class FinderSession:
    """
    Selection state of one visitor. Any filter change sends the visitor back to
    page 1, and so does a change in how many doctors match.

    This models the client side of the finder. `/api/doctors` is stateless:
    clients own `page` and apply these reset rules before asking for a page.
    """
    filters: FinderFilters = field(default_factory=FinderFilters)
    last_total: Optional[int] = None

    def select_state(self, state: str) -> None:
        if state != self.filters.state:
            self.filters = replace(self.filters, state=state, county="", page=1)
        else:
            self.filters = replace(self.filters, state=state)

    def select_specialty(self, specialty: str) -> None:
        self.filters = replace(self.filters, specialty=specialty, page=1)

    def select_county(self, county: str) -> None:
        self.filters = replace(self.filters, county=county, page=1)

    def search(self, query: str) -> None:
        self.filters = replace(self.filters, query=query, page=1)

    def go_to_page(self, page: int) -> None:
        self.filters = replace(self.filters, page=page)

    def next_page(self, index: DoctorIndex) -> None:
        if self.filters.page < self.view(index).page_info.total_pages:
            self.go_to_page(self.filters.page + 1)

    def previous_page(self) -> None:
        if self.filters.page > 1:
            self.go_to_page(self.filters.page - 1)

    def view(self, index: DoctorIndex) -> FinderResult:
        result = find_doctors(index, self.filters)
        total = result.page_info.total
        if self.last_total is not None and total != self.last_total and self.filters.page != 1:
            self.filters = replace(self.filters, page=1)
            result = find_doctors(index, self.filters)
        self.last_total = total
        return result

"""US choropleth state picker backed by the us-10m TopoJSON file."""

from typing import Any, Dict, List, Mapping, Optional

from .states import FIPS_STATE_NAMES, STATE_ABBREVIATIONS

DEFAULT_FILL = "#815FA0"
SELECTED_FILL = "#3c236a"
STROKE = "#ffffff"
STROKE_WIDTH = 1
UNKNOWN_STATE = "Unknown"


def state_geometries(topology: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Geometries of the `states` object in a TopoJSON topology."""
    states = ((topology or {}).get("objects") or {}).get("states") or {}
    return states.get("geometries") or []


def normalize_fips(fips: Any) -> str:
    """us-10m ids are zero-padded strings; accept bare ints too."""
    return str(fips).zfill(2) if fips is not None else ""


class MapSelector:
    def __init__(
        self,
        fips_names: Mapping[str, str] = FIPS_STATE_NAMES,
        abbreviations: Mapping[str, str] = STATE_ABBREVIATIONS,
    ):
        self.fips_names = fips_names
        self.abbreviations = abbreviations
        self.selected_state = ""

    def state_name(self, fips: Any) -> str:
        return self.fips_names.get(normalize_fips(fips), UNKNOWN_STATE)

    def click(self, fips: Any) -> str:
        """Select the state under a clicked path and return its name."""
        self.selected_state = self.state_name(fips)
        return self.selected_state

    def select(self, state: Optional[str]) -> None:
        """Follow a selection made elsewhere (e.g. the state dropdown)."""
        self.selected_state = state or ""

    def paths(self, topology: Dict[str, Any]) -> List[Dict[str, Any]]:
        """One entry per state/territory path, highlighted if selected."""
        out: List[Dict[str, Any]] = []
        for geometry in state_geometries(topology):
            fips = normalize_fips(geometry.get("id"))
            name = self.state_name(fips)
            selected = bool(self.selected_state) and name == self.selected_state
            out.append({
                "id": fips,
                "name": name,
                "label": self.abbreviations.get(name, ""),
                "tooltip": name,
                "fill": SELECTED_FILL if selected else DEFAULT_FILL,
                "stroke": STROKE,
                "stroke_width": STROKE_WIDTH,
                "selected": selected,
            })
        return out

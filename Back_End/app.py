from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import asdict
from typing import Optional, List, Dict, Any, Tuple, Union

import httpx
from fastapi import FastAPI, Query, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from dotenv import load_dotenv

from .finder import (
    SPECIALTIES,
    FinderFilters,
    doctor_link,
    find_doctors,
    list_counties,
    list_states,
)
from .map_selector import MapSelector
from .normalize import DoctorIndex, all_doctors, build_state_index
from .states import ABBREVIATION_TO_STATE, FIPS_STATE_NAMES, STATE_ABBREVIATIONS

load_dotenv()

# -----------------------------
# Config
# -----------------------------
SERPER_API_KEY = os.getenv("SERPER_API_KEY", "").strip()
DOCTORS_DATA_URL = os.getenv(
    "DOCTORS_DATA_URL",
    "https://docnexus-assets.s3.us-east-1.amazonaws.com/files/pancreatic-map-data-1.json",
).strip()
SERPER_SEARCH_URL = os.getenv("SERPER_SEARCH_URL", "https://google.serper.dev/search").strip()
US_TOPOLOGY_URL = os.getenv("US_TOPOLOGY_URL", "https://d3js.org/us-10m.v1.json").strip()
UPSTREAM_TIMEOUT_SECONDS = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30"))
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "3600"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# -----------------------------
# Helpers
# -----------------------------
def require_key():
    if not SERPER_API_KEY:
        raise HTTPException(
            status_code=500,
            detail="SERPER_API_KEY is not set. Put it in your .env and restart the server."
        )

def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT_SECONDS)

# Small in-memory cache for the map topology
_CACHE: Dict[str, Tuple[float, Any]] = {}

def cache_get(key: str):
    item = _CACHE.get(key)
    if not item:
        return None
    ts, val = item
    if (time.monotonic() - ts) > CACHE_TTL_SECONDS:
        _CACHE.pop(key, None)
        return None
    return val

def cache_set(key: str, value: Any):
    _CACHE[key] = (time.monotonic(), value)

# -----------------------------
# Upstream calls
# -----------------------------
async def fetch_doctors_data(client: httpx.AsyncClient) -> List[Dict[str, Any]]:
    r = await client.get(DOCTORS_DATA_URL)
    r.raise_for_status()
    return r.json()

async def search_google(client: httpx.AsyncClient, query: str) -> httpx.Response:
    return await client.post(
        SERPER_SEARCH_URL,
        headers={"X-API-KEY": SERPER_API_KEY, "Content-Type": "application/json"},
        json={"q": query},
    )

async def fetch_topology(client: httpx.AsyncClient) -> Dict[str, Any]:
    cached = cache_get(US_TOPOLOGY_URL)
    if cached:
        return cached
    r = await client.get(US_TOPOLOGY_URL)
    r.raise_for_status()
    topology = r.json()
    cache_set(US_TOPOLOGY_URL, topology)
    return topology

# -----------------------------
# Doctor directory
# -----------------------------
class DoctorDirectory:
    """
    The state-keyed doctor index, fetched and normalized once.

    A failed fetch is logged and leaves the index empty; the next request
    starts a fresh fetch, the same as reloading the page. Requests that
    arrive while a fetch is in flight wait for it instead of fetching again.
    """

    def __init__(self, abbreviations=ABBREVIATION_TO_STATE):
        self.abbreviations = abbreviations
        self.index: DoctorIndex = {}
        self.loaded = False
        self._lock: Optional[asyncio.Lock] = None

    @property
    def loading(self) -> bool:
        return self._lock is not None and self._lock.locked()

    async def get_index(self) -> DoctorIndex:
        if self.loaded:
            return self.index
        # Created lazily so the lock belongs to the running event loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self.loaded:
                return self.index
            try:
                async with http_client() as client:
                    records = await fetch_doctors_data(client)
                self.index = build_state_index(records, self.abbreviations)
                self.loaded = True
                logger.info("Loaded %d doctors across %d states", len(records), len(self.index))
            except Exception:
                logger.exception("Error fetching doctors data")
                self.index = {}
            return self.index

directory = DoctorDirectory()

def get_directory() -> DoctorDirectory:
    return directory

def get_map_selector() -> MapSelector:
    return MapSelector(FIPS_STATE_NAMES, STATE_ABBREVIATIONS)

# -----------------------------
# Models
# -----------------------------
Scalar = Union[str, int, float, None]

class DoctorOut(BaseModel):
    npi_number: Scalar = None
    name: str
    specialty: str
    address: str
    county: Optional[str] = None
    total_whipple_procedures: Scalar = None
    total_pancreatic_cancer: Scalar = None
    url: Optional[str] = None

class PageInfoOut(BaseModel):
    page: int
    total: int
    total_pages: int
    page_numbers: List[int]
    show_first: bool
    show_last: bool
    has_previous: bool
    has_next: bool

class DoctorsResponse(BaseModel):
    doctors: List[DoctorOut]
    page_info: PageInfoOut
    total_display: str

class FiltersResponse(BaseModel):
    states: List[str]
    counties: List[str]
    specialties: List[str]

class DoctorLinkResponse(BaseModel):
    url: Optional[str] = None

class GoogleResultRequest(BaseModel):
    query: Optional[str] = None

class GoogleResultResponse(BaseModel):
    link: Optional[str] = None

class MapPath(BaseModel):
    id: str
    name: str
    label: str
    tooltip: str
    fill: str
    stroke: str
    stroke_width: int
    selected: bool

class MapResponse(BaseModel):
    selected_state: str
    paths: List[MapPath]

class MapClickResponse(BaseModel):
    state: str

# -----------------------------
# App
# -----------------------------
app = FastAPI(title="Pancreatic Cancer Doctor Finder", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/health")
def health():
    return {"ok": True}

# -----------------------------
# Proxies
# -----------------------------
@app.get("/api/fetchDoctorsData")
async def fetch_doctors_data_route():
    """Forward the raw doctors JSON blob verbatim."""
    try:
        async with http_client() as client:
            data = await fetch_doctors_data(client)
    except Exception:
        logger.exception("Error fetching doctors data")
        raise HTTPException(status_code=500, detail="Internal server error")
    return JSONResponse(content=data)

@app.post("/api/fetchGoogleResult", response_model=GoogleResultResponse)
async def fetch_google_result(request: GoogleResultRequest):
    """
    Look up a doctor on Google (via Serper) and return the first organic link.
    """
    if not request.query:
        raise HTTPException(status_code=400, detail="Query is required")
    require_key()

    try:
        async with http_client() as client:
            response = await search_google(client, request.query)

        if not response.is_success:
            raise HTTPException(status_code=response.status_code, detail="Network response was not ok")

        organic = response.json().get("organic") or []
        link = organic[0].get("link") if organic else None
        return GoogleResultResponse(link=link)

    except HTTPException:
        raise
    except Exception:
        logger.exception("Error fetching Google result")
        raise HTTPException(status_code=500, detail="Internal server error")

# -----------------------------
# Finder
# -----------------------------
@app.get("/api/doctors", response_model=DoctorsResponse)
async def doctors(
    state: str = Query("", description="Full state name; empty for all states"),
    specialty: str = Query("", description="Surgical Oncology | Radiation Oncology | Medical Oncology"),
    county: str = Query("", description="County name; matched case-insensitively"),
    query: str = Query("", description="Substring of the doctor's name"),
    page: int = Query(1, ge=1, description="1-based page number"),
    store: DoctorDirectory = Depends(get_directory),
):
    index = await store.get_index()
    filters = FinderFilters(state=state, specialty=specialty, county=county, query=query, page=page)
    result = find_doctors(index, filters)
    return DoctorsResponse(
        doctors=[DoctorOut(**d) for d in result.doctors],
        page_info=PageInfoOut(**asdict(result.page_info)),
        total_display=f"{result.page_info.total:,}",
    )

@app.get("/api/filters", response_model=FiltersResponse)
async def filters(
    state: str = Query("", description="Selected state; drives the county list"),
    store: DoctorDirectory = Depends(get_directory),
):
    index = await store.get_index()
    return FiltersResponse(
        states=list_states(index),
        counties=list_counties(index, state),
        specialties=list(SPECIALTIES),
    )

@app.get("/api/doctors/{npi_number}/link", response_model=DoctorLinkResponse)
async def doctor_link_route(npi_number: str, store: DoctorDirectory = Depends(get_directory)):
    index = await store.get_index()
    doctor = next((d for d in all_doctors(index) if str(d.get("npi_number")) == npi_number), None)
    if doctor is None:
        raise HTTPException(status_code=404, detail=f"No doctor with NPI {npi_number}")
    return DoctorLinkResponse(url=doctor_link(doctor))

# -----------------------------
# Map
# -----------------------------
@app.get("/api/map", response_model=MapResponse)
async def us_map(
    selected_state: str = Query("", description="State to highlight"),
    selector: MapSelector = Depends(get_map_selector),
):
    try:
        async with http_client() as client:
            topology = await fetch_topology(client)
    except Exception:
        logger.exception("Error fetching US topology")
        raise HTTPException(status_code=500, detail="Internal server error")

    selector.select(selected_state)
    return MapResponse(selected_state=selector.selected_state, paths=selector.paths(topology))

@app.get("/api/map/click/{fips}", response_model=MapClickResponse)
def map_click(fips: str, selector: MapSelector = Depends(get_map_selector)):
    return MapClickResponse(state=selector.click(fips))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))

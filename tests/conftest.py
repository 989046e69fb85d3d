"""Shared fixtures: a small raw dataset and a FastAPI client with mocked upstreams."""

import httpx
import pytest
from fastapi.testclient import TestClient

from Back_End import app as app_module
from Back_End.normalize import build_state_index


def make_record(name, state, county="", specialty="Surgical Oncology", cancer="0", whipple="0",
                url=None, npi=None, org="General Hospital", city="Springfield", zip_code="00000"):
    record = {
        "npi_number": npi,
        "provider_name": name,
        "primary_hcp_segment": specialty,
        "affiliated_hco": org,
        "city": city,
        "county": county,
        "state": state,
        "zip_code": zip_code,
        "total_pancreatic_cancer": cancer,
        "url": url,
    }
    if whipple is not None:
        record["total_whipple_procedures"] = whipple
    return record


@pytest.fixture
def raw_records():
    return [
        make_record("Alice Adams", "ny", county="kings", specialty="Surgical Oncology, Surgery",
                    cancer="50", whipple="3", url="https://example.org/alice", npi="1000000001",
                    org="Mount Sinai", city="Brooklyn", zip_code="11201"),
        make_record("Bob Brown", "NY", county="KINGS", specialty="Medical Oncology",
                    cancer="80", whipple="0", npi="1000000002"),
        make_record("Carol Chen", "Texas", county="harris county",
                    specialty="Hematology & Oncology, Internal Medicine",
                    cancer="n/a", whipple="", url="https://example.org/carol", npi="1000000003"),
        make_record("Dan Diaz", "tx", county="", specialty="Radiation Oncology",
                    cancer="12abc", whipple=None, npi="1000000004"),
        make_record("Eve Evans", "CA", county="los angeles", specialty="Surgery",
                    cancer="80", whipple="7", npi="1000000005"),
        make_record("Frank Fox", "ZZ", county="cook", specialty="Surgical Critical Care",
                    cancer="5", whipple="1", npi="1000000006"),
        make_record("Gina Green", "california", county="Orange", specialty="Surgical Oncology",
                    cancer="5", whipple="12", npi="1000000007"),
    ]


@pytest.fixture
def index(raw_records):
    return build_state_index(raw_records)


@pytest.fixture
def topology():
    return {
        "type": "Topology",
        "objects": {
            "states": {
                "type": "GeometryCollection",
                "geometries": [
                    {"type": "Polygon", "id": "48", "arcs": [[0]]},
                    {"type": "Polygon", "id": "06", "arcs": [[1]]},
                    {"type": "Polygon", "id": "72", "arcs": [[2]]},
                    {"type": "Polygon", "id": "99", "arcs": [[3]]},
                ],
            }
        },
        "arcs": [],
    }


@pytest.fixture
def upstream(monkeypatch):
    """
    Route every outbound httpx call through `handler`. Returns the list of
    requests seen so tests can inspect them.
    """
    seen = []

    def install(handler):
        def recording(request):
            seen.append(request)
            return handler(request)

        monkeypatch.setattr(
            app_module, "http_client",
            lambda: httpx.AsyncClient(transport=httpx.MockTransport(recording)),
        )
        return seen

    return install


@pytest.fixture
def serve_data(upstream, raw_records, topology):
    """Upstream that answers the data blob and topology URLs."""
    def handler(request):
        url = str(request.url)
        if url == app_module.DOCTORS_DATA_URL:
            return httpx.Response(200, json=raw_records)
        if url == app_module.US_TOPOLOGY_URL:
            return httpx.Response(200, json=topology)
        return httpx.Response(404)

    return upstream(handler)


@pytest.fixture
def client(monkeypatch):
    store = app_module.DoctorDirectory()
    app_module.app.dependency_overrides[app_module.get_directory] = lambda: store
    monkeypatch.setattr(app_module, "_CACHE", {})
    monkeypatch.setattr(app_module, "SERPER_API_KEY", "test-key")
    with TestClient(app_module.app) as c:
        yield c
    app_module.app.dependency_overrides.clear()

# tests/conftest.py
"""
Pytest configuration and shared fixtures.

- Rate limiter disabled for the whole session
- Sample teeth/gum shade catalogs and a stub catalog source
- Store, subjects, and a TestClient wired to a fresh store
"""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Make "from caseconfig.main import app" work when tests run from CI/workdir
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from caseconfig.main import app  # noqa: E402
from caseconfig.routes import limiter  # noqa: E402
from caseconfig.catalog.models import ShadeFamily  # noqa: E402
from caseconfig.catalog.source import StubCatalogSource  # noqa: E402
from caseconfig.catalog.index import CatalogIndex  # noqa: E402
from caseconfig.configuration.models import Subject  # noqa: E402
from caseconfig.configuration.store import ConfigurationStore  # noqa: E402


# ============================================================
# Rate Limiter Disabling
# ============================================================
# Prevents 429 when many writes run in one session

limiter.enabled = False


# ============================================================
# Sample Catalog Data
# ============================================================

@pytest.fixture
def teeth_rows():
    """Teeth shade brands in lab API shape (shades / system_name keys)."""
    return [
        {
            "id": 7,
            "name": "VITA Classical",
            "system_name": "VITA",
            "shades": [
                {"id": 42, "name": "A1", "sequence": 1},
                {"id": 43, "name": "A2", "sequence": 2},
            ],
        },
        {
            "id": 8,
            "name": "VITA 3D-Master",
            "system_name": "3D",
            "shades": [
                {"id": 50, "name": "2M2", "sequence": 1},
                {"id": 51, "name": "1M1", "sequence": 2},
            ],
        },
        {
            "id": 9,
            "name": "Chromascop",
            "system_name": None,
            "shades": [
                {"id": 60, "name": "110", "price": 0},
                {"id": 61, "name": "A1", "price": 5.5},
            ],
        },
    ]


@pytest.fixture
def gum_rows():
    return [
        {
            "id": 20,
            "name": "Pink Gingiva",
            "shades": [
                {"id": 200, "name": "Light"},
                {"id": 201, "name": "Dark"},
            ],
        },
        {
            "id": 21,
            "name": "Ivoclar Gum",
            "shades": [
                {"id": 210, "name": "G1"},
            ],
        },
    ]


@pytest.fixture
def teeth_index(teeth_rows):
    return CatalogIndex.from_brands(1, ShadeFamily.TEETH, teeth_rows)


@pytest.fixture
def gum_index(gum_rows):
    return CatalogIndex.from_brands(1, ShadeFamily.GUM, gum_rows)


@pytest.fixture
def stub_source(teeth_rows, gum_rows):
    """Same catalogs for every subject."""
    return StubCatalogSource({
        (None, ShadeFamily.TEETH): teeth_rows,
        (None, ShadeFamily.GUM): gum_rows,
    })


# ============================================================
# Store Fixtures
# ============================================================

@pytest.fixture
def store(stub_source):
    return ConfigurationStore(stub_source)


@pytest.fixture
def dual_subject():
    return Subject.from_product_type(1, "Maxillary, Mandibular")


@pytest.fixture
def single_subject():
    return Subject.from_product_type(2, "Maxillary")


@pytest.fixture
def dual_store(store, dual_subject, single_subject):
    store.add_subject(dual_subject)
    store.add_subject(single_subject)
    return store


# ============================================================
# API Fixtures
# ============================================================

@pytest.fixture
def api_store(stub_source):
    """Fresh store swapped in for the process-wide one."""
    fresh = ConfigurationStore(stub_source)
    with patch("caseconfig.routes.get_store", return_value=fresh):
        yield fresh


@pytest.fixture
def client(api_store):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def lab_headers():
    return {"X-Role": "office_admin", "X-Tenant-Id": "office-9", "X-Selected-Lab-Id": "77"}


# ============================================================
# Markers
# ============================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that exercise the HTTP surface"
    )
    config.addinivalue_line(
        "markers", "concurrency: marks tests driving concurrent async callers"
    )

"""
Pytest configuration and shared fixtures for the marketplace ranking tests.
"""
import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


# ============================================================================
# Fixtures: Runtime Seams
# ============================================================================

@pytest.fixture
def clock():
    """Manual clock pinned to a fixed epoch."""
    from core.runtime import ManualClock
    return ManualClock()


@pytest.fixture
def scheduler():
    """Cycle scheduler the test ticks by hand."""
    from core.runtime import ManualCycleScheduler
    return ManualCycleScheduler()


@pytest.fixture
def storage():
    """Empty in-memory key-value storage."""
    from marketplace.storage import InMemoryStorage
    return InMemoryStorage()


@pytest.fixture
def test_settings():
    """Settings with memory storage and a synchronous aggregate engine."""
    from config.settings import get_settings_for_testing
    return get_settings_for_testing()


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def sample_catalog_dicts() -> list[dict]:
    """Catalog entries as the UI would send them."""
    return [
        {
            "id": "claims-bot",
            "name": "Claims Intake Bot",
            "description": "Automates patient claims intake for healthcare teams",
            "category": "Healthcare",
            "tags": ["health", "claims", "intake"],
            "roi": 6,
            "popularity": 4,
        },
        {
            "id": "invoice-sync",
            "name": "Invoice Sync",
            "description": "Reconciles invoices with the ledger",
            "category": "Finance",
            "tags": ["finance", "invoices"],
            "roi": 4,
            "popularity": 8,
        },
        {
            "id": "lead-router",
            "name": "Lead Router",
            "description": "Routes inbound leads to sales reps",
            "vertical": "Sales",
            "tags": ["crm", "sales"],
            "roi": 3,
        },
        {
            "id": "shift-planner",
            "name": "Shift Planner",
            "description": "Plans clinic staff shifts",
            "category": "Operations",
            "tags": ["health", "scheduling"],
            "roi": None,
            "popularity": 2,
        },
    ]


@pytest.fixture
def sample_catalog(sample_catalog_dicts):
    """Validated CatalogItem list."""
    from marketplace.models import CatalogItem
    return [CatalogItem.model_validate(item) for item in sample_catalog_dicts]


@pytest.fixture
def sample_profile_dict() -> dict:
    return {
        "industry": "healthcare",
        "business_email": "ops@medline.com",
        "department": "Operations",
        "role": "Analyst",
        "team_size": 80,
        "pain_points": "manual intake; billing delays",
    }


@pytest.fixture
def session(storage, clock, test_settings):
    """Marketplace session with pinned time and synchronous aggregates."""
    from marketplace.session import MarketplaceSession
    session = MarketplaceSession(storage, settings=test_settings, clock=clock)
    yield session
    session.close()


# ============================================================================
# Fixtures: FastAPI Test Client
# ============================================================================

@pytest.fixture
def app(test_settings, storage):
    """FastAPI application backed by in-memory storage."""
    from api.app import create_app
    return create_app(settings=test_settings, storage=storage)


@pytest.fixture
def client(app):
    """Synchronous test client (runs the lifespan handler)."""
    from fastapi.testclient import TestClient
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")

"""
Pytest configuration and shared fixtures.

Fixtures defined here are available to all tests.
"""

import os
import sys
import pytest
from pathlib import Path
from unittest.mock import MagicMock

# Add backend to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Set test environment
os.environ["TESTING"] = "true"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["STRIPE_SECRET_KEY"] = ""


TEST_USER = {
    "id": "test-user-00000000-0000-0000-0000-000000000000",
    "email": "billing@example.com",
}


# =============================================================================
# App Fixtures
# =============================================================================


@pytest.fixture
def app():
    """FastAPI test application."""
    from billing_pilot.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Sync test client for API tests (no credentials)."""
    from fastapi.testclient import TestClient
    return TestClient(app)


@pytest.fixture
def auth_client(app, test_user):
    """Sync test client with the Supabase token check stubbed out."""
    from fastapi.testclient import TestClient
    from billing_pilot.api.deps import get_current_user

    app.dependency_overrides[get_current_user] = lambda: test_user
    return TestClient(app)


@pytest.fixture
async def async_client(app, test_user):
    """Async test client for API tests, authenticated as the test user."""
    from httpx import AsyncClient, ASGITransport
    from billing_pilot.api.deps import get_current_user

    app.dependency_overrides[get_current_user] = lambda: test_user
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for unit tests."""
    mock = MagicMock()
    mock.table.return_value.select.return_value.execute.return_value.data = []
    mock.table.return_value.insert.return_value.execute.return_value.data = [{"id": "test-uuid"}]
    mock.table.return_value.update.return_value.execute.return_value.data = [{}]
    mock.table.return_value.delete.return_value.execute.return_value.data = [{}]
    return mock


@pytest.fixture
def test_user():
    """Authenticated user as returned by the token check."""
    return dict(TEST_USER)


@pytest.fixture
def test_user_id():
    """Test user ID for database operations."""
    return TEST_USER["id"]


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_csv_text():
    """Two-column price sheet with a header row."""
    return "Service,Price\nAPI Calls,0.02\nStorage,5\nSupport,\"1,200.00\"\n"


@pytest.fixture
def sample_metered_tsv():
    """Metered services: name, event name, unit, rate."""
    return (
        "Storage\tstorage_usage\tGB-Hour\t$0.02\n"
        "Compute\tcompute_seconds\tvCPU-Second\t$0.0004\n"
        "Bandwidth\tbandwidth_out\tGB\t$0.09\n"
    )


@pytest.fixture
def sample_items():
    """Parsed line items covering each billing type."""
    from billing_pilot.models.billing import (
        BillingLineItem,
        BillingType,
        BillingInterval,
        UsageType,
        AggregateUsage,
    )
    return [
        BillingLineItem(
            name="API Calls",
            price=0.02,
            type=BillingType.METERED,
            event_name="api_calls",
            unit="request",
            usage_type=UsageType.METERED,
            aggregate_usage=AggregateUsage.SUM,
        ),
        BillingLineItem(
            name="Pro Plan",
            price=49.0,
            type=BillingType.RECURRING,
            interval=BillingInterval.MONTH,
        ),
        BillingLineItem(name="Onboarding", price=500.0),
    ]


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def temp_image(tmp_path):
    """Create a temporary test image."""
    from PIL import Image

    img = Image.new('RGB', (100, 100), color='white')
    img_path = tmp_path / "price_sheet.png"
    img.save(img_path)

    return img_path


@pytest.fixture
def image_bytes(temp_image):
    """Get image as bytes."""
    return temp_image.read_bytes()


@pytest.fixture
def excel_bytes():
    """A small .xlsx price sheet written with pandas/openpyxl."""
    import io
    import pandas as pd

    frame = pd.DataFrame(
        [
            ["API Calls", "api_calls", "request", 0.02],
            ["Storage", "storage_usage", "GB-Hour", 0.1],
            ["Support", None, None, 99],
        ],
        columns=["Product", "Meter Name", "Unit", "Price"],
    )
    buffer = io.BytesIO()
    frame.to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()

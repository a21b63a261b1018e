# web_api/tests/conftest.py
"""Pytest fixtures for web API tests.

Routes are exercised through FastAPI's TestClient with the session
dependency overridden, so no JWT or database is needed.
"""

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure we import from root main.py
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from main import app
from web_api.auth import get_current_user_id

MOCK_USER_ID = 7


@pytest.fixture
def client():
    """Create test client authenticated as MOCK_USER_ID."""
    app.dependency_overrides[get_current_user_id] = lambda: MOCK_USER_ID
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    """Test client without any auth override."""
    app.dependency_overrides.clear()
    yield TestClient(app)

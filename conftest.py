"""Root pytest configuration."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load environment variables before tests run
_root = Path(__file__).parent
load_dotenv(_root / ".env")
load_dotenv(_root / ".env.local", override=True)


@pytest.fixture(autouse=True)
def lenient_answer_validation(monkeypatch):
    """Tests opt into strict answer validation explicitly."""
    monkeypatch.delenv("STRICT_ANSWER_VALIDATION", raising=False)

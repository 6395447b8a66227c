"""
Integration test fixtures and configuration

These tests hit a real Firebase Realtime Database.
They are slower and require network access plus credentials in backend/.env.

Run integration tests with: pytest tests/integration -m integration
Skip integration tests with: pytest -m "not integration"
"""

import pytest
from pathlib import Path

# Add backend to path for imports
import sys
backend_dir = Path(__file__).parent.parent.parent
sys.path.insert(0, str(backend_dir))


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (may be slow, requires network)"
    )
    config.addinivalue_line(
        "markers", "firebase: marks tests that require Firebase connection"
    )


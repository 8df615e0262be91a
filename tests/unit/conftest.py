"""
Unit Test Configuration
=======================
Fixtures for pure logic tests - NO I/O ALLOWED.

All unit tests should be completely isolated from:
- Network (node HTTP)
- Database (SQLite)
- File system (except tmp_path)
"""

import pytest
from unittest.mock import MagicMock


# ============================================================================
# AUTOUSE: ENFORCE I/O ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_unit_tests(monkeypatch):
    """
    Automatically disable all network I/O for unit tests.
    Any test that accidentally tries to make a network call will fail.
    """
    def block_network(*args, **kwargs):
        raise RuntimeError(
            "Network I/O detected in unit test! "
            "Unit tests must be pure logic with no external dependencies. "
            "Use integration tests for network-dependent code."
        )

    monkeypatch.setattr("requests.sessions.Session.request", block_network)


# ============================================================================
# PERSISTENCE DOUBLES
# ============================================================================


@pytest.fixture
def mock_box_repo():
    """MagicMock BoxRepository recording status transitions."""
    return MagicMock()


@pytest.fixture
def mock_tx_repo():
    """MagicMock TransactionRepository."""
    return MagicMock()

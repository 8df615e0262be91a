"""
Storage Rent Bot Test Configuration
===================================
Shared fixtures and pytest markers for the test suite.
"""

import pytest
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# ============================================================================
# PYTEST MARKERS
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "network: marks tests that require network access"
    )
    config.addinivalue_line(
        "markers", "integration: marks integration tests"
    )


# ============================================================================
# SHARED FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def quiet_logger():
    """Keep console output out of test runs."""
    from rentbot.shared.system.logging import Logger

    Logger.set_silent(True)
    yield
    Logger.set_silent(False)


@pytest.fixture
def rent_config():
    """Small, fast configuration: short rent age, tiny pages, no sleeping."""
    from rentbot.modules.storage_rent.config import RentConfig

    return RentConfig(
        MIN_AGE_BLOCKS=500,
        RENT_FEE_PER_BYTE=1_250_000,
        MIN_VALUE_PER_BYTE=360,
        RESCAN_INTERVAL_BLOCKS=50,
        LOOKAHEAD_BLOCKS=1000,
        SCAN_PAGE_SIZE=10,
        SCAN_TARGET_COUNT=5,
        SCAN_START_OFFSET=0,
        MAX_BATCH_SIZE=3,
        NETWORK_FEE=1_000_000,
        INTER_BATCH_DELAY_SECONDS=0.0,
        CONFIRMATION_INTERVAL_SECONDS=0.0,
        CONFIRMATION_MAX_ATTEMPTS=3,
    )


@pytest.fixture
def mock_node():
    """In-memory ledger at height 1500."""
    from tests.mocks.mock_node import MockNodeClient

    return MockNodeClient(height=1500)


@pytest.fixture
def make_candidate():
    """Factory for CandidateBox objects with explicit rent."""
    from rentbot.modules.storage_rent.models import CandidateBox
    from tests.mocks.mock_node import P2PK_TREE

    def _make(box_id, value=1_000_000_000, rent_fee=100_000_000, creation_height=1000, **kwargs):
        return CandidateBox(
            box_id=box_id,
            creation_height=creation_height,
            box_size=80,
            value=value,
            rent_fee=rent_fee,
            ergo_tree=kwargs.pop("ergo_tree", P2PK_TREE),
            **kwargs,
        )

    return _make

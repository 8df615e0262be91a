"""
Storage Rent Bot Test Mocks
===========================
Reusable mock classes for isolated testing.
"""

from tests.mocks.mock_node import MockNodeClient, MockSigner

__all__ = [
    "MockNodeClient",
    "MockSigner",
]

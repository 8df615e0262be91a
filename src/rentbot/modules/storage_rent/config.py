"""
Storage Rent Configuration
==========================
Algorithm-level constants and policies consumed by the core components.
Built from environment Settings by Settings.rent_config().
"""

from dataclasses import dataclass

from rentbot.modules.storage_rent.models import FeePolicy


@dataclass(frozen=True)
class RentConfig:
    """Configuration for storage rent discovery and claiming."""

    # Storage Rent Parameters
    MIN_AGE_BLOCKS: int = 1_051_200  # ~4 years of blocks
    RENT_FEE_PER_BYTE: int = 1_250_000  # nanoERG per byte (storageFeeFactor)
    MIN_VALUE_PER_BYTE: int = 360  # nanoERG per byte

    # Discovery
    RESCAN_INTERVAL_BLOCKS: int = 50  # ~1.5 hours between full scans
    LOOKAHEAD_BLOCKS: int = 1000  # Queue boxes eligible within this window
    SCAN_PAGE_SIZE: int = 1000  # Box ids per index page
    SCAN_TARGET_COUNT: int = 50  # Accepted boxes per scan
    SCAN_START_OFFSET: int = 44_160_000  # First page upper bound when no cursor exists

    # Batching
    MAX_BATCH_SIZE: int = 50
    NETWORK_FEE: int = 1_000_000  # 0.001 ERG
    FEE_POLICY: FeePolicy = FeePolicy.RENT_FUNDS_FEE

    # Rate Limiting
    INTER_BATCH_DELAY_SECONDS: float = 5.0

    # Confirmation Monitoring
    CONFIRMATION_INTERVAL_SECONDS: float = 30.0
    CONFIRMATION_MAX_ATTEMPTS: int = 20

    # Safety
    DRY_RUN: bool = False

"""
Storage Rent Module
===================
Storage rent claiming system for the Ergo blockchain.

This module discovers boxes approaching the storage rent age, queues them
by creation height, and claims their rent in batched transactions once
they become eligible.

Components:
- scanner.py: Resumable walk of the node's box index
- eligibility_queue.py: Height buckets and promotion to claimable
- batch_builder.py: Balanced claim transactions and fee policies
- signer.py: Claim-marker signing (node wallet for wallet inputs)
- submission_monitor.py: Broadcast and confirmation polling
- orchestrator.py: Cycle state machine and bot lifecycle
- config.py: Algorithm constants and policies
- cli.py: Command-line interface
"""

from rentbot.modules.storage_rent.config import RentConfig
from rentbot.modules.storage_rent.models import BoxStatus, FeePolicy, TxStatus

__all__ = [
    'RentConfig',
    'BoxStatus',
    'FeePolicy',
    'TxStatus',
]

"""
Submission Monitor
==================
Signs and broadcasts claim batches, then tracks each transaction to a
terminal status.

State machine per transaction:
    built -> submitted (pending) -> confirmed | failed

A failed status after polling runs out is a local give-up, not proof the
transaction was rejected. Nothing is ever resubmitted automatically.
"""

import threading
import time
from typing import Callable, Optional

from rentbot.modules.storage_rent.config import RentConfig
from rentbot.modules.storage_rent.errors import (
    BroadcastError,
    ConfirmationTimeoutError,
    SigningError,
    TransientIOError,
)
from rentbot.modules.storage_rent.ledger import LedgerClient
from rentbot.modules.storage_rent.models import BoxStatus, ClaimBatch, TransactionRecord, TxStatus
from rentbot.modules.storage_rent.signer import Signer
from rentbot.shared.system.database.repositories.box_repo import BoxRepository
from rentbot.shared.system.database.repositories.transaction_repo import TransactionRepository
from rentbot.shared.system.logging import Logger
from rentbot.shared.system.thread_manager import ThreadManager


class SubmissionMonitor:
    """
    Handles claim submission and confirmation polling.

    Usage:
        monitor = SubmissionMonitor(client, signer, box_repo, tx_repo, config, threads)
        tx_id = monitor.submit(batch)
        monitor.spawn_monitor(tx_id)
    """

    def __init__(
        self,
        client: LedgerClient,
        signer: Signer,
        box_repo: BoxRepository,
        tx_repo: TransactionRepository,
        config: RentConfig,
        threads: Optional[ThreadManager] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.signer = signer
        self.box_repo = box_repo
        self.tx_repo = tx_repo
        self.config = config
        self.threads = threads or ThreadManager()
        self._sleep = sleep

        # Statistics
        self._lock = threading.Lock()
        self._submissions = 0
        self._confirmations = 0
        self._failures = 0
        self._timeouts = 0

    def submit(self, batch: ClaimBatch) -> str:
        """
        Sign and broadcast a batch, then record it as pending.

        On any failure every box of the batch moves to `error` and the
        error is re-raised to the caller.

        Returns:
            Transaction id

        Raises:
            SigningError, BroadcastError, TransientIOError
        """
        box_ids = batch.box_ids
        self.box_repo.update_status(box_ids, BoxStatus.BATCHED)

        try:
            signed = self.signer.sign(batch.unsigned_tx)
            tx_id = self.client.broadcast(signed)
        except (SigningError, BroadcastError, TransientIOError) as e:
            self.box_repo.update_status(box_ids, BoxStatus.ERROR, reason=str(e))
            with self._lock:
                self._failures += 1
            Logger.error(f"[SUBMIT] ❌ Claim of {len(box_ids)} boxes failed: {e}")
            raise

        self.tx_repo.insert_transaction(
            TransactionRecord(
                tx_id=tx_id,
                box_ids=box_ids,
                total_rent_collected=batch.total_rent_collected,
                fee=batch.fee_paid,
            )
        )
        self.box_repo.update_status(box_ids, BoxStatus.SUBMITTED, tx_id=tx_id)
        with self._lock:
            self._submissions += 1

        Logger.success(
            f"[SUBMIT] 🚀 Transaction submitted: {tx_id} "
            f"({len(box_ids)} boxes, rent {batch.total_rent_collected}, fee {batch.fee_paid})"
        )
        return tx_id

    def monitor(self, tx_id: str) -> TxStatus:
        """
        Poll until confirmed or CONFIRMATION_MAX_ATTEMPTS polls have been made.

        Returns:
            TxStatus.CONFIRMED or TxStatus.FAILED (also persisted)
        """
        max_attempts = self.config.CONFIRMATION_MAX_ATTEMPTS

        for attempt in range(1, max_attempts + 1):
            try:
                status = self.client.tx_status(tx_id)
            except TransientIOError as e:
                Logger.debug(f"[MONITOR] Status check error for {tx_id}: {e}")
                status = None

            if status is not None and status.get("confirmations", 0) > 0:
                self.tx_repo.update_status(tx_id, TxStatus.CONFIRMED)
                self.box_repo.update_status_by_tx(tx_id, BoxStatus.CONFIRMED)
                with self._lock:
                    self._confirmations += 1
                Logger.success(f"[MONITOR] ✅ Transaction {tx_id} confirmed (attempt {attempt})")
                return TxStatus.CONFIRMED

            Logger.debug(f"[MONITOR] {tx_id} not confirmed yet ({attempt}/{max_attempts})")
            if attempt < max_attempts:
                self._sleep(self.config.CONFIRMATION_INTERVAL_SECONDS)

        timeout = ConfirmationTimeoutError(tx_id, max_attempts)
        self.tx_repo.update_status(tx_id, TxStatus.FAILED)
        self.box_repo.update_status_by_tx(tx_id, BoxStatus.ERROR, reason=str(timeout))
        with self._lock:
            self._timeouts += 1
        Logger.warning(f"[MONITOR] ⏰ {timeout}, marked failed")
        return TxStatus.FAILED

    def spawn_monitor(self, tx_id: str) -> threading.Thread:
        """Fire-and-forget confirmation tracking on a daemon thread."""
        return self.threads.submit_daemon(f"confirm-{tx_id[:16]}", self.monitor, tx_id)

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "submissions": self._submissions,
                "confirmations": self._confirmations,
                "failures": self._failures,
                "timeouts": self._timeouts,
            }

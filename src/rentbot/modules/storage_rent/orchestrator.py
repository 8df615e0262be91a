"""
Storage Rent Orchestrator
=========================
Drives one bot cycle and owns the bot lifecycle.

Cycle:
1. Fetch current height
2. Scan the box index if RESCAN_INTERVAL_BLOCKS have passed since the last scan
3. Promote height buckets that reached rent age
4. Re-validate promoted boxes, build one claim per batch, submit, spawn monitors

Every collaborator is passed in; bootstrap.build_orchestrator() wires the
live ones from Settings.
"""

import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from rentbot.modules.storage_rent.batch_builder import BatchBuilder
from rentbot.modules.storage_rent.config import RentConfig
from rentbot.modules.storage_rent.eligibility_queue import EligibilityQueue
from rentbot.modules.storage_rent.errors import (
    BoxNotFoundError,
    RentBotError,
    TransientIOError,
)
from rentbot.modules.storage_rent.ledger import LedgerClient
from rentbot.modules.storage_rent.models import (
    RESTORABLE_BOX_STATUSES,
    BoxStatus,
    CandidateBox,
    CycleResult,
    ScanCursor,
    TxStatus,
)
from rentbot.modules.storage_rent.scanner import EligibilityScanner
from rentbot.modules.storage_rent.scheduler import CycleScheduler
from rentbot.modules.storage_rent.submission_monitor import SubmissionMonitor
from rentbot.shared.system.database.core import DatabaseCore
from rentbot.shared.system.database.repositories.box_repo import BoxRepository
from rentbot.shared.system.database.repositories.state_repo import BotStateRepository
from rentbot.shared.system.database.repositories.transaction_repo import TransactionRepository
from rentbot.shared.system.logging import Logger


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Orchestrator:
    """
    The rent bot.

    Only the cycle mutates the EligibilityQueue; confirmation monitors
    touch persisted state only.
    """

    def __init__(
        self,
        client: LedgerClient,
        config: RentConfig,
        change_address: str,
        monitor: SubmissionMonitor,
        box_repo: BoxRepository,
        tx_repo: TransactionRepository,
        state_repo: BotStateRepository,
        scanner: Optional[EligibilityScanner] = None,
        queue: Optional[EligibilityQueue] = None,
        builder: Optional[BatchBuilder] = None,
        db: Optional[DatabaseCore] = None,
        network: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.config = config
        self.change_address = change_address
        self.monitor = monitor
        self.box_repo = box_repo
        self.tx_repo = tx_repo
        self.state_repo = state_repo
        self.scanner = scanner or EligibilityScanner(client, config)
        self.queue = queue or EligibilityQueue()
        self.builder = builder or BatchBuilder(client, config)
        self.db = db
        self.network = network.lower() if network else None
        self._sleep = sleep

        self.cursor = ScanCursor(offset=config.SCAN_START_OFFSET)
        self.is_running = False
        self.last_height: Optional[int] = None
        self.scheduler: Optional[CycleScheduler] = None
        self._start_time = time.time()

    # ═══════════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════

    def initialize(self) -> None:
        """
        Health-check collaborators, restore persisted progress and resume
        confirmation tracking of transactions still pending.

        Raises:
            RentBotError: node or database unreachable, or node on the wrong network
        """
        Logger.info("[BOT] Initializing Storage Rent Bot")

        if not self.client.health_check():
            raise RentBotError("Ergo node is not accessible")
        try:
            self.last_height = self.client.current_height()
            self._check_network()
        except TransientIOError as e:
            raise RentBotError(f"Ergo node is not accessible: {e}") from e
        Logger.info(f"[BOT] Ergo node connectivity verified (height {self.last_height})")

        if self.db is not None:
            if not self.db.health_check():
                raise RentBotError("Database is not accessible")
            Logger.info("[DB] Database connectivity verified")

        self.state_repo.set_state("initialized_at", _now_iso())
        self.state_repo.set_state("wallet_address", self.change_address)

        restored = self.load()
        if restored:
            self.box_repo.update_status([box.box_id for box in restored], BoxStatus.QUEUED)

        pending = self.tx_repo.get_transactions(TxStatus.PENDING)
        for record in pending:
            self.monitor.spawn_monitor(record.tx_id)
        if pending:
            Logger.info(f"[MONITOR] Resumed confirmation tracking of {len(pending)} pending transaction(s)")

        Logger.success(
            f"[BOT] Initialized: {self.queue.queued_count} queued boxes, "
            f"scan offset {self.cursor.offset}, last scan height {self.cursor.last_scan_height}"
        )

    def load(self) -> List[CandidateBox]:
        """
        Rebuild the scan cursor and the in-memory queue from the database.

        Read-only, so an operator view can share the database with a running bot.
        """
        self.cursor = self.state_repo.load_cursor(self.config.SCAN_START_OFFSET)
        restorable = self.box_repo.get_boxes(RESTORABLE_BOX_STATUSES)
        self.queue.restore(restorable)
        return restorable

    def _check_network(self) -> None:
        if self.network is None:
            return
        reported = self.client.node_info().get("network")
        if reported and reported.lower() != self.network:
            raise RentBotError(f"Node reports network '{reported}' but the bot is configured for '{self.network}'")

    def start(self, scheduler: Optional[CycleScheduler] = None) -> CycleResult:
        """Run one cycle immediately, then hand over to `scheduler` if given."""
        if self.is_running:
            Logger.warning("[BOT] Bot is already running")
            return CycleResult(dry_run=self.config.DRY_RUN)

        self.is_running = True
        self.state_repo.set_state("status", "running")
        self.state_repo.set_state("started_at", _now_iso())
        Logger.info(f"[BOT] 🤖 Starting Storage Rent Bot (dry run: {self.config.DRY_RUN})")

        result = self.run_cycle()

        if scheduler is not None:
            self.scheduler = scheduler
            scheduler.start()
        return result

    def stop(self) -> None:
        Logger.info("[BOT] Stopping Storage Rent Bot")
        self.is_running = False
        if self.scheduler is not None:
            self.scheduler.stop()
            self.scheduler = None
        self.monitor.threads.shutdown(wait=False)
        self.state_repo.set_state("status", "stopped")
        self.state_repo.set_state("stopped_at", _now_iso())
        Logger.info("[BOT] Storage Rent Bot stopped")

    # ═══════════════════════════════════════════════════════════════════
    # CYCLE
    # ═══════════════════════════════════════════════════════════════════

    def run_cycle(self) -> CycleResult:
        """
        One scan-or-promote-then-claim pass.

        Never raises: every failure ends up in `CycleResult.errors`.
        """
        result = CycleResult(dry_run=self.config.DRY_RUN)
        started = time.time()
        Logger.section("Storage Rent Cycle")

        try:
            self._run_cycle(result)
        except RentBotError as e:
            Logger.error(f"[BOT] ❌ Cycle aborted: {e}")
            result.errors.append(str(e))
        except Exception as e:
            Logger.error(f"[BOT] ❌ Unexpected cycle failure: {type(e).__name__}: {e}")
            result.errors.append(f"Unexpected error: {e}")

        self._after_cycle(result)
        Logger.info(
            f"[BOT] Cycle done in {time.time() - started:.1f}s: {result.processed_boxes} boxes, "
            f"{result.successful_tx_count} ok / {result.failed_tx_count} failed tx, "
            f"rent {result.total_rent_collected}, fees {result.total_fees_paid}, "
            f"{len(result.errors)} error(s), {self.queue.queued_count} still queued"
        )
        return result

    def _run_cycle(self, result: CycleResult) -> None:
        height = self.client.current_height()
        result.current_height = height
        self.last_height = height

        if self.cursor.scan_due(height, self.config.RESCAN_INTERVAL_BLOCKS):
            try:
                self._scan(height)
                result.scanned = True
            except TransientIOError as e:
                # Cursor stays put; the next cycle retries the scan
                Logger.warning(f"[SCANNER] ⚠️ Scan aborted, promoting queued boxes anyway: {e}")
                result.errors.append(f"Scan aborted: {e}")

        promotion = self.queue.promote(height, self.config.MIN_AGE_BLOCKS)
        result.promoted_boxes = len(promotion.claimable)
        if not promotion.claimable:
            return

        self.box_repo.update_status([box.box_id for box in promotion.claimable], BoxStatus.CLAIMABLE)
        claimable = self._revalidate(promotion.claimable, result)
        if not claimable:
            Logger.info("[BOT] No promoted boxes left after re-validation")
            return

        batches = self.builder.partition(claimable)
        Logger.info(f"[BATCH] {len(claimable)} claimable boxes in {len(batches)} batch(es)")
        for index, boxes in enumerate(batches, start=1):
            if index > 1:
                self._sleep(self.config.INTER_BATCH_DELAY_SECONDS)
            self._process_batch(index, len(batches), boxes, height, result)

    def _scan(self, height: int) -> None:
        """Scan, persist discoveries, merge into the queue, then advance the cursor."""

        def already_known(box_id: str) -> bool:
            return self.queue.contains(box_id) or self.box_repo.get_status(box_id) is not None

        scan = self.scanner.scan(height, self.cursor, exclude=already_known)

        discovered = list(scan.rejected)
        for bucket_height in sorted(scan.buckets):
            discovered.extend(scan.buckets[bucket_height])
        self.box_repo.upsert_boxes(discovered)
        added = self.queue.merge(scan.buckets)

        next_cursor = scan.next_cursor
        if scan.exhausted:
            Logger.info(f"[SCANNER] Wrapping cursor back to offset {self.config.SCAN_START_OFFSET}")
            next_cursor = ScanCursor(offset=self.config.SCAN_START_OFFSET, last_scan_height=height)
        self.state_repo.save_cursor(next_cursor)
        self.cursor = next_cursor

        Logger.info(f"[QUEUE] Queued {added} new boxes ({self.queue.queued_count} total)")

    def _revalidate(self, boxes: List[CandidateBox], result: CycleResult) -> List[CandidateBox]:
        """Drop promoted boxes that were spent; requeue ones the node could not answer for."""
        live: List[CandidateBox] = []
        retry: List[CandidateBox] = []
        for box in boxes:
            try:
                still_unspent = self.client.unspent_box(box.box_id) is not None
            except TransientIOError as e:
                Logger.warning(f"[BOT] ⚠️ Could not re-validate {box.box_id}, retrying next cycle: {e}")
                retry.append(box)
                continue
            if still_unspent:
                live.append(box)
            else:
                reason = str(BoxNotFoundError(box.box_id))
                self.box_repo.update_status([box.box_id], BoxStatus.ERROR, reason=reason)
                result.errors.append(reason)
                Logger.warning(f"[BOT] ⚠️ {reason}")
        if retry:
            self._requeue(retry)
        return live

    def _requeue(self, boxes: List[CandidateBox]) -> None:
        self.box_repo.update_status([box.box_id for box in boxes], BoxStatus.QUEUED)
        self.queue.restore(boxes)

    def _process_batch(
        self,
        index: int,
        total: int,
        boxes: List[CandidateBox],
        height: int,
        result: CycleResult,
    ) -> None:
        box_ids = [box.box_id for box in boxes]
        Logger.info(f"[BATCH] Processing batch {index}/{total} ({len(boxes)} boxes)")

        try:
            batch = self.builder.build(boxes, self.change_address, height)
        except TransientIOError as e:
            Logger.warning(f"[BATCH] ⚠️ Batch {index}/{total} deferred to next cycle: {e}")
            result.errors.append(f"Batch {index} deferred: {e}")
            self._requeue(boxes)
            return
        except RentBotError as e:
            Logger.error(f"[BATCH] ❌ Batch {index}/{total} failed: {e}")
            self.box_repo.update_status(box_ids, BoxStatus.ERROR, reason=str(e))
            result.failed_tx_count += 1
            result.errors.append(f"Batch {index} failed: {e}")
            return

        if batch.dropped_box_ids:
            self.box_repo.update_status(
                batch.dropped_box_ids, BoxStatus.ERROR, reason="Spent before claim could be built"
            )

        if self.config.DRY_RUN:
            Logger.info(
                f"[BATCH] DRY RUN: would submit {len(batch.boxes)} boxes, "
                f"rent {batch.total_rent_collected}, fee {batch.fee_paid}"
            )
            self._requeue(batch.boxes)
            self._count_success(batch, result)
            return

        try:
            tx_id = self.monitor.submit(batch)
        except RentBotError as e:
            result.failed_tx_count += 1
            result.errors.append(f"Batch {index} failed: {e}")
            return

        self._count_success(batch, result)
        self.monitor.spawn_monitor(tx_id)

    @staticmethod
    def _count_success(batch, result: CycleResult) -> None:
        result.processed_boxes += len(batch.boxes)
        result.successful_tx_count += 1
        result.total_rent_collected += batch.total_rent_collected
        result.total_fees_paid += batch.fee_paid

    def _after_cycle(self, result: CycleResult) -> None:
        try:
            self.state_repo.set_state("last_cycle_at", _now_iso())
            if result.current_height is not None:
                self.refresh_wallet_balance()
        except Exception as e:
            Logger.warning(f"[BOT] ⚠️ Post-cycle bookkeeping failed: {e}")
            result.errors.append(f"Bookkeeping failed: {e}")

    def refresh_wallet_balance(self) -> Optional[int]:
        """Sum of spendable entries held by the change address, cached in bot state."""
        try:
            entries = self.client.spendable_entries_for_address(self.change_address)
        except TransientIOError as e:
            Logger.warning(f"[BOT] ⚠️ Failed to update wallet balance: {e}")
            return None
        balance = sum(int(entry["value"]) for entry in entries)
        self.state_repo.set_state("wallet_balance", balance)
        Logger.debug(f"[BOT] Wallet balance: {balance}")
        return balance

    # ═══════════════════════════════════════════════════════════════════
    # OPERATOR SURFACE
    # ═══════════════════════════════════════════════════════════════════

    def status(self) -> dict:
        """
        Returns:
            {
                'queuedCount': int,
                'nextEligibleHeight': int | None,
                'nextEligibleBoxIds': List[str],
                'isRunning': bool,
                'currentHeight': int | None,
                'scanOffset': int,
                'lastScanHeight': int,
                'uptimeSeconds': int
            }
        """
        summary = self.queue.status(self.config.MIN_AGE_BLOCKS, current_height=self.last_height)
        summary.update(
            {
                "isRunning": self.is_running,
                "currentHeight": self.last_height,
                "scanOffset": self.cursor.offset,
                "lastScanHeight": self.cursor.last_scan_height,
                "uptimeSeconds": int(time.time() - self._start_time),
            }
        )
        return summary

    def get_metrics(self) -> dict:
        metrics = {}
        metrics.update(self.box_repo.get_box_metrics())
        tx_metrics = self.tx_repo.get_transaction_metrics()
        metrics.update(
            {
                "total_fees_paid": tx_metrics["total_fees"],
                "successful_transactions": tx_metrics["successful"],
                "failed_transactions": tx_metrics["failed"],
                "pending_transactions": tx_metrics["pending"],
                "wallet_balance": self.state_repo.get_int("wallet_balance", 0),
                "monitor": self.monitor.get_stats(),
            }
        )
        return metrics

    def cleanup(self, days_to_keep: int = 30) -> int:
        """Delete finalized box records older than `days_to_keep` days and compact the database."""
        deleted = self.box_repo.cleanup_old_records(days_to_keep)
        if self.db is not None:
            self.db.vacuum()
        Logger.info(f"[DB] 🧹 Cleaned up {deleted} old box record(s)")
        return deleted

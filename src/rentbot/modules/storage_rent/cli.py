"""
Storage Rent Bot CLI
====================
Command-line interface for the storage rent claiming bot.

Commands:
    rentbot run                 Long-running bot (scheduler when enabled)
    rentbot once [--wait]       Single cycle, prints the cycle summary
    rentbot status              Bot state, metrics, queue and recent transactions
    rentbot cleanup --days N    Delete finalized box records older than N days
"""

import argparse
import signal
import threading
from typing import List, Optional

from rentbot.config.settings import Settings
from rentbot.modules.storage_rent.bootstrap import build_orchestrator
from rentbot.modules.storage_rent.errors import ConfigError, RentBotError, TransientIOError
from rentbot.modules.storage_rent.orchestrator import Orchestrator
from rentbot.modules.storage_rent.scheduler import CycleScheduler
from rentbot.shared.system.logging import Logger

NANOERG = 1_000_000_000


def _erg(nanoerg: int) -> str:
    return f"{nanoerg / NANOERG:.6f} ERG"


def _load(args) -> Settings:
    settings = Settings.from_env(args.env_file)
    if args.dry_run:
        settings.DRY_RUN = True
    if args.log_level:
        settings.LOG_LEVEL = args.log_level
    settings.validate()
    Logger.configure(level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR)
    return settings


def _print_cycle(result) -> None:
    Logger.info("=" * 60)
    Logger.info("[CLI] 📊 CYCLE RESULT")
    Logger.info("=" * 60)
    Logger.info(f"[CLI]    Height:             {result.current_height}")
    Logger.info(f"[CLI]    Scanned:            {result.scanned}")
    Logger.info(f"[CLI]    Promoted Boxes:     {result.promoted_boxes}")
    Logger.info(f"[CLI]    Processed Boxes:    {result.processed_boxes}")
    Logger.info(f"[CLI]    Successful Tx:      {result.successful_tx_count}")
    Logger.info(f"[CLI]    Failed Tx:          {result.failed_tx_count}")
    Logger.info(f"[CLI]    Rent Collected:     {_erg(result.total_rent_collected)}")
    Logger.info(f"[CLI]    Fees Paid:          {_erg(result.total_fees_paid)}")
    if result.dry_run:
        Logger.warning("[CLI] ⚠️  DRY RUN MODE - Nothing was broadcast")
    for error in result.errors:
        Logger.error(f"[CLI]    {error}")


def cmd_run(args) -> int:
    """Run the bot until interrupted."""
    settings = _load(args)
    bot = build_orchestrator(settings)
    bot.initialize()

    scheduler = None
    if settings.ENABLE_SCHEDULER:
        scheduler = CycleScheduler(bot.run_cycle, settings.CYCLE_INTERVAL_SECONDS)

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())

    bot.start(scheduler)
    if scheduler is None:
        bot.stop()
        return 0

    Logger.info("[CLI] Press Ctrl+C to stop")
    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:
        Logger.info("[CLI] Interrupted")
    finally:
        bot.stop()
    return 0


def _confirmation_wait_seconds(settings: Settings) -> float:
    """Upper bound on one monitor's lifetime: every poll may also wait out a node timeout."""
    per_poll = settings.CONFIRMATION_INTERVAL_SECONDS + settings.NODE_TIMEOUT_SECONDS
    return per_poll * settings.CONFIRMATION_MAX_ATTEMPTS + 5


def cmd_once(args) -> int:
    """Run a single cycle."""
    settings = _load(args)
    bot = build_orchestrator(settings)
    bot.initialize()

    result = bot.run_cycle()
    _print_cycle(result)

    if args.wait and result.successful_tx_count and not result.dry_run:
        timeout = _confirmation_wait_seconds(settings)
        Logger.info("[CLI] Waiting for confirmation monitors...")
        bot.monitor.threads.join_all(timeout)
    return 0 if not result.errors else 2


def _print_status(bot: Orchestrator) -> None:
    Logger.info("=" * 60)
    Logger.info("[CLI] 📋 STORAGE RENT BOT - STATUS")
    Logger.info("=" * 60)
    for row in bot.state_repo.get_all_state():
        Logger.info(f"[CLI]    {row['key']:<22} {row['value']}")

    status = bot.status()
    Logger.info("[CLI] ⏳ QUEUE:")
    Logger.info(f"[CLI]    Queued Boxes:        {status['queuedCount']}")
    Logger.info(f"[CLI]    Next Eligible:       {status['nextEligibleHeight']}")
    if status["blocksUntilNextEligible"] is not None:
        Logger.info(f"[CLI]    Blocks Until:        {status['blocksUntilNextEligible']}")
    for box_id in status["nextEligibleBoxIds"][:5]:
        Logger.info(f"[CLI]      {box_id}")

    metrics = bot.get_metrics()
    Logger.info("[CLI] 📊 METRICS:")
    Logger.info(f"[CLI]    Boxes Scanned:       {metrics['total_boxes_scanned']}")
    Logger.info(f"[CLI]    Eligible Found:      {metrics['eligible_boxes_found']}")
    Logger.info(f"[CLI]    Rent Collected:      {_erg(metrics['confirmed_rent_collected'])}")
    Logger.info(f"[CLI]    Fees Paid:           {_erg(metrics['total_fees_paid'])}")
    Logger.info(f"[CLI]    Successful Tx:       {metrics['successful_transactions']}")
    Logger.info(f"[CLI]    Failed Tx:           {metrics['failed_transactions']}")
    Logger.info(f"[CLI]    Pending Tx:          {metrics['pending_transactions']}")
    Logger.info(f"[CLI]    Wallet Balance:      {_erg(metrics['wallet_balance'])}")

    recent = bot.tx_repo.get_transactions(limit=10)
    if recent:
        Logger.info("[CLI] 🧾 RECENT TRANSACTIONS:")
        for record in recent:
            Logger.info(
                f"[CLI]    {record.tx_id[:16]}... | {record.status.value:<9} | "
                f"{len(record.box_ids)} boxes | rent {_erg(record.total_rent_collected)}"
            )


def cmd_status(args) -> int:
    """Display persisted bot state."""
    settings = _load(args)
    bot = build_orchestrator(settings)
    bot.load()
    try:
        bot.last_height = bot.client.current_height()
    except TransientIOError as e:
        Logger.warning(f"[CLI] ⚠️ Node unavailable, height unknown: {e}")
    _print_status(bot)
    return 0


def cmd_cleanup(args) -> int:
    """Delete old finalized records."""
    settings = _load(args)
    bot = build_orchestrator(settings)
    deleted = bot.cleanup(args.days)
    Logger.success(f"[CLI] Removed {deleted} record(s) older than {args.days} days")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rentbot", description="Ergo Storage Rent Claiming Bot")
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: ./.env)")
    parser.add_argument("--dry-run", action="store_true", help="Build claims but never broadcast")
    parser.add_argument("--log-level", choices=["debug", "info", "warning", "error"], default=None)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("run", help="Run the bot until interrupted")

    once_parser = subparsers.add_parser("once", help="Run a single cycle")
    once_parser.add_argument(
        "--wait",
        action="store_true",
        help="Block until confirmation monitors of this cycle finish",
    )

    subparsers.add_parser("status", help="Show bot state, metrics and queue")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old finalized box records")
    cleanup_parser.add_argument("--days", type=int, default=30, help="Days of records to keep (default: 30)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint for the storage rent bot."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    handlers = {
        "run": cmd_run,
        "once": cmd_once,
        "status": cmd_status,
        "cleanup": cmd_cleanup,
    }
    try:
        return handlers[args.command](args)
    except ConfigError as e:
        Logger.error(f"[CLI] ❌ Configuration error: {e}")
        return 1
    except RentBotError as e:
        Logger.critical(f"[CLI] Fatal: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

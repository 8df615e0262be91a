"""
Cycle Scheduler
===============
Fires the bot cycle on a fixed cadence. Cycles never overlap: a tick that
arrives while the previous cycle is still running is skipped.
"""

import threading
from typing import Any, Callable, Optional

from rentbot.shared.system.logging import Logger


class CycleScheduler:
    """
    Fixed-interval trigger running `run` on a worker thread per tick.

    Args:
        run: The cycle callable
        interval_seconds: Seconds between ticks
    """

    def __init__(self, run: Callable[[], Any], interval_seconds: float):
        self._run = run
        self.interval_seconds = interval_seconds
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._ticker: Optional[threading.Thread] = None
        self._worker: Optional[threading.Thread] = None
        self.runs = 0
        self.skipped = 0

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and self._ticker.is_alive()

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_lock.locked()

    def trigger(self) -> bool:
        """
        Run one cycle now unless one is already in flight.

        Returns:
            False if the trigger was skipped
        """
        if not self._cycle_lock.acquire(blocking=False):
            self.skipped += 1
            Logger.warning("[BOT] ⏭️ Previous cycle still running, skipping trigger")
            return False
        try:
            self.runs += 1
            self._run()
        except Exception as e:
            Logger.error(f"[BOT] ❌ Scheduled cycle failed: {e}")
        finally:
            self._cycle_lock.release()
        return True

    def start(self) -> None:
        if self.is_running:
            Logger.warning("[BOT] Scheduler already running")
            return
        self._stop_event.clear()
        self._ticker = threading.Thread(target=self._loop, daemon=True, name="CycleScheduler")
        self._ticker.start()
        Logger.info(f"[BOT] ⏱️ Scheduler started (every {self.interval_seconds:.0f}s)")

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            if self.cycle_in_progress:
                self.skipped += 1
                Logger.warning("[BOT] ⏭️ Previous cycle still running, skipping tick")
                continue
            self._worker = threading.Thread(target=self.trigger, daemon=True, name="RentCycle")
            self._worker.start()

    def stop(self, timeout: float = 30.0) -> None:
        """Stop ticking and wait for an in-flight cycle to finish."""
        self._stop_event.set()
        if self._ticker is not None:
            self._ticker.join(timeout)
        if self._worker is not None and self._worker.is_alive():
            self._worker.join(timeout)
        Logger.info(f"[BOT] Scheduler stopped ({self.runs} run(s), {self.skipped} skipped)")

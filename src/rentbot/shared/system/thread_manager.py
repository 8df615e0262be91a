"""
Thread Manager
==============
Registry for the daemon threads that run beside the main cycle, one
confirmation monitor per broadcast transaction.

Threads are keyed by name: submitting a name that is still running
returns the live thread instead of starting a second one.
"""

import threading
import time
from typing import Any, Callable, Dict, List

from rentbot.shared.system.logging import Logger


class ThreadManager:
    """Fire-and-forget daemons with outcome counters and a drain on exit."""

    def __init__(self):
        self._lock = threading.Lock()
        self._live: Dict[str, threading.Thread] = {}
        self._counts = {"submitted": 0, "completed": 0, "failed": 0}
        self._accepting = True
        self._started_at = time.time()

    def submit_daemon(self, name: str, fn: Callable, *args, **kwargs) -> threading.Thread:
        """Start `fn(*args, **kwargs)` on a daemon thread called `name`."""
        with self._lock:
            if not self._accepting:
                raise RuntimeError(f"ThreadManager is closed, refusing '{name}'")
            running = self._live.get(name)
            if running is not None and running.is_alive():
                Logger.debug(f"[THREADS] '{name}' already running")
                return running
            thread = threading.Thread(target=self._run, args=(name, fn, args, kwargs), name=name, daemon=True)
            self._live[name] = thread
            self._counts["submitted"] += 1

        thread.start()
        Logger.debug(f"[THREADS] Started {name}")
        return thread

    def _run(self, name: str, fn: Callable, args: tuple, kwargs: dict) -> None:
        outcome = "completed"
        try:
            fn(*args, **kwargs)
        except Exception as e:
            # A daemon has no caller to raise into
            outcome = "failed"
            Logger.error(f"[THREADS] ❌ {name} died: {type(e).__name__}: {e}")
        finally:
            with self._lock:
                self._counts[outcome] += 1
                if self._live.get(name) is threading.current_thread():
                    del self._live[name]

    def running(self) -> List[str]:
        with self._lock:
            return sorted(name for name, t in self._live.items() if t.is_alive())

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats: Dict[str, Any] = dict(self._counts)
            stats["active"] = sum(1 for t in self._live.values() if t.is_alive())
        stats["uptime_s"] = int(time.time() - self._started_at)
        return stats

    def join_all(self, timeout: float = 5.0) -> bool:
        """Block until every tracked daemon exits. False if `timeout` runs out first."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                alive = [t for t in self._live.values() if t.is_alive()]
            if not alive:
                return True
            left = deadline - time.monotonic()
            if left <= 0:
                return False
            alive[0].join(min(left, 0.1))

    def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
        with self._lock:
            self._accepting = False
        Logger.info("[THREADS] No new daemons accepted")
        if wait and not self.join_all(timeout):
            Logger.warning(f"[THREADS] ⚠️ Still running after {timeout}s: {', '.join(self.running())}")
        Logger.info(f"[THREADS] Closed. {self.get_stats()}")

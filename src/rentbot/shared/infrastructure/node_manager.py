"""
Node Failover Manager
=====================
Manages a pool of Ergo node URLs with health tracking and failover.
All HTTP traffic to the ledger goes through NodeConnectionManager.request().
"""

import time
from typing import Dict, List, Optional

import requests

from rentbot.modules.storage_rent.errors import TransientIOError
from rentbot.shared.system.logging import Logger


class NodeConnectionManager:
    """
    Manages node connection lifecycle, health tracking, and failover.

    Connection errors and timeouts rotate to the next URL and surface as
    TransientIOError; the caller decides whether to retry next cycle.
    """

    def __init__(self, node_urls: List[str], api_key: Optional[str] = None, timeout: float = 10.0):
        # Deduplicate and filter empty
        self.node_urls = list(dict.fromkeys([u.rstrip("/") for u in node_urls if u]))
        if not self.node_urls:
            raise ValueError("At least one node URL is required")

        self.api_key = api_key
        self.timeout = timeout
        self.current_index = 0
        self.stats: Dict[str, Dict] = {
            url: {
                "success": 0,
                "errors": 0,
                "avg_latency": 0.0,
                "last_error_time": 0,
                "last_error": None,
            }
            for url in self.node_urls
        }

        Logger.info(f"[NODE] Manager initialized with {len(self.node_urls)} node(s)")

    def benchmark_providers(self) -> str:
        """
        Ping all nodes to determine the fastest one.
        Updates current_index to point to the lowest latency healthy node.
        """
        Logger.info(f"[NODE] 🏎️ Benchmarking {len(self.node_urls)} node(s)...")

        best_idx = self.current_index
        min_latency = float("inf")

        for i, url in enumerate(self.node_urls):
            try:
                start = time.time()
                resp = requests.get(f"{url}/info", headers=self._headers(), timeout=2)

                if resp.status_code == 200:
                    latency = (time.time() - start) * 1000
                    self._record_success(url, latency)
                    Logger.debug(f"[NODE]    ✅ {url}: {latency:.0f}ms")

                    if latency < min_latency:
                        min_latency = latency
                        best_idx = i
                else:
                    self._record_error(url, f"HTTP {resp.status_code}")
                    Logger.debug(f"[NODE]    ❌ {url}: HTTP {resp.status_code}")

            except requests.RequestException as e:
                self._record_error(url, str(e))
                Logger.debug(f"[NODE]    ❌ {url}: Timeout/Error")

        if best_idx != self.current_index:
            self.current_index = best_idx
            Logger.info(f"[NODE] Latency Rebalance: Switched to {self.get_active_url()} ({min_latency:.0f}ms)")
        else:
            Logger.info(f"[NODE] Retaining {self.get_active_url()}")

        return self.get_active_url()

    def get_active_url(self) -> str:
        return self.node_urls[self.current_index]

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_key:
            headers["api_key"] = self.api_key
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json_body=None,
        data=None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """
        Execute a request against the active node with metrics tracking.

        Returns the response for any status below 500 (callers handle 404).

        Raises:
            TransientIOError: network failure, timeout, 429 or 5xx
        """
        url = self.get_active_url()
        start = time.time()

        try:
            response = requests.request(
                method,
                f"{url}{path}",
                params=params,
                json=json_body,
                data=data,
                headers=self._headers(headers),
                timeout=timeout or self.timeout,
            )
        except requests.RequestException as e:
            self._record_error(url, str(e))
            self.switch_provider(reason=f"Network Error: {e}")
            raise TransientIOError(f"{method} {path} failed: {e}") from e

        latency = (time.time() - start) * 1000

        if response.status_code == 429 or response.status_code >= 500:
            self._record_error(url, f"HTTP {response.status_code}")
            raise TransientIOError(f"{method} {path} returned HTTP {response.status_code}")

        self._record_success(url, latency)
        return response

    def _record_success(self, url: str, latency: float):
        s = self.stats[url]
        s["success"] += 1
        # Exponential moving average for latency
        if s["avg_latency"] == 0:
            s["avg_latency"] = latency
        else:
            s["avg_latency"] = 0.9 * s["avg_latency"] + 0.1 * latency

    def _record_error(self, url: str, error_msg: str):
        s = self.stats[url]
        s["errors"] += 1
        s["last_error_time"] = time.time()
        s["last_error"] = error_msg

    def switch_provider(self, reason: str = "Unknown"):
        """Force rotation to next node."""
        if len(self.node_urls) == 1:
            return
        old_url = self.get_active_url()
        self.current_index = (self.current_index + 1) % len(self.node_urls)
        Logger.warning(f"[NODE] 🔄 Switching Node: {old_url} -> {self.get_active_url()} (Reason: {reason})")

    def get_stats(self):
        return {"active_provider": self.get_active_url(), "providers": self.stats}

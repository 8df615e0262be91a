"""
Ergo Node REST Client
=====================
Thin wrapper over the node's REST API exposing exactly what the rent bot
consumes: chain height, box lookups, the global box index, broadcast and
confirmation status.

Endpoints:
- GET  /info                              -> fullHeight
- GET  /blockchain/box/byId/{id}          -> indexed box (spent or unspent)
- GET  /utxo/byId/{id}                    -> unspent box only
- GET  /blockchain/box/range              -> box ids by global index
- POST /transactions                      -> broadcast, returns tx id
- GET  /blockchain/transaction/byId/{id}  -> numConfirmations
"""

from typing import Any, Dict, List, Optional

from rentbot.modules.storage_rent.errors import BroadcastError, SigningError, TransientIOError
from rentbot.shared.infrastructure.node_manager import NodeConnectionManager
from rentbot.shared.system.logging import Logger


class ErgoNodeClient:
    """
    Ledger client backed by an Ergo node.

    Every method raises TransientIOError when the node cannot be reached;
    "not found" answers are returned as None rather than raised.
    """

    UNSPENT_PAGE_LIMIT = 100

    def __init__(self, manager: NodeConnectionManager):
        self.manager = manager

    def _get_json(self, path: str, params: Optional[dict] = None) -> Optional[Any]:
        """GET `path`, returning None on 404."""
        response = self.manager.request("GET", path, params=params)
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise TransientIOError(f"GET {path} returned HTTP {response.status_code}: {response.text[:200]}")
        return response.json()

    # ═══════════════════════════════════════════════════════════════════
    # CHAIN STATE
    # ═══════════════════════════════════════════════════════════════════

    def node_info(self) -> Dict[str, Any]:
        info = self._get_json("/info")
        if info is None:
            raise TransientIOError("Node returned 404 for /info")
        return info

    def current_height(self) -> int:
        info = self.node_info()
        height = info.get("fullHeight")
        if height is None:
            raise TransientIOError("Node has not synced any full blocks yet")
        return int(height)

    def health_check(self) -> bool:
        try:
            return self.current_height() > 0
        except TransientIOError as e:
            Logger.warning(f"[NODE] ⚠️ Health check failed: {e}")
            return False

    # ═══════════════════════════════════════════════════════════════════
    # BOXES
    # ═══════════════════════════════════════════════════════════════════

    def box_by_id(self, box_id: str) -> Optional[Dict[str, Any]]:
        """Indexed box, including `spentTransactionId` when already spent."""
        return self._get_json(f"/blockchain/box/byId/{box_id}")

    def unspent_box(self, box_id: str) -> Optional[Dict[str, Any]]:
        """Box from the UTXO set, or None if it is spent or unknown."""
        return self._get_json(f"/utxo/byId/{box_id}")

    def box_id_range(self, offset: int, limit: int) -> List[str]:
        """
        Box ids with global index in [offset, offset + limit).

        Returned oldest first; already-issued ranges never change as the
        chain grows.
        """
        ids = self._get_json("/blockchain/box/range", params={"offset": offset, "limit": limit})
        return list(ids or [])

    def spendable_entries_for_address(self, address: str) -> List[Dict[str, Any]]:
        """All unspent boxes guarded by `address`, paging through the index."""
        entries: List[Dict[str, Any]] = []
        offset = 0
        while True:
            response = self.manager.request(
                "POST",
                "/blockchain/box/unspent/byAddress",
                params={"offset": offset, "limit": self.UNSPENT_PAGE_LIMIT},
                data=address,
                headers={"Content-Type": "text/plain"},
            )
            if response.status_code == 404:
                return entries
            if response.status_code >= 400:
                raise TransientIOError(
                    f"Unspent lookup for {address} returned HTTP {response.status_code}"
                )
            page = response.json() or []
            entries.extend(page)
            if len(page) < self.UNSPENT_PAGE_LIMIT:
                return entries
            offset += self.UNSPENT_PAGE_LIMIT

    def address_to_tree(self, address: str) -> str:
        """ErgoTree hex guarding `address`."""
        data = self._get_json(f"/script/addressToTree/{address}")
        if not data or "tree" not in data:
            raise TransientIOError(f"Could not resolve ErgoTree for address {address}")
        return data["tree"]

    # ═══════════════════════════════════════════════════════════════════
    # TRANSACTIONS
    # ═══════════════════════════════════════════════════════════════════

    def broadcast(self, signed_tx: Dict[str, Any]) -> str:
        """
        Submit a signed transaction.

        Returns:
            Transaction id assigned by the node

        Raises:
            BroadcastError: the node rejected the transaction
        """
        response = self.manager.request("POST", "/transactions", json_body=signed_tx)
        if response.status_code >= 400:
            raise BroadcastError(f"Node rejected transaction (HTTP {response.status_code}): {response.text[:300]}")
        tx_id = response.json()
        if isinstance(tx_id, dict):
            tx_id = tx_id.get("id")
        if not tx_id:
            raise BroadcastError("Node accepted transaction but returned no id")
        return str(tx_id)

    def tx_status(self, tx_id: str) -> Optional[Dict[str, int]]:
        """{"confirmations": n} for an indexed transaction, None if unknown."""
        data = self._get_json(f"/blockchain/transaction/byId/{tx_id}")
        if data is None:
            return None
        return {"confirmations": int(data.get("numConfirmations", 0))}

    def sign_with_wallet(self, unsigned_tx: Dict[str, Any]) -> Dict[str, Any]:
        """Have the node's unlocked wallet sign a transaction."""
        try:
            response = self.manager.request("POST", "/wallet/transaction/sign", json_body={"tx": unsigned_tx})
        except TransientIOError as e:
            raise SigningError(f"Node wallet unreachable: {e}") from e
        if response.status_code >= 400:
            raise SigningError(f"Node wallet refused to sign (HTTP {response.status_code}): {response.text[:300]}")
        return response.json()
